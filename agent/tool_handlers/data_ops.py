from __future__ import annotations
from typing import TYPE_CHECKING

from data_ops import forecast, transforms
from data_ops.errors import ValidationError
from data_ops.results import OpResult

if TYPE_CHECKING:
    from agent.tool_executor import ToolExecutor


def _as_int(tool_args: dict, key: str, default=None):
    value = tool_args.get(key, default)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Parameter '{key}' must be an integer, got {value!r}.")


def handle_get_dataset_schema(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return transforms.get_dataset_schema(executor.store, tool_args["dataset_name"])


def handle_filter_data(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return transforms.filter_data(
        executor.store,
        tool_args["dataset_name"],
        tool_args["column"],
        tool_args["operator"],
        tool_args["value"],
    )


def handle_aggregate_data(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return transforms.aggregate_data(
        executor.store,
        tool_args["dataset_name"],
        tool_args["group_by_columns"],
        tool_args["aggregation_column"],
        tool_args["aggregation_function"],
    )


def handle_add_column(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return transforms.add_column(
        executor.store,
        tool_args["dataset_name"],
        tool_args["new_column_name"],
        tool_args["expression"],
    )


def handle_get_descriptive_stats(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return transforms.get_descriptive_stats(
        executor.store, tool_args["dataset_name"], tool_args["column"]
    )


def handle_join_datasets(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return transforms.join_datasets(
        executor.store,
        tool_args["left_dataset_name"],
        tool_args["right_dataset_name"],
        tool_args["left_on_column"],
        tool_args["right_on_column"],
        tool_args["join_type"],
    )


def handle_union_datasets(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return transforms.union_datasets(executor.store, tool_args["dataset_names"])


def handle_forecast_time_series(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return forecast.forecast_time_series(
        executor.store,
        tool_args["dataset_name"],
        tool_args["date_column"],
        tool_args["value_column"],
        _as_int(tool_args, "forecast_periods"),
        tool_args["frequency"],
    )


def handle_calculate_correlated_forex_scenario(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    try:
        scenario_rate = float(tool_args["scenario_rate"])
    except (TypeError, ValueError):
        raise ValidationError(
            f"Parameter 'scenario_rate' must be a number, got {tool_args['scenario_rate']!r}."
        )
    return forecast.calculate_correlated_forex_scenario(
        executor.store,
        tool_args["base_currency_pair"],
        scenario_rate,
        periods=_as_int(tool_args, "periods"),
        rng=executor.rng,
    )
