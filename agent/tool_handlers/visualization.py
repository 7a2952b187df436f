from __future__ import annotations
from typing import TYPE_CHECKING

from data_ops.errors import ValidationError
from data_ops.results import OpResult
from rendering import viz_tools

if TYPE_CHECKING:
    from agent.tool_executor import ToolExecutor


def handle_verify_visualization_data(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    columns = tool_args.get("columns") or {}
    if not isinstance(columns, dict):
        raise ValidationError("Parameter 'columns' must be an object mapping roles to column names.")
    return viz_tools.verify_visualization_data(
        executor.store,
        tool_args["dataset_name"],
        tool_args["visualization_type"],
        columns,
    )


def handle_render_table(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return viz_tools.render_table(executor.store, tool_args["dataset_name"], tool_args["title"])


def handle_render_bar_chart(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return viz_tools.render_bar_chart(
        executor.store,
        tool_args["dataset_name"],
        tool_args["category_column"],
        tool_args["value_column"],
        tool_args["title"],
    )


def handle_render_pie_chart(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    # Models sometimes reuse the bar-chart parameter name for the slice labels
    name_column = tool_args.get("name_column") or tool_args.get("category_column")
    if not name_column:
        raise ValidationError("Missing required parameter(s): name_column")
    return viz_tools.render_pie_chart(
        executor.store,
        tool_args["dataset_name"],
        name_column,
        tool_args["value_column"],
        tool_args["title"],
    )


def handle_render_line_chart(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return viz_tools.render_line_chart(
        executor.store,
        tool_args["dataset_name"],
        tool_args["x_column"],
        tool_args["y_columns"],
        tool_args["title"],
    )


def handle_render_world_map(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return viz_tools.render_world_map(
        executor.store,
        tool_args["dataset_name"],
        tool_args["location_column"],
        tool_args["value_column"],
        tool_args["title"],
    )


def handle_render_scatter_plot(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return viz_tools.render_scatter_plot(
        executor.store,
        tool_args["dataset_name"],
        tool_args["x_column"],
        tool_args["y_column"],
        tool_args["title"],
    )


def handle_render_waterfall_chart(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return viz_tools.render_waterfall_chart(
        executor.store,
        tool_args["dataset_name"],
        tool_args["category_column"],
        tool_args["value_column"],
        tool_args["title"],
    )


def handle_generate_report(executor: "ToolExecutor", tool_args: dict) -> OpResult:
    return viz_tools.generate_report(
        executor.registry,
        executor.renderer,
        tool_args["title"],
        tool_args["summary"],
        tool_args.get("artifact_titles") or [],
    )
