from __future__ import annotations
from typing import TYPE_CHECKING, Callable

from data_ops.results import OpResult

if TYPE_CHECKING:
    from agent.tool_executor import ToolExecutor

ToolHandler = Callable[["ToolExecutor", dict], OpResult]

TOOL_REGISTRY: dict[str, ToolHandler] = {}

# ── Data ops ──
from agent.tool_handlers.data_ops import (
    handle_get_dataset_schema,
    handle_filter_data,
    handle_aggregate_data,
    handle_add_column,
    handle_get_descriptive_stats,
    handle_join_datasets,
    handle_union_datasets,
    handle_forecast_time_series,
    handle_calculate_correlated_forex_scenario,
)

# ── Visualization ──
from agent.tool_handlers.visualization import (
    handle_verify_visualization_data,
    handle_render_table,
    handle_render_bar_chart,
    handle_render_pie_chart,
    handle_render_line_chart,
    handle_render_world_map,
    handle_render_scatter_plot,
    handle_render_waterfall_chart,
    handle_generate_report,
)

TOOL_REGISTRY.update({
    # Data ops
    "get_dataset_schema": handle_get_dataset_schema,
    "filter_data": handle_filter_data,
    "aggregate_data": handle_aggregate_data,
    "add_column": handle_add_column,
    "get_descriptive_stats": handle_get_descriptive_stats,
    "join_datasets": handle_join_datasets,
    "union_datasets": handle_union_datasets,
    "forecast_time_series": handle_forecast_time_series,
    "calculate_correlated_forex_scenario": handle_calculate_correlated_forex_scenario,
    # Visualization
    "verify_visualization_data": handle_verify_visualization_data,
    "render_table": handle_render_table,
    "render_bar_chart": handle_render_bar_chart,
    "render_pie_chart": handle_render_pie_chart,
    "render_line_chart": handle_render_line_chart,
    "render_world_map": handle_render_world_map,
    "render_scatter_plot": handle_render_scatter_plot,
    "render_waterfall_chart": handle_render_waterfall_chart,
    # Report
    "generate_report": handle_generate_report,
})
