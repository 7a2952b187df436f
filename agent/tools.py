"""
Tool definitions for Gemini function calling.

Each tool schema defines what the planner model can call and what
parameters it needs.  Tools are executed by the ToolExecutor through the
handlers registered in agent/tool_handlers.
"""

TOOLS = [
    # --- Inspection ---
    {
        "name": "get_dataset_schema",
        "description": "Get the schema (column names and inferred types) and the first rows of a dataset.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {
                    "type": "string",
                    "description": "The name of the dataset to inspect (e.g. 'sales', 'step_2_result').",
                },
            },
            "required": ["dataset_name"],
        },
    },
    # --- Transformations ---
    {
        "name": "filter_data",
        "description": "Filter a dataset based on a condition. Rows with a missing value in the column are dropped.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to filter."},
                "column": {"type": "string", "description": "The column to apply the filter on."},
                "operator": {
                    "type": "string",
                    "description": "The comparison operator. 'contains' is a case-insensitive substring test.",
                    "enum": ["==", "!=", ">", "<", ">=", "<=", "contains"],
                },
                "value": {"type": "string", "description": "The value to compare against."},
            },
            "required": ["dataset_name", "column", "operator", "value"],
        },
    },
    {
        "name": "aggregate_data",
        "description": (
            "Aggregate data by grouping and applying a function. The resulting aggregated column "
            "is named '[aggregation_column]_[aggregation_function]', e.g. 'amount_sum'."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to aggregate."},
                "group_by_columns": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Columns to group the data by.",
                },
                "aggregation_column": {"type": "string", "description": "The column to perform the aggregation on."},
                "aggregation_function": {
                    "type": "string",
                    "description": "The aggregation function.",
                    "enum": ["sum", "count", "average", "max", "min"],
                },
            },
            "required": ["dataset_name", "group_by_columns", "aggregation_column", "aggregation_function"],
        },
    },
    {
        "name": "add_column",
        "description": (
            "Add a new column computed from an expression over existing columns, e.g. "
            "'price * quantity', 'amount / 1000', 'status == \"paid\" ? amount : 0'. "
            "Supports + - * / % **, comparisons, && || !, the ternary operator and the functions "
            "abs, round, floor, ceil, sqrt, min, max. A single-row dataset value can be referenced "
            "as [dataset_name].column_name."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to extend."},
                "new_column_name": {"type": "string", "description": "The name of the new column to create."},
                "expression": {"type": "string", "description": "The expression to calculate the new column's value."},
            },
            "required": ["dataset_name", "new_column_name", "expression"],
        },
    },
    {
        "name": "get_descriptive_stats",
        "description": (
            "Calculate descriptive statistics for a numerical column (count, mean, median, std_dev, "
            "min, max, q1, q3) or a date column (count, unique_count, start_date, end_date, "
            "duration_days). Check the column type with get_dataset_schema first."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset."},
                "column": {"type": "string", "description": "The number or date column to describe."},
            },
            "required": ["dataset_name", "column"],
        },
    },
    {
        "name": "join_datasets",
        "description": (
            "Join two datasets on a key column. Right-hand columns that clash with left-hand "
            "names get a '_right' suffix."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "left_dataset_name": {"type": "string", "description": "Name of the left dataset."},
                "right_dataset_name": {"type": "string", "description": "Name of the right dataset."},
                "left_on_column": {"type": "string", "description": "The key column in the left dataset."},
                "right_on_column": {"type": "string", "description": "The key column in the right dataset."},
                "join_type": {
                    "type": "string",
                    "description": "The type of join to perform.",
                    "enum": ["inner", "left", "right", "full"],
                },
            },
            "required": ["left_dataset_name", "right_dataset_name", "left_on_column", "right_on_column", "join_type"],
        },
    },
    {
        "name": "union_datasets",
        "description": "Stack the rows of two or more datasets that have exactly the same columns in the same order.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_names": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Names of the datasets to combine, in order (at least two).",
                },
            },
            "required": ["dataset_names"],
        },
    },
    # --- Forecasting ---
    {
        "name": "forecast_time_series",
        "description": (
            "Forecast future values of a time series with linear regression. Adds 'forecast', "
            "'forecast_upper' and 'forecast_lower' (95% band) columns and appends one row per "
            "future period."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset containing the time series."},
                "date_column": {"type": "string", "description": "The column containing dates."},
                "value_column": {"type": "string", "description": "The numerical column to forecast."},
                "forecast_periods": {"type": "integer", "description": "The number of future periods to forecast."},
                "frequency": {
                    "type": "string",
                    "description": "The frequency of the time periods.",
                    "enum": ["daily", "monthly", "quarterly"],
                },
            },
            "required": ["dataset_name", "date_column", "value_column", "forecast_periods", "frequency"],
        },
    },
    {
        "name": "calculate_correlated_forex_scenario",
        "description": (
            "Simulate a daily exchange-rate path for a scenario where a currency pair reaches a "
            "given rate, together with a correlated pair (USD/JPY and EUR/JPY are paired; other "
            "pairs are paired with EUR/USD). The result is illustrative, not a market forecast."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "base_currency_pair": {"type": "string", "description": "The currency pair of the scenario, e.g. 'USD/JPY'."},
                "scenario_rate": {"type": "number", "description": "The rate the base pair reaches at the end of the period."},
                "periods": {"type": "integer", "description": "Number of days to simulate (default 30)."},
            },
            "required": ["base_currency_pair", "scenario_rate"],
        },
    },
    # --- Visualization ---
    {
        "name": "verify_visualization_data",
        "description": (
            "Before generating a visualization, verify that the data is suitable (is it aggregated, "
            "are the value columns numeric?). You MUST use this tool before calling any render_* "
            "chart tool."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to verify."},
                "visualization_type": {
                    "type": "string",
                    "description": "The type of visualization planned.",
                    "enum": ["bar_chart", "pie_chart", "line_chart", "world_map", "scatter_plot", "waterfall_chart"],
                },
                "columns": {
                    "type": "object",
                    "description": (
                        "A mapping of visualization roles to column names. E.g. for a bar chart: "
                        "{\"category_column\": \"country\", \"value_column\": \"amount_sum\"}"
                    ),
                    "properties": {
                        "category_column": {"type": "string", "description": "The category axis of a bar or waterfall chart."},
                        "value_column": {"type": "string", "description": "The value axis (bar height, slice size, map value)."},
                        "name_column": {"type": "string", "description": "The slice names of a pie chart."},
                        "x_column": {"type": "string", "description": "The X-axis of a line chart or scatter plot."},
                        "y_columns": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "The Y-axis column(s) of a line chart.",
                        },
                        "y_column": {"type": "string", "description": "The Y-axis of a scatter plot."},
                        "location_column": {"type": "string", "description": "Country codes (ISO 3166-1 alpha-3) for a world map."},
                    },
                },
            },
            "required": ["dataset_name", "visualization_type", "columns"],
        },
    },
    {
        "name": "render_table",
        "description": "Render a dataset as a table that can be included in a report. Also returns the table as markdown.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to render."},
                "title": {"type": "string", "description": "The title of the table."},
            },
            "required": ["dataset_name", "title"],
        },
    },
    {
        "name": "render_bar_chart",
        "description": "Render a bar chart from a dataset.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to visualize."},
                "category_column": {"type": "string", "description": "The column for the X-axis (categories)."},
                "value_column": {"type": "string", "description": "The column for the Y-axis (values)."},
                "title": {"type": "string", "description": "The title of the chart."},
            },
            "required": ["dataset_name", "category_column", "value_column", "title"],
        },
    },
    {
        "name": "render_pie_chart",
        "description": "Render a pie chart from a dataset.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to visualize."},
                "name_column": {"type": "string", "description": "The column for the slice names."},
                "value_column": {"type": "string", "description": "The column for the slice values."},
                "title": {"type": "string", "description": "The title of the chart."},
            },
            "required": ["dataset_name", "name_column", "value_column", "title"],
        },
    },
    {
        "name": "render_line_chart",
        "description": "Render a line chart from a dataset.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to visualize."},
                "x_column": {"type": "string", "description": "The column for the X-axis."},
                "y_columns": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "The column(s) for the Y-axis.",
                },
                "title": {"type": "string", "description": "The title of the chart."},
            },
            "required": ["dataset_name", "x_column", "y_columns", "title"],
        },
    },
    {
        "name": "render_world_map",
        "description": "Render a world map shaded by a value per country.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to visualize."},
                "location_column": {"type": "string", "description": "The column containing country codes (ISO 3166-1 alpha-3)."},
                "value_column": {"type": "string", "description": "The column for the values."},
                "title": {"type": "string", "description": "The title of the map."},
            },
            "required": ["dataset_name", "location_column", "value_column", "title"],
        },
    },
    {
        "name": "render_scatter_plot",
        "description": "Render a scatter plot of two numerical columns.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to visualize."},
                "x_column": {"type": "string", "description": "The column for the X-axis."},
                "y_column": {"type": "string", "description": "The column for the Y-axis."},
                "title": {"type": "string", "description": "The title of the chart."},
            },
            "required": ["dataset_name", "x_column", "y_column", "title"],
        },
    },
    {
        "name": "render_waterfall_chart",
        "description": "Render a waterfall chart showing how consecutive values add up.",
        "parameters": {
            "type": "object",
            "properties": {
                "dataset_name": {"type": "string", "description": "Name of the dataset to visualize."},
                "category_column": {"type": "string", "description": "The column for the steps (categories)."},
                "value_column": {"type": "string", "description": "The column for the change at each step."},
                "title": {"type": "string", "description": "The title of the chart."},
            },
            "required": ["dataset_name", "category_column", "value_column", "title"],
        },
    },
    # --- Report ---
    {
        "name": "generate_report",
        "description": (
            "Generate a final report summarizing the analysis, including previously rendered "
            "charts and tables. Reference an artifact inside the summary with "
            "<artifact_start>TITLE<artifact_end>. This should be the final step of an analysis."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "The title of the final report."},
                "summary": {"type": "string", "description": "A detailed summary of the findings, in Markdown."},
                "artifact_titles": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Titles of the charts, maps or tables to include in the report.",
                },
            },
            "required": ["title", "summary", "artifact_titles"],
        },
    },
]


COMMENTARY_PROPERTY = {
    "commentary": {
        "type": "string",
        "description": (
            "Brief active-voice sentence describing what you are doing and why. "
            "Shown to the user as the plan step. "
            "Examples: 'Filtering sales to 2024 orders', "
            "'Totalling revenue per region'"
        ),
    }
}


def _inject_commentary(schema: dict) -> dict:
    """Inject the optional commentary property into a tool schema.

    Returns a shallow-copied schema.
    """
    schema = dict(schema)  # shallow copy
    params = dict(schema["parameters"])
    props = dict(params.get("properties", {}))
    props.update(COMMENTARY_PROPERTY)
    params["properties"] = props
    schema["parameters"] = params
    return schema


def get_tool_schemas(names: list[str] | None = None) -> list[dict]:
    """Return tool schemas for LLM function calling.

    Every schema is augmented with an optional ``commentary`` parameter.
    The commentary is popped before tool execution and becomes the plan
    step description.

    Args:
        names: Optional list of tool names to include.
            If None, returns all tools.
    """
    base = TOOLS if names is None else [t for t in TOOLS if t["name"] in set(names)]
    return [_inject_commentary(t) for t in base]


def get_function_schemas(names: list[str] | None = None) -> "list[FunctionSchema]":
    """Return tool schemas as ``FunctionSchema`` objects ready for LLM adapters."""
    from .llm.base import FunctionSchema
    return [
        FunctionSchema(
            name=ts["name"],
            description=ts["description"],
            parameters=ts["parameters"],
        )
        for ts in get_tool_schemas(names=names)
    ]


# Alternate argument names accepted in place of a required parameter
PARAM_ALIASES = {
    "render_pie_chart": {"name_column": "category_column"},
}


def required_params(name: str) -> list[str]:
    """Return the required parameter names of tool *name* (empty if unknown)."""
    for tool in TOOLS:
        if tool["name"] == name:
            return list(tool["parameters"].get("required", []))
    return []


def missing_params(name: str, args: dict) -> list[str]:
    """Required parameters of tool *name* that are absent (or None) in *args*."""
    aliases = PARAM_ALIASES.get(name, {})
    missing = []
    for param in required_params(name):
        if args.get(param) is not None:
            continue
        alias = aliases.get(param)
        if alias and args.get(alias) is not None:
            continue
        missing.append(param)
    return missing
