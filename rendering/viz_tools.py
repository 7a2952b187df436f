"""
Visualization tools: data verification, chart/table constructors, reports.

The render_* functions are pure artifact constructors; the executor adds
the returned artifact to the session's ArtifactRegistry, which assigns the
final unique title.
"""

import logging
from dataclasses import replace
from typing import Any, Optional

from data_ops.errors import ValidationError
from data_ops.results import OpResult
from data_ops.store import Dataset, DatasetStore
from data_ops.transforms import require_columns

from .artifacts import (
    BarChartArtifact,
    LineChartArtifact,
    PieChartArtifact,
    ReportArtifact,
    ScatterPlotArtifact,
    TableArtifact,
    WaterfallChartArtifact,
    WorldMapArtifact,
    with_type_tag,
)
from .registry import ArtifactRegistry
from .report_image import ReportRenderer

logger = logging.getLogger("tabula")

VISUALIZATION_TYPES = (
    "bar_chart", "pie_chart", "line_chart", "world_map", "scatter_plot", "waterfall_chart",
)

MAX_CATEGORIES = 50
MAX_MARKDOWN_ROWS = 100

# Chart types where a high-cardinality category axis is expected
_UNBOUNDED_CATEGORY_TYPES = ("line_chart", "world_map", "scatter_plot")
_SINGLE_CATEGORY_CHECK_TYPES = ("bar_chart", "line_chart")


# ---------------------------------------------------------------------------
# verify_visualization_data
# ---------------------------------------------------------------------------

def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def _check_numeric(dataset: Dataset, column: str) -> Optional[str]:
    if column not in dataset.column_names:
        return (
            f'Column "{column}" does not exist in dataset "{dataset.name}". '
            f"Available columns: {', '.join(dataset.column_names)}"
        )
    for value in dataset.column(column):
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return (
                f'Column "{column}" is not numeric, which is required for a value axis. '
                f"Its type is {_type_name(value)}. Please ensure data is correctly aggregated "
                "or the correct column is chosen."
            )
        break
    return None


def _bindings(visualization_type: str, columns: dict) -> tuple[list, Optional[str]]:
    """Return (value columns, category column) for a chart type."""
    if visualization_type in ("bar_chart", "waterfall_chart"):
        return [columns.get("value_column")], columns.get("category_column")
    if visualization_type == "pie_chart":
        return [columns.get("value_column")], columns.get("category_column") or columns.get("name_column")
    if visualization_type == "line_chart":
        y_columns = columns.get("y_columns") or []
        if isinstance(y_columns, str):
            y_columns = [y_columns]
        return list(y_columns), columns.get("x_column")
    if visualization_type == "world_map":
        return [columns.get("value_column")], columns.get("location_column")
    if visualization_type == "scatter_plot":
        return [columns.get("x_column"), columns.get("y_column")], None
    return [], None


def verify_visualization_data(
    store: DatasetStore,
    dataset_name: str,
    visualization_type: str,
    columns: Optional[dict] = None,
) -> OpResult:
    """Check that a dataset is suitable for the planned chart.

    Problems are reported as ``status: WARNING`` with an explanation rather
    than raised, so the model can decide how to adjust.
    """
    dataset = store.get(dataset_name)
    if visualization_type not in VISUALIZATION_TYPES:
        raise ValidationError(
            f'Unsupported visualization type "{visualization_type}". '
            f"Supported: {', '.join(VISUALIZATION_TYPES)}"
        )

    def warn(message: str) -> OpResult:
        return OpResult(result={"status": "WARNING", "message": message})

    if dataset.row_count == 0:
        return warn(f'Dataset "{dataset_name}" is empty. No chart can be generated.')

    value_columns, category_column = _bindings(visualization_type, columns or {})
    for column in value_columns:
        if not column:
            continue
        problem = _check_numeric(dataset, column)
        if problem:
            return warn(problem)

    if category_column:
        if category_column not in dataset.column_names:
            return warn(
                f'Category column "{category_column}" does not exist in dataset "{dataset_name}". '
                f"Available columns: {', '.join(dataset.column_names)}"
            )
        unique = len(set(dataset.column(category_column)))
        if unique > MAX_CATEGORIES and visualization_type not in _UNBOUNDED_CATEGORY_TYPES:
            return warn(
                f'The category column "{category_column}" has {unique} unique values which may be '
                "too many for a clear visualization. The data might not be properly aggregated."
            )
        if unique == 1 and visualization_type in _SINGLE_CATEGORY_CHECK_TYPES:
            return warn(
                f'The category column "{category_column}" only has one unique value. '
                f"A {visualization_type} may not be informative. A descriptive statistic might be better."
            )

    return OpResult(result={"status": "OK", "message": "Data is suitable for visualization."})


# ---------------------------------------------------------------------------
# render_*
# ---------------------------------------------------------------------------

def _escape_cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("|", "\\|")


def markdown_table(rows, columns, max_rows: int = MAX_MARKDOWN_ROWS) -> str:
    """Render rows as a GitHub-flavored markdown table."""
    if not rows:
        return "No data to display."
    header = "| " + " | ".join(_escape_cell(c) for c in columns) + " |"
    separator = "| " + " | ".join("---" for _ in columns) + " |"
    body = [
        "| " + " | ".join(_escape_cell(row.get(c)) for c in columns) + " |"
        for row in rows[:max_rows]
    ]
    text = "\n".join([header, separator, *body])
    if len(rows) > max_rows:
        text += f"\n\n(showing first {max_rows} of {len(rows)} rows)"
    return text


def _chart_result(label: str, title: str, dataset: Dataset, artifact) -> OpResult:
    return OpResult(
        result={"message": f'{label} "{title}" created.', "data_preview": dataset.preview()},
        artifact=artifact,
    )


def render_table(store: DatasetStore, dataset_name: str, title: str) -> OpResult:
    dataset = store.get(dataset_name)
    title = with_type_tag(TableArtifact.kind, title)
    artifact = TableArtifact(title=title, rows=dataset.rows, column_names=dataset.column_names)
    markdown = f"### {title}\n\n{markdown_table(dataset.rows, dataset.column_names)}"
    return OpResult(
        result={
            "message": f'Table "{title}" created.',
            "markdown_table": markdown,
            "data_preview": dataset.preview(),
        },
        artifact=artifact,
    )


def render_bar_chart(store: DatasetStore, dataset_name: str, category_column: str,
                     value_column: str, title: str) -> OpResult:
    dataset = store.get(dataset_name)
    require_columns(dataset, category_column, value_column)
    title = with_type_tag(BarChartArtifact.kind, title)
    artifact = BarChartArtifact(title=title, rows=dataset.rows,
                                category_key=category_column, value_key=value_column)
    return _chart_result("Bar chart", title, dataset, artifact)


def render_pie_chart(store: DatasetStore, dataset_name: str, category_column: str,
                     value_column: str, title: str) -> OpResult:
    dataset = store.get(dataset_name)
    require_columns(dataset, category_column, value_column)
    title = with_type_tag(PieChartArtifact.kind, title)
    artifact = PieChartArtifact(title=title, rows=dataset.rows,
                                category_key=category_column, value_key=value_column)
    return _chart_result("Pie chart", title, dataset, artifact)


def render_line_chart(store: DatasetStore, dataset_name: str, x_column: str,
                      y_columns: list[str], title: str) -> OpResult:
    dataset = store.get(dataset_name)
    if isinstance(y_columns, str):
        y_columns = [y_columns]
    if not y_columns:
        raise ValidationError("render_line_chart requires at least one column in y_columns.")
    require_columns(dataset, x_column, *y_columns)
    title = with_type_tag(LineChartArtifact.kind, title)
    artifact = LineChartArtifact(title=title, rows=dataset.rows,
                                 x_key=x_column, y_keys=tuple(y_columns))
    return _chart_result("Line chart", title, dataset, artifact)


def render_world_map(store: DatasetStore, dataset_name: str, location_column: str,
                     value_column: str, title: str) -> OpResult:
    dataset = store.get(dataset_name)
    require_columns(dataset, location_column, value_column)
    title = with_type_tag(WorldMapArtifact.kind, title)
    artifact = WorldMapArtifact(title=title, rows=dataset.rows,
                                location_key=location_column, value_key=value_column)
    return _chart_result("World map", title, dataset, artifact)


def render_scatter_plot(store: DatasetStore, dataset_name: str, x_column: str,
                        y_column: str, title: str) -> OpResult:
    dataset = store.get(dataset_name)
    require_columns(dataset, x_column, y_column)
    title = with_type_tag(ScatterPlotArtifact.kind, title)
    artifact = ScatterPlotArtifact(title=title, rows=dataset.rows, x_key=x_column, y_key=y_column)
    return _chart_result("Scatter plot", title, dataset, artifact)


def render_waterfall_chart(store: DatasetStore, dataset_name: str, category_column: str,
                           value_column: str, title: str) -> OpResult:
    dataset = store.get(dataset_name)
    require_columns(dataset, category_column, value_column)
    title = with_type_tag(WaterfallChartArtifact.kind, title)
    artifact = WaterfallChartArtifact(title=title, rows=dataset.rows,
                                      category_key=category_column, value_key=value_column)
    return _chart_result("Waterfall chart", title, dataset, artifact)


# ---------------------------------------------------------------------------
# generate_report
# ---------------------------------------------------------------------------

def generate_report(
    registry: ArtifactRegistry,
    renderer: ReportRenderer,
    title: str,
    summary: str,
    artifact_titles: list[str],
) -> OpResult:
    """Assemble a report from previously created artifacts.

    Titles that resolve to nothing are listed under ``missing_artifacts``
    instead of failing the call.
    """
    if isinstance(artifact_titles, str):
        artifact_titles = [artifact_titles]

    resolved = []
    missing = []
    seen: set[str] = set()
    for requested in artifact_titles or []:
        requested = str(requested).strip()
        if not requested:
            continue
        artifact = registry.find(requested)
        if artifact is None:
            missing.append(requested)
        elif artifact.title not in seen:
            seen.add(artifact.title)
            resolved.append(artifact)

    report = ReportArtifact(title=str(title).strip(), summary=summary or "", artifacts=tuple(resolved))
    image = renderer.render(report)
    if image:
        report = replace(report, image_base64=image)
    else:
        logger.debug("Report %r has no preview image", report.title)

    result = {
        "message": f'Report "{report.title}" has been generated.',
        "included_artifacts": [a.title for a in resolved],
    }
    if missing:
        result["missing_artifacts"] = missing
    return OpResult(result=result, artifact=report)
