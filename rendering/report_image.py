"""
Render-to-image collaborator for report artifacts.

``PlotlyReportRenderer`` lays the charts and tables referenced by a report
out as one Plotly subplot figure (one panel per artifact) and exports it to
PNG through kaleido.  Rendering failures are logged and yield "" so a report
is still produced without its preview.
"""

from __future__ import annotations

import base64
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .artifacts import (
    Artifact,
    BarChartArtifact,
    LineChartArtifact,
    PieChartArtifact,
    ReportArtifact,
    ScatterPlotArtifact,
    TableArtifact,
    WaterfallChartArtifact,
    WorldMapArtifact,
    strip_type_tag,
)

logger = logging.getLogger("tabula")

PLACEHOLDER = re.compile(r"<artifact_start>(.*?)<artifact_end>", re.DOTALL)

# Explicit layout defaults so exported images do not pick up a dark theme
_DEFAULT_LAYOUT = dict(
    paper_bgcolor="white",
    plot_bgcolor="white",
    font_color="#2a3f5f",
    autosize=False,
)

_PANEL_HEIGHT = 360  # px per subplot panel
_DEFAULT_WIDTH = 900  # px figure width
_MAX_TABLE_ROWS = 20


def ordered_report_artifacts(report: ReportArtifact) -> list[Artifact]:
    """Artifacts in display order: placeholder order first, then the rest."""
    by_title = {a.title: a for a in report.artifacts}
    by_stripped = {strip_type_tag(a.title): a for a in report.artifacts}
    ordered: list[Artifact] = []
    seen: set[str] = set()
    for raw in PLACEHOLDER.findall(report.summary or ""):
        title = raw.strip()
        artifact = by_title.get(title) or by_stripped.get(strip_type_tag(title))
        if artifact is not None and artifact.title not in seen:
            seen.add(artifact.title)
            ordered.append(artifact)
    for artifact in report.artifacts:
        if artifact.title not in seen:
            seen.add(artifact.title)
            ordered.append(artifact)
    return ordered


class ReportRenderer(ABC):
    """Turns a report artifact into a base64-encoded PNG preview."""

    @abstractmethod
    def render(self, report: ReportArtifact) -> str:
        """Return a base64 PNG, or "" when no preview could be produced."""


class NullReportRenderer(ReportRenderer):
    """Renderer that never produces a preview (tests, --no-images)."""

    def render(self, report: ReportArtifact) -> str:
        return ""


def _panel_spec(artifact: Artifact) -> dict:
    if isinstance(artifact, TableArtifact):
        return {"type": "table"}
    if isinstance(artifact, PieChartArtifact):
        return {"type": "domain"}
    if isinstance(artifact, WorldMapArtifact):
        return {"type": "geo"}
    return {"type": "xy"}


def _column(rows: tuple, key: str) -> list:
    return [row.get(key) for row in rows]


def _traces(artifact: Artifact) -> list:
    rows = getattr(artifact, "rows", ())
    if isinstance(artifact, TableArtifact):
        shown = rows[:_MAX_TABLE_ROWS]
        return [go.Table(
            header=dict(values=list(artifact.column_names)),
            cells=dict(values=[_column(shown, c) for c in artifact.column_names]),
        )]
    if isinstance(artifact, BarChartArtifact):
        return [go.Bar(x=_column(rows, artifact.category_key), y=_column(rows, artifact.value_key),
                       name=artifact.value_key)]
    if isinstance(artifact, WaterfallChartArtifact):
        return [go.Waterfall(x=_column(rows, artifact.category_key), y=_column(rows, artifact.value_key),
                             measure=["relative"] * len(rows), name=artifact.value_key)]
    if isinstance(artifact, PieChartArtifact):
        return [go.Pie(labels=_column(rows, artifact.category_key), values=_column(rows, artifact.value_key))]
    if isinstance(artifact, LineChartArtifact):
        x = _column(rows, artifact.x_key)
        return [go.Scatter(x=x, y=_column(rows, y), mode="lines", name=y) for y in artifact.y_keys]
    if isinstance(artifact, ScatterPlotArtifact):
        return [go.Scatter(x=_column(rows, artifact.x_key), y=_column(rows, artifact.y_key),
                           mode="markers", name=artifact.y_key)]
    if isinstance(artifact, WorldMapArtifact):
        return [go.Choropleth(locations=_column(rows, artifact.location_key),
                              z=_column(rows, artifact.value_key),
                              locationmode="ISO-3", showscale=False)]
    return []


class PlotlyReportRenderer(ReportRenderer):
    """Exports a report's artifacts as a stacked Plotly figure."""

    def __init__(self, width: int = _DEFAULT_WIDTH, panel_height: int = _PANEL_HEIGHT):
        self.width = width
        self.panel_height = panel_height

    def build_figure(self, report: ReportArtifact) -> Optional[go.Figure]:
        """Build the figure, or return None when nothing is drawable."""
        panels = [a for a in ordered_report_artifacts(report) if _traces(a)]
        if not panels:
            return None

        fig = make_subplots(
            rows=len(panels),
            cols=1,
            specs=[[_panel_spec(a)] for a in panels],
            subplot_titles=[a.title for a in panels],
            vertical_spacing=min(0.08, 0.3 / len(panels)),
        )
        for i, artifact in enumerate(panels, start=1):
            for trace in _traces(artifact):
                fig.add_trace(trace, row=i, col=1)
        fig.update_layout(
            title_text=report.title,
            width=self.width,
            height=self.panel_height * len(panels) + 80,
            **_DEFAULT_LAYOUT,
        )
        return fig

    def render(self, report: ReportArtifact) -> str:
        try:
            fig = self.build_figure(report)
            if fig is None:
                return ""
            png = fig.to_image(format="png")
        except Exception as e:
            logger.warning("Report preview for %r could not be rendered: %s", report.title, e)
            return ""
        return base64.b64encode(png).decode("ascii")
