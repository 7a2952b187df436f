"""Tests for report preview rendering."""

from rendering.artifacts import (
    BarChartArtifact,
    PieChartArtifact,
    ReportArtifact,
    TableArtifact,
    WorldMapArtifact,
)
from rendering.report_image import PlotlyReportRenderer, ordered_report_artifacts

BAR = BarChartArtifact(
    title="[bar_chart] Sales", rows=({"region": "North", "v": 1}, {"region": "South", "v": 2}),
    category_key="region", value_key="v",
)
TABLE = TableArtifact(title="[table] Detail", rows=({"a": 1},), column_names=("a",))
PIE = PieChartArtifact(title="[pie_chart] Share", rows=({"k": "x", "v": 3},), category_key="k", value_key="v")
MAP = WorldMapArtifact(title="[world_map] Reach", rows=({"iso": "JPN", "v": 5},), location_key="iso", value_key="v")


def test_placeholders_define_order():
    """Placeholder order wins; unreferenced artifacts follow."""
    report = ReportArtifact(
        title="Q1",
        summary="Intro <artifact_start>Detail<artifact_end> then <artifact_start>[pie_chart] Share<artifact_end>",
        artifacts=(BAR, TABLE, PIE),
    )
    assert [a.title for a in ordered_report_artifacts(report)] == [
        "[table] Detail", "[pie_chart] Share", "[bar_chart] Sales",
    ]


def test_build_figure_has_one_panel_per_artifact():
    report = ReportArtifact(title="Q1", summary="", artifacts=(BAR, TABLE, PIE, MAP))
    fig = PlotlyReportRenderer(width=600, panel_height=200).build_figure(report)
    assert fig is not None
    assert len(fig.data) == 4
    assert fig.layout.height == 200 * 4 + 80
    assert fig.layout.title.text == "Q1"


def test_empty_report_has_no_figure():
    report = ReportArtifact(title="Empty", summary="Nothing to show")
    renderer = PlotlyReportRenderer()
    assert renderer.build_figure(report) is None
    assert renderer.render(report) == ""


def test_render_failure_returns_empty(monkeypatch):
    """Export errors (e.g. kaleido missing) are logged, not raised."""
    renderer = PlotlyReportRenderer()

    def broken(self, report):
        raise RuntimeError("no exporter")

    monkeypatch.setattr(PlotlyReportRenderer, "build_figure", broken)
    report = ReportArtifact(title="Q1", artifacts=(BAR,))
    assert renderer.render(report) == ""
