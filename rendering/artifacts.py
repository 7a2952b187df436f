"""
Visual artifacts produced by the render and report tools.

Each artifact kind is a frozen dataclass with a class-level ``kind``
discriminator.  Chart titles carry a ``[kind] `` prefix so the model can
tell artifacts apart; ``strip_type_tag`` removes it for fuzzy lookups.
"""

import re
from dataclasses import dataclass, fields
from typing import Any, ClassVar

_TYPE_TAG = re.compile(r"^\s*\[[^\]]*\]\s*")


def strip_type_tag(title: str) -> str:
    """Return *title* without a leading ``[kind]`` tag."""
    return _TYPE_TAG.sub("", title or "", count=1).strip()


def with_type_tag(kind: str, title: str) -> str:
    """Prefix *title* with ``[kind] `` unless it already carries that tag."""
    title = (title or "").strip()
    tag = f"[{kind}]"
    return title if title.startswith(tag) else f"{tag} {title}"


def _plain(value: Any) -> Any:
    if isinstance(value, Artifact):
        return value.to_dict()
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class Artifact:
    """Common base for every artifact kind."""

    kind: ClassVar[str] = "artifact"

    title: str = ""
    reviewed: bool = False

    def to_dict(self) -> dict:
        data = {"type": self.kind}
        for f in fields(self):
            data[f.name] = _plain(getattr(self, f.name))
        return data

    def describe(self) -> dict:
        """Short description used in prompts (no row data)."""
        return {"type": self.kind, "title": self.title}


@dataclass(frozen=True)
class TableArtifact(Artifact):
    kind: ClassVar[str] = "table"

    rows: tuple = ()
    column_names: tuple = ()


@dataclass(frozen=True)
class BarChartArtifact(Artifact):
    kind: ClassVar[str] = "bar_chart"

    rows: tuple = ()
    category_key: str = ""
    value_key: str = ""


@dataclass(frozen=True)
class PieChartArtifact(Artifact):
    kind: ClassVar[str] = "pie_chart"

    rows: tuple = ()
    category_key: str = ""
    value_key: str = ""


@dataclass(frozen=True)
class WaterfallChartArtifact(Artifact):
    kind: ClassVar[str] = "waterfall_chart"

    rows: tuple = ()
    category_key: str = ""
    value_key: str = ""


@dataclass(frozen=True)
class LineChartArtifact(Artifact):
    kind: ClassVar[str] = "line_chart"

    rows: tuple = ()
    x_key: str = ""
    y_keys: tuple = ()


@dataclass(frozen=True)
class WorldMapArtifact(Artifact):
    kind: ClassVar[str] = "world_map"

    rows: tuple = ()
    location_key: str = ""
    value_key: str = ""


@dataclass(frozen=True)
class ScatterPlotArtifact(Artifact):
    kind: ClassVar[str] = "scatter_plot"

    rows: tuple = ()
    x_key: str = ""
    y_key: str = ""


@dataclass(frozen=True)
class ReportArtifact(Artifact):
    """A narrative summary with embedded references to other artifacts.

    ``summary`` may contain ``<artifact_start>TITLE<artifact_end>``
    placeholders; ``image_base64`` is the PNG preview, or "" when none was
    rendered.
    """

    kind: ClassVar[str] = "report"

    summary: str = ""
    artifacts: tuple = ()
    image_base64: str = ""

    def describe(self) -> dict:
        return {
            "type": self.kind,
            "title": self.title,
            "summary": self.summary,
            "artifact_titles": [a.title for a in self.artifacts],
        }


ARTIFACT_TYPES = {
    cls.kind: cls
    for cls in (
        TableArtifact,
        BarChartArtifact,
        PieChartArtifact,
        WaterfallChartArtifact,
        LineChartArtifact,
        WorldMapArtifact,
        ScatterPlotArtifact,
        ReportArtifact,
    )
}
