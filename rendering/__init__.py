"""Artifacts, the session artifact registry, and report rendering."""

from .artifacts import ARTIFACT_TYPES, Artifact, ReportArtifact, strip_type_tag, with_type_tag
from .registry import ArtifactRegistry
from .report_image import NullReportRenderer, PlotlyReportRenderer, ReportRenderer

__all__ = [
    "ARTIFACT_TYPES",
    "Artifact",
    "ArtifactRegistry",
    "NullReportRenderer",
    "PlotlyReportRenderer",
    "ReportArtifact",
    "ReportRenderer",
    "strip_type_tag",
    "with_type_tag",
]
