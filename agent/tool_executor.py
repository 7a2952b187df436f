"""
Tool dispatcher: routes one model tool call to its handler.

The executor owns the session's data substrate (DatasetStore), the
ArtifactRegistry and the report renderer.  It validates the call against
the tool schema, emits TOOL_CALL / TOOL_RESULT / TOOL_ERROR on the session
bus, and lets handler exceptions propagate unchanged so the planner loop
can decide between self-correction and termination.
"""

import logging
import time
from dataclasses import replace
from typing import Any, Mapping, Optional

import numpy as np

from data_ops.errors import NotFoundError, ValidationError
from data_ops.results import OpResult
from data_ops.store import DatasetStore
from rendering.artifacts import Artifact, ReportArtifact
from rendering.registry import ArtifactRegistry
from rendering.report_image import NullReportRenderer, ReportRenderer

from .event_bus import ARTIFACT_CREATED, TOOL_CALL, TOOL_ERROR, TOOL_RESULT, EventBus
from .llm import ToolCall
from .logging import log_error
from .tool_handlers import TOOL_REGISTRY
from .tools import missing_params

logger = logging.getLogger("tabula")


class ToolExecutor:
    """Executes tool calls against the session's datasets and artifacts."""

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        renderer: Optional[ReportRenderer] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.bus = bus or EventBus()
        self.store = DatasetStore()
        self.registry = ArtifactRegistry()
        self.renderer = renderer or NullReportRenderer()
        self.rng = rng

    # ---- Data ----

    def load_data(self, datasets: Mapping[str, Any]) -> None:
        """Replace the base datasets (lists of records or DataFrames)."""
        self.store.load_base(datasets)

    def dataset_schemas(self) -> dict[str, list[str]]:
        """Column names of every base dataset, for prompt building."""
        return {d.name: list(d.column_names) for d in self.store.base_datasets()}

    def reset(self) -> None:
        """Drop intermediate datasets and artifacts; base datasets stay loaded."""
        self.store.reset()
        self.registry.reset()

    # ---- Artifacts ----

    @property
    def artifacts(self) -> list[Artifact]:
        return self.registry.all()

    def mark_all_artifacts_reviewed(self) -> None:
        self.registry.mark_all_reviewed()

    def update_artifacts(self, revisions: list[dict]) -> list[str]:
        """Apply reviewer revisions to report summaries.

        Each revision is ``{"title": ..., "summary": ...}``.  Only reports
        are revised; the preview image is rendered again from the new
        summary.  Returns the titles that were updated.
        """
        updated = []
        for revision in revisions or []:
            if not isinstance(revision, dict):
                continue
            title = revision.get("title")
            summary = revision.get("summary")
            if not title or summary is None:
                continue
            current = self.registry.find(str(title))
            if not isinstance(current, ReportArtifact):
                logger.debug("Revision for %r ignored: no report with that title", title)
                continue
            revised = replace(current, summary=str(summary), image_base64="")
            image = self.renderer.render(revised)
            if image:
                revised = replace(revised, image_base64=image)
            self.registry.swap(current, revised)
            updated.append(current.title)
        return updated

    # ---- Dispatch ----

    def _register(self, outcome: OpResult) -> None:
        """Add the produced artifact and report its final title to the model."""
        requested = outcome.artifact.title
        outcome.artifact = self.registry.add(outcome.artifact)
        final = outcome.artifact.title
        outcome.result["title"] = final
        if final != requested and "message" in outcome.result:
            outcome.result["message"] = outcome.result["message"].replace(
                f'"{requested}"', f'"{final}"'
            )

    def execute(self, tool_call: ToolCall) -> OpResult:
        """Run *tool_call* and return its OpResult.

        Raises:
            NotFoundError: unknown tool, dataset or column.
            ValidationError: missing or invalid arguments.
            DataOpsError: any other failure of the operation itself.
        """
        tool_name = tool_call.name
        tool_args = {k: v for k, v in (tool_call.args or {}).items() if k != "commentary"}

        self.bus.emit(
            TOOL_CALL,
            level="info",
            msg=f"[Tool] {tool_name}({tool_args})",
            data={"tool_name": tool_name, "tool_args": tool_args},
        )

        t0 = time.monotonic()
        try:
            handler = TOOL_REGISTRY.get(tool_name)
            if handler is None:
                raise NotFoundError(f'Tool "{tool_name}" not found.')
            missing = missing_params(tool_name, tool_args)
            if missing:
                raise ValidationError(f"Missing required parameter(s): {', '.join(missing)}")

            outcome = handler(self, tool_args)
            if outcome.artifact is not None:
                self._register(outcome)
        except Exception as e:
            elapsed_ms = int((time.monotonic() - t0) * 1000)
            log_error(
                f"Tool {tool_name} failed",
                exc=e,
                context={"tool_name": tool_name, "tool_args": tool_args},
            )
            self.bus.emit(
                TOOL_ERROR,
                level="error",
                msg=f"[Tool] {tool_name} failed: {e}",
                data={
                    "tool_name": tool_name,
                    "tool_args": tool_args,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "elapsed_ms": elapsed_ms,
                },
            )
            raise

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        self.bus.emit(
            TOOL_RESULT,
            level="info",
            msg=f"[Tool Result] {tool_name}: success",
            data={
                "tool_name": tool_name,
                "status": "success",
                "elapsed_ms": elapsed_ms,
                "result": outcome.result,
            },
        )
        if outcome.artifact is not None:
            self.bus.emit(
                ARTIFACT_CREATED,
                level="info",
                msg=f"[Artifact] {outcome.artifact.title}",
                data={"artifact": outcome.artifact},
            )
        return outcome
