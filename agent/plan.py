"""
Plan step data structures.

The planner loop keeps an append-only list of AnalysisStep entries: one per
tool call the model makes, plus synthetic steps for the review and revision
phases (which have no real tool behind them).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
import uuid


class StepStatus(Enum):
    """Lifecycle states for a plan step."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    REVIEWING = "reviewing"
    WARNING = "warning"


# Synthetic step names
CONDUCT_FINAL_REVIEW = "conduct_final_review"
REVISE_PLAN_BASED_ON_FEEDBACK = "revise_plan_based_on_feedback"
REVISE_PLAN_DUE_TO_ERROR = "revise_plan_due_to_error"


@dataclass
class AnalysisStep:
    """A single entry in the analysis plan.

    Attributes:
        sequence_number: 1-based position in the plan
        description: Human-readable summary shown to the user
        tool_name: Tool called by this step (or a synthetic step name)
        tool_args: Arguments of the call, commentary removed
        status: Current lifecycle state
        result: Result dict returned to the model after completion
        error: Error message if the step failed
        produced_dataset: Name of the dataset created by the step
    """
    sequence_number: int
    description: str
    tool_name: str
    tool_args: dict = field(default_factory=dict)
    status: StepStatus = StepStatus.PENDING
    result: Optional[dict] = None
    error: Optional[str] = None
    produced_dataset: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    def summarize(self) -> dict:
        """Compact form used in the review prompt."""
        summary: dict[str, Any] = {
            "tool": self.tool_name,
            "args": self.tool_args,
            "status": self.status.value,
        }
        if self.result:
            summary["result_summary"] = {
                k: self.result[k]
                for k in ("new_dataset_name", "rows", "message", "warning")
                if k in self.result
            }
        if self.error:
            summary["error"] = self.error
        return summary

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "sequence_number": self.sequence_number,
            "description": self.description,
            "status": self.status.value,
            "tool_call": {"name": self.tool_name, "args": self.tool_args},
            "result": self.result,
            "error": self.error,
            "produced_dataset": self.produced_dataset,
        }

