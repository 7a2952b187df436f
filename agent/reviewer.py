"""
Final review of a candidate answer.

The reviewer model sees the original request, the executed plan, the
artifacts and the draft answer, and either approves it (optionally with
polished text and revised report summaries) or sends feedback that the
planner must act on.  A single attempt is made; any failure approves the
draft unchanged.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import config

from .event_bus import REVIEW_DECISION, REVIEWER_PROMPT, EventBus
from .llm import ExternalServiceError, LLMAdapter
from .messages import REVIEWER_FALLBACK_FEEDBACK
from .prompts import REVIEWER_SCHEMA, build_reviewer_prompt
from .retry_policy import RetryPolicy
from .strategist import parse_json_payload
from .turn_limits import get_limit

logger = logging.getLogger("tabula")

APPROVE = "approve"
REVISE = "revise"


@dataclass
class ReviewResult:
    decision: str
    feedback: str = ""
    revised_text: Optional[str] = None
    revised_artifacts: list[dict] = field(default_factory=list)

    @property
    def approved(self) -> bool:
        return self.decision == APPROVE


def parse_review(text: str) -> ReviewResult:
    payload = parse_json_payload(text)
    decision = str(payload.get("decision") or "").strip().lower()
    if decision not in (APPROVE, REVISE):
        raise ExternalServiceError(f"Unknown review decision {payload.get('decision')!r}")
    feedback = str(payload.get("feedback") or "")
    if decision == REVISE and not feedback.strip():
        raise ExternalServiceError("Review asked for a revision without feedback")
    revised_text = payload.get("revised_text")
    revised_artifacts = [
        {"title": str(r["title"]), "summary": str(r["summary"])}
        for r in payload.get("revised_artifacts") or []
        if isinstance(r, dict) and r.get("title") and r.get("summary") is not None
    ]
    return ReviewResult(
        decision=decision,
        feedback=feedback,
        revised_text=str(revised_text) if revised_text else None,
        revised_artifacts=revised_artifacts,
    )


class Reviewer:
    """Approves or sends back the planner's final answer."""

    def __init__(
        self,
        adapter: LLMAdapter,
        bus: EventBus,
        model: str | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.adapter = adapter
        self.bus = bus
        self.model = model or config.REVIEWER_MODEL
        self.policy = policy or RetryPolicy(max_attempts=get_limit("reviewer.max_attempts"))

    def review(self, query: str, plan: list[dict], artifacts: list[dict], draft: str) -> ReviewResult:
        prompt = build_reviewer_prompt(query, plan, artifacts, draft)
        self.bus.emit(
            REVIEWER_PROMPT,
            agent="reviewer",
            level="debug",
            summary="[Reviewer] Prompt sent",
            details=prompt,
            data={"plan_steps": len(plan), "artifacts": len(artifacts)},
        )

        def attempt() -> ReviewResult:
            response = self.adapter.generate(self.model, prompt, json_schema=REVIEWER_SCHEMA)
            return parse_review(response.text)

        def fallback() -> ReviewResult:
            return ReviewResult(decision=APPROVE, feedback=REVIEWER_FALLBACK_FEEDBACK, revised_text=draft)

        result = self.policy.call(attempt, fallback, label="Reviewer call")
        self.bus.emit(
            REVIEW_DECISION,
            agent="reviewer",
            level="info",
            msg=f"[Reviewer] {result.decision}: {result.feedback}" if result.feedback
            else f"[Reviewer] {result.decision}",
            data={
                "decision": result.decision,
                "feedback": result.feedback,
                "revised_artifacts": [r["title"] for r in result.revised_artifacts],
            },
        )
        return result
