"""
Clarification step run before planning.

The strategist model reads the user's request, the dataset schemas and the
clarification conversation so far, and either asks the user follow-up
questions or hands the planner a refined instruction.  A failing strategist
never blocks the user: after the retries the request is treated as clear.
"""

import json
import logging
import re
from dataclasses import dataclass, field

import config

from .event_bus import DEBUG, STRATEGIST_PROMPT, EventBus
from .llm import ExternalServiceError, LLMAdapter
from .messages import STRATEGIST_FALLBACK_INSTRUCTION
from .prompts import STRATEGIST_SCHEMA, build_strategist_prompt
from .retry_policy import RetryPolicy, linear_backoff
from .turn_limits import get_limit

logger = logging.getLogger("tabula")

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass
class StrategistDecision:
    is_clear: bool
    questions_for_user: list[str] = field(default_factory=list)
    recommendations_for_user: list[str] = field(default_factory=list)
    instructions_for_planner_ai: str = ""

    @classmethod
    def fallback(cls) -> "StrategistDecision":
        return cls(is_clear=True, instructions_for_planner_ai=STRATEGIST_FALLBACK_INSTRUCTION)


def parse_json_payload(text: str) -> dict:
    """Parse a model JSON reply, tolerating a surrounding markdown fence.

    Raises:
        ExternalServiceError: if the text is not a JSON object.
    """
    text = (text or "").strip()
    match = _FENCE.match(text)
    if match:
        text = match.group(1)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"Model returned invalid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ExternalServiceError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def _string_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        raise ExternalServiceError(f"Expected a list of strings, got {type(value).__name__}")
    return [str(v) for v in value if str(v).strip()]


def parse_decision(text: str) -> StrategistDecision:
    payload = parse_json_payload(text)
    is_clear = payload.get("is_clear")
    if not isinstance(is_clear, bool):
        raise ExternalServiceError("Strategist response is missing a boolean 'is_clear'")
    return StrategistDecision(
        is_clear=is_clear,
        questions_for_user=_string_list(payload.get("questions_for_user")),
        recommendations_for_user=_string_list(payload.get("recommendations_for_user")),
        instructions_for_planner_ai=str(payload.get("instructions_for_planner_ai") or ""),
    )


class Strategist:
    """Decides whether a request is ready to plan."""

    def __init__(
        self,
        adapter: LLMAdapter,
        bus: EventBus,
        model: str | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.adapter = adapter
        self.bus = bus
        self.model = model or config.STRATEGIST_MODEL
        self.policy = policy or RetryPolicy(
            max_attempts=get_limit("strategist.max_attempts"),
            backoff=linear_backoff(get_limit("strategist.backoff_seconds")),
        )

    def assess(
        self,
        query: str,
        schemas: dict[str, list[str]],
        history: list[tuple[str, str]],
    ) -> StrategistDecision:
        prompt = build_strategist_prompt(schemas, query, history)
        self.bus.emit(
            STRATEGIST_PROMPT,
            agent="strategist",
            level="debug",
            summary="[Strategist] Prompt sent",
            details=prompt,
            data={"query": query, "history_turns": len(history)},
        )

        def attempt() -> StrategistDecision:
            response = self.adapter.generate(self.model, prompt, json_schema=STRATEGIST_SCHEMA)
            return parse_decision(response.text)

        def fallback() -> StrategistDecision:
            logger.error("Strategist failed after %d attempt(s); treating the request as clear",
                         self.policy.max_attempts)
            return StrategistDecision.fallback()

        decision = self.policy.call(attempt, fallback, label="Strategist call")
        self.bus.emit(
            DEBUG,
            agent="strategist",
            level="info",
            msg=f"[Strategist] is_clear={decision.is_clear}",
            data={
                "is_clear": decision.is_clear,
                "questions_for_user": decision.questions_for_user,
                "recommendations_for_user": decision.recommendations_for_user,
                "instructions_for_planner_ai": decision.instructions_for_planner_ai,
            },
        )
        return decision
