"""
Core agent logic - orchestrates Gemini calls and tool execution.

The AnalystAgent runs one analysis request end to end:
- Strategist: decides whether the request needs clarification first
- Planner: a function-calling chat that transforms datasets and renders
  artifacts through the ToolExecutor, self-correcting on tool errors
- Reviewer: checks the candidate final answer and may send the planner
  back for additional steps

Everything observable (plan changes, tool calls, messages) is emitted on
the session EventBus.
"""

import math
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

import config
from config import get_api_key
from rendering.artifacts import Artifact
from rendering.report_image import NullReportRenderer, PlotlyReportRenderer, ReportRenderer

from .event_bus import (
    AGENT_RESPONSE,
    ARTIFACT_CREATED,
    CLARIFICATION,
    PLAN_UPDATED,
    PLANNER_INSTRUCTION,
    STEP_UPDATED,
    TEXT_DELTA,
    USER_MESSAGE,
    DebugLogListener,
    EventBus,
)
from .llm import GeminiAdapter, LLMAdapter, LLMResponse, ToolCall
from .llm_utils import send_with_timeout
from .logging import attach_log_file, get_logger, log_error, set_session_id, setup_logging
from . import messages
from .plan import (
    CONDUCT_FINAL_REVIEW,
    REVISE_PLAN_BASED_ON_FEEDBACK,
    REVISE_PLAN_DUE_TO_ERROR,
    AnalysisStep,
    StepStatus,
)
from .prompts import (
    EMPTY_RESPONSE_NUDGE,
    INCOMPLETE_ANSWER_NUDGE,
    USER_INPUT_REQUIRED,
    build_clarification_question,
    build_planner_instruction,
    build_revision_instruction,
    build_self_correction,
    get_system_prompt,
)
from .reviewer import Reviewer
from .strategist import Strategist
from .tool_executor import ToolExecutor
from .tools import get_function_schemas
from .turn_limits import get_limit

REVIEW_NEW_ARTIFACTS = "new_artifacts"

# Final answers shorter than this are treated as incomplete
_MIN_ANSWER_CHARS = 20

# Single-line replies that only acknowledge or promise work
_ACK_PREFIX = re.compile(
    r"^(ok|okay|sure|understood|got it|certainly|will do|noted|alright|i will|i'll|let me)\b",
    re.IGNORECASE,
)
_MAX_ACK_CHARS = 80


def _sanitize_for_json(obj):
    """Recursively replace NaN/Inf floats with None for JSON safety.

    Gemini's API rejects function_response containing NaN or Inf values
    (400 INVALID_ARGUMENT). This ensures all tool results are safe.
    """
    if isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        return None
    if isinstance(obj, dict):
        return {k: _sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize_for_json(v) for v in obj]
    return obj


def is_incomplete_answer(text: str) -> bool:
    """True for very short replies and bare acknowledgements."""
    stripped = (text or "").strip()
    if len(stripped) < _MIN_ANSWER_CHARS:
        return True
    return (
        len(stripped) < _MAX_ACK_CHARS
        and "\n" not in stripped
        and _ACK_PREFIX.match(stripped) is not None
    )


class Terminal(Enum):
    """How a run ended."""
    DONE = "done"
    ERROR = "error"
    TURN_LIMIT = "turn_limit"
    NO_RESPONSE = "no_response"
    INCOMPLETE = "incomplete"
    AWAITING_USER = "awaiting_user"
    CLARIFICATION_NEEDED = "clarification_needed"


@dataclass
class ClarificationState:
    """An open clarification conversation with the strategist.

    Attributes:
        original_query: The request that started the conversation
        history: (role, text) turns; role is "user" or "model"
    """
    original_query: str
    history: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class RunOutcome:
    status: str
    terminal: Terminal
    message: str
    clarification: Optional[ClarificationState] = None
    plan: list[AnalysisStep] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)


@dataclass
class _LoopCounters:
    consecutive_errors: int = 0
    empty_responses: int = 0
    invalid_responses: int = 0


class AnalystAgent:
    """Runs analysis requests against a set of in-memory datasets."""

    def __init__(
        self,
        adapter: LLMAdapter,
        datasets: Optional[Mapping[str, Any]] = None,
        *,
        bus: Optional[EventBus] = None,
        renderer: Optional[ReportRenderer] = None,
        model: str | None = None,
        review_policy: str | None = None,
        strategist: Optional[Strategist] = None,
        reviewer: Optional[Reviewer] = None,
        retry_timeout: float | None = None,
        session_id: str | None = None,
    ):
        """Initialize the agent.

        Args:
            adapter: LLM adapter used for the planner, strategist and reviewer.
            datasets: Base datasets, name → records or DataFrame.
            bus: Session event bus (a new one is created if omitted).
            renderer: Report preview renderer (no previews if omitted).
            model: Planner model name (default: config.PLANNER_MODEL).
            review_policy: "always" or "new_artifacts" (default: config.REVIEW_POLICY).
            retry_timeout: Seconds before a planner call is abandoned and retried.
        """
        self.session_id = session_id or (
            datetime.now().strftime("%Y%m%d_%H%M%S") + "_" + uuid.uuid4().hex[:6]
        )
        self.logger = get_logger()
        self.adapter = adapter
        self.model_name = model or config.PLANNER_MODEL
        self.review_policy = review_policy or config.REVIEW_POLICY
        self._retry_timeout = float(retry_timeout or config.LLM_TIMEOUT_SECONDS)

        self._event_bus = bus or EventBus(session_id=self.session_id)
        self._event_bus.session_id = self.session_id
        self._event_bus.subscribe(DebugLogListener(self.logger))

        self.executor = ToolExecutor(bus=self._event_bus, renderer=renderer or NullReportRenderer())
        if datasets:
            self.executor.load_data(datasets)

        self.strategist = strategist or Strategist(adapter, self._event_bus)
        self.reviewer = reviewer or Reviewer(adapter, self._event_bus)

        self._system_prompt = get_system_prompt()
        self._tool_schemas = get_function_schemas()
        self._timeout_pool = ThreadPoolExecutor(max_workers=1)

        self.plan: list[AnalysisStep] = []
        self.clarification: Optional[ClarificationState] = None
        self._query = ""
        self.chat = self._new_chat()

    # ---- Public API ----

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def artifacts(self) -> list[Artifact]:
        return self.executor.artifacts

    def load_data(self, datasets: Mapping[str, Any]) -> None:
        self.executor.load_data(datasets)

    def reset(self) -> None:
        """Start over: new planner chat, empty plan, no artifacts or derived data."""
        self.chat = self._new_chat()
        self.executor.reset()
        self.plan = []
        self.clarification = None
        self._query = ""
        self._event_bus.clear()
        self.logger.debug("Session reset")

    def run(self, message: str) -> RunOutcome:
        """Process one user message and return how the run ended."""
        self._event_bus.emit(
            USER_MESSAGE,
            level="info",
            msg=f"[User] {message}",
            data={"text": message},
        )

        if self.clarification is not None or not self.plan:
            if self.clarification is not None:
                state = self.clarification
                state.history.append(("user", message))
            else:
                state = ClarificationState(original_query=message)

            decision = self.strategist.assess(
                state.original_query, self.executor.dataset_schemas(), list(state.history)
            )
            if not decision.is_clear:
                question = build_clarification_question(
                    decision.questions_for_user, decision.recommendations_for_user
                )
                state.history.append(("model", question))
                self.clarification = state
                self._event_bus.emit(
                    CLARIFICATION,
                    level="info",
                    msg=f"[Clarification] {question}",
                    data={"text": question, "questions": decision.questions_for_user},
                )
                return RunOutcome(
                    status="clarification_needed",
                    terminal=Terminal.CLARIFICATION_NEEDED,
                    message=question,
                    clarification=state,
                    plan=list(self.plan),
                    artifacts=self.artifacts,
                )

            self.clarification = None
            self._query = state.original_query
            planner_message = build_planner_instruction(
                state.original_query, decision.instructions_for_planner_ai
            )
            self._event_bus.emit(
                PLANNER_INSTRUCTION,
                level="info",
                summary="[Planner] Refined instruction",
                details=planner_message,
                data={"instruction": decision.instructions_for_planner_ai},
            )
        else:
            # Reply to the planner: continue the existing chat verbatim
            planner_message = message
            self._query = f"{self._query}\n\nFollow-up: {message}" if self._query else message

        return self._run_planner(planner_message)

    # ---- Planner loop ----

    def _run_planner(self, message) -> RunOutcome:
        counters = _LoopCounters()
        artifacts_at_start = len(self.executor.registry)
        max_turns = get_limit("planner.max_turns")
        current = message

        for turn in range(max_turns):
            try:
                response = self._send_message(current)
            except Exception as e:
                log_error(
                    "Planner model call failed",
                    exc=e,
                    context={"turn": turn, "model": self.model_name},
                )
                return self._finish(Terminal.ERROR, messages.SERVICE_UNAVAILABLE)

            if response.is_empty:
                counters.empty_responses += 1
                if counters.empty_responses >= get_limit("planner.max_empty_responses"):
                    return self._finish(Terminal.NO_RESPONSE, messages.NO_RESPONSE)
                self._emit_text(messages.EMPTY_RESPONSE_RETRY)
                current = EMPTY_RESPONSE_NUDGE
                continue
            counters.empty_responses = 0

            if response.tool_calls:
                next_message = self._run_tool_calls(response, counters)
                if isinstance(next_message, RunOutcome):
                    return next_message
                current = next_message
                continue

            text = response.text.strip()
            if USER_INPUT_REQUIRED in text:
                return self._finish(Terminal.AWAITING_USER, text)

            if is_incomplete_answer(text):
                counters.invalid_responses += 1
                self.logger.debug(f"Incomplete answer #{counters.invalid_responses}: {text!r}")
                if counters.invalid_responses > get_limit("planner.max_invalid_responses"):
                    return self._finish(Terminal.INCOMPLETE, messages.INCOMPLETE_ANSWER)
                current = INCOMPLETE_ANSWER_NUDGE
                continue

            if not self._should_review(artifacts_at_start):
                return self._finish(Terminal.DONE, text)

            review = self._review(text)
            if isinstance(review, RunOutcome):
                return review
            current = review

        return self._finish(Terminal.TURN_LIMIT, messages.STEP_LIMIT)

    def _run_tool_calls(self, response: LLMResponse, counters: _LoopCounters):
        """Execute one turn's tool calls in order.

        Returns the message for the next planner turn, or a RunOutcome when
        the run must stop.
        """
        for step in self.plan:
            if step.status == StepStatus.RUNNING and step.tool_name in (
                REVISE_PLAN_BASED_ON_FEEDBACK, REVISE_PLAN_DUE_TO_ERROR
            ):
                step.status = StepStatus.COMPLETED
                step.result = {"message": "A new plan was generated."}
                self._emit_step(step)

        if response.text and response.text.strip():
            self._emit_text(response.text.strip())

        calls = response.tool_calls
        steps = [self._append_step(call) for call in calls]
        self._emit_plan()

        parts = []
        for index, (call, step) in enumerate(zip(calls, steps)):
            step.status = StepStatus.RUNNING
            self._emit_step(step)
            try:
                outcome = self.executor.execute(call)
            except Exception as e:
                error = str(e) or type(e).__name__
                counters.consecutive_errors += 1
                step.status = StepStatus.ERROR
                step.error = error
                self._emit_step(step)

                if counters.consecutive_errors >= get_limit("planner.max_consecutive_errors"):
                    return self._finish(Terminal.ERROR, messages.repeated_error_message(error))

                for skipped in steps[index + 1:]:
                    skipped.status = StepStatus.WARNING
                    skipped.error = "Skipped because an earlier call in the same turn failed."
                    self._emit_step(skipped)

                self._emit_text("A tool call failed. Revising the plan and retrying.")
                self._append_synthetic(
                    REVISE_PLAN_DUE_TO_ERROR, "Revising the plan after a tool error", StepStatus.RUNNING
                )

                parts.append(self._tool_result(call, {"status": "error", "message": error}))
                # Gemini expects one function response per function call
                for skipped_call in calls[index + 1:]:
                    parts.append(self._tool_result(skipped_call, {
                        "status": "skipped",
                        "message": "Not executed because an earlier call in this turn failed.",
                    }))
                parts.append(self.adapter.make_text_part(
                    build_self_correction(call.name, error, self._query)
                ))
                return parts

            counters.consecutive_errors = 0
            result = _sanitize_for_json(outcome.result)
            step.status = StepStatus.COMPLETED
            step.result = result
            if outcome.dataset is not None:
                step.produced_dataset = outcome.dataset.name
            self._emit_step(step)
            parts.append(self._tool_result(call, {"status": "success", **result}))

        return parts

    # ---- Review ----

    def _should_review(self, artifacts_at_start: int) -> bool:
        if self.review_policy == REVIEW_NEW_ARTIFACTS:
            return len(self.executor.registry) > artifacts_at_start
        return True

    def _review(self, draft: str):
        """Run the reviewer on *draft*.

        Returns the final RunOutcome on approval, or the revision
        instruction to send to the planner.
        """
        step = self._append_synthetic(
            CONDUCT_FINAL_REVIEW, "Reviewing the answer and visuals", StepStatus.REVIEWING
        )
        result = self.reviewer.review(
            self._query,
            [s.summarize() for s in self.plan],
            [a.describe() for a in self.executor.artifacts],
            draft,
        )

        if result.approved:
            step.status = StepStatus.COMPLETED
            step.result = {"message": "Approved.", "feedback": result.feedback}
            self._emit_step(step)
            self.executor.mark_all_artifacts_reviewed()
            updated = self.executor.update_artifacts(result.revised_artifacts)
            for title in updated:
                self._event_bus.emit(
                    ARTIFACT_CREATED,
                    level="info",
                    msg=f"[Artifact] {title} (revised)",
                    data={"artifact": self.executor.registry.find(title), "revised": True},
                )
            return self._finish(Terminal.DONE, result.revised_text or draft)

        step.status = StepStatus.WARNING
        step.result = {"feedback": result.feedback}
        self._emit_step(step)
        self._append_synthetic(
            REVISE_PLAN_BASED_ON_FEEDBACK, "Revising the plan based on review feedback", StepStatus.RUNNING
        )
        self._emit_text(f"Review feedback: {result.feedback}")
        return build_revision_instruction(result.feedback)

    # ---- Helpers ----

    def _new_chat(self):
        return self.adapter.create_chat(
            model=self.model_name,
            system_prompt=self._system_prompt,
            tools=self._tool_schemas,
        )

    def _send_message(self, message) -> LLMResponse:
        """Send a message on self.chat with timeout/retry."""
        return send_with_timeout(
            self.chat,
            message,
            pool=self._timeout_pool,
            timeout=self._retry_timeout,
            bus=self._event_bus,
        )

    def _tool_result(self, call: ToolCall, result: dict):
        return self.adapter.make_tool_result_message(call.name, result, tool_call_id=call.id)

    def _append_step(self, call: ToolCall) -> AnalysisStep:
        args = dict(call.args or {})
        commentary = args.pop("commentary", None)
        description = str(commentary).strip() if commentary else f"Executing tool: {call.name}"
        step = AnalysisStep(
            sequence_number=len(self.plan) + 1,
            description=description,
            tool_name=call.name,
            tool_args=args,
        )
        self.plan.append(step)
        return step

    def _append_synthetic(self, name: str, description: str, status: StepStatus) -> AnalysisStep:
        step = AnalysisStep(
            sequence_number=len(self.plan) + 1,
            description=description,
            tool_name=name,
            status=status,
        )
        self.plan.append(step)
        self._emit_plan()
        return step

    def _emit_plan(self) -> None:
        self._event_bus.emit(
            PLAN_UPDATED,
            level="debug",
            msg=f"[Plan] {len(self.plan)} step(s)",
            data={"plan": [s.to_dict() for s in self.plan]},
        )

    def _emit_step(self, step: AnalysisStep) -> None:
        self._event_bus.emit(
            STEP_UPDATED,
            level="debug",
            msg=f"[Plan] Step {step.sequence_number} {step.status.value}: {step.description}",
            data={"step": step.to_dict()},
        )

    def _emit_text(self, text: str) -> None:
        self._event_bus.emit(
            TEXT_DELTA,
            level="info",
            msg=f"[Planner] {text}",
            data={"text": text},
        )

    def _finish(self, terminal: Terminal, message: str) -> RunOutcome:
        self._event_bus.emit(
            AGENT_RESPONSE,
            level="info",
            msg=f"[Agent] {message}",
            data={"text": message, "terminal": terminal.value},
        )
        return RunOutcome(
            status="completed",
            terminal=terminal,
            message=message,
            plan=list(self.plan),
            artifacts=self.artifacts,
        )


def create_agent(
    datasets: Optional[Mapping[str, Any]] = None,
    verbose: bool = False,
    render_images: bool | None = None,
    bus: Optional[EventBus] = None,
) -> AnalystAgent:
    """Factory function to create a new agent backed by Gemini.

    Args:
        datasets: Base datasets, name → records or DataFrame.
        verbose: If True, show debug logging on the console.
        render_images: Render PNG report previews (default: config.RENDER_REPORT_IMAGES).
        bus: Session event bus to use.

    Raises:
        ValueError: if GOOGLE_API_KEY is not set.
    """
    api_key = get_api_key()
    if not api_key:
        raise ValueError(
            "GOOGLE_API_KEY is not set. Add it to your environment or a .env file."
        )
    setup_logging(verbose=verbose)

    if render_images is None:
        render_images = config.RENDER_REPORT_IMAGES
    renderer = PlotlyReportRenderer() if render_images else NullReportRenderer()

    agent = AnalystAgent(GeminiAdapter(api_key=api_key), datasets, bus=bus, renderer=renderer)
    set_session_id(agent.session_id)
    attach_log_file(agent.session_id)
    return agent
