"""
Structured EventBus — single record of everything that happens in a session.

Each AnalystAgent owns one bus; nothing is process-global.

Architecture:
    bus.emit() → SessionEvent → listeners[]
      ├── DebugLogListener  → Python logger (console + log file)
      └── caller listeners  → e.g. the CLI printer in main.py

The stored events double as the session's activity log (``format_log()``).
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional


# ---- Event type constants ----

# Conversation
USER_MESSAGE = "user_message"
AGENT_RESPONSE = "agent_response"
TEXT_DELTA = "text_delta"          # Intermediate model text shown while tools run
CLARIFICATION = "clarification"

# Tool lifecycle
TOOL_CALL = "tool_call"
TOOL_RESULT = "tool_result"
TOOL_ERROR = "tool_error"

# Plan and artifacts
PLAN_UPDATED = "plan_updated"
STEP_UPDATED = "step_updated"
ARTIFACT_CREATED = "artifact_created"

# Prompts sent to the advisory models and the planner
STRATEGIST_PROMPT = "strategist_prompt"
PLANNER_INSTRUCTION = "planner_instruction"
REVIEWER_PROMPT = "reviewer_prompt"
REVIEW_DECISION = "review_decision"

# LLM
LLM_CALL = "llm_call"

# Catch-all
DEBUG = "debug"


# ---- SessionEvent ----

@dataclass(frozen=True)
class SessionEvent:
    """A single structured event in the session.

    Fields:
        id: Session-unique event ID (e.g. "evt_0001").
        type: Event type constant (e.g. "tool_call", "plan_updated").
        ts: ISO 8601 timestamp (UTC, millisecond precision).
        agent: Source component ("planner", "strategist", "reviewer", ...).
        level: Log level (debug/info/warning/error).
        summary: Short one-liner.
        details: Full context, multi-line OK.
        data: Structured machine-readable payload.
    """
    id: str
    type: str
    ts: str
    agent: str
    level: str
    summary: str
    details: str
    data: dict

    @property
    def msg(self) -> str:
        return self.summary


class EventBus:
    """Per-session event bus with synchronous listener dispatch.

    Thread-safe: emit() and subscribe() use a lock.  A failing listener
    never reaches the emitter.
    """

    def __init__(self, session_id: str = ""):
        self._events: list[SessionEvent] = []
        self._lock = threading.Lock()
        self._listeners: list[Callable[[SessionEvent], None]] = []
        self.session_id = session_id
        self._next_event_id: int = 0

    def emit(
        self,
        type: str,
        *,
        agent: str = "planner",
        level: str = "debug",
        msg: str = "",
        summary: str = "",
        details: str = "",
        data: Optional[dict] = None,
    ) -> SessionEvent:
        """Create, store, and dispatch a SessionEvent.

        Args:
            type: Event type constant (e.g. TOOL_CALL, PLAN_UPDATED).
            agent: Source component name.
            level: Log level (debug/info/warning/error).
            msg: Shorthand used as both summary and details.
            summary: Short one-liner.
            details: Full context, multi-line OK.
            data: Structured payload.

        Returns:
            The created SessionEvent.
        """
        with self._lock:
            self._next_event_id += 1
            event = SessionEvent(
                id=f"evt_{self._next_event_id:04d}",
                type=type,
                ts=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
                agent=agent,
                level=level,
                summary=summary or msg,
                details=details or msg,
                data=data or {},
            )
            self._events.append(event)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                pass  # Never let a listener break the emitter
        return event

    def subscribe(self, listener: Callable[[SessionEvent], None]) -> None:
        """Register a listener called synchronously on each emit()."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[SessionEvent], None]) -> None:
        """Remove a previously registered listener."""
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def get_events(
        self,
        *,
        types: Optional[set[str]] = None,
        since_index: int = 0,
    ) -> list[SessionEvent]:
        """Return stored events, optionally filtered by type."""
        with self._lock:
            events = self._events[since_index:]
        if not types:
            return events
        return [e for e in events if e.type in types]

    def format_log(self) -> str:
        """Render the stored events as a plain-text activity log."""
        with self._lock:
            events = list(self._events)
        return "\n\n".join(_format_event(e) for e in events)

    def clear(self) -> None:
        """Remove all stored events."""
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


def _json_default(obj: Any) -> Any:
    if hasattr(obj, "describe"):
        return obj.describe()
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return str(obj)


def _format_event(event: SessionEvent) -> str:
    level = "SUCCESS" if event.type == TOOL_RESULT else event.level.upper()
    entry = f"[{event.ts}] [{level}] {event.summary}"
    if event.details and event.details != event.summary:
        entry += f"\n{event.details}"
    if event.data:
        try:
            entry += "\n" + json.dumps(event.data, indent=2, ensure_ascii=False, default=_json_default)
        except (TypeError, ValueError):
            entry += "\n[Unserializable data]"
    return entry


# ---- Listeners ----

class DebugLogListener:
    """Writes SessionEvents to the Python logger."""

    # Map event level strings to Python logging levels
    _LEVEL_MAP = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    # Map event type to the log_tag column of the log file
    _TYPE_TO_TAG = {
        USER_MESSAGE: "user_message",
        AGENT_RESPONSE: "agent_response",
        CLARIFICATION: "clarification",
        PLAN_UPDATED: "plan_event",
        STEP_UPDATED: "plan_event",
        TOOL_CALL: "tool",
        TOOL_RESULT: "tool",
        TOOL_ERROR: "error",
        STRATEGIST_PROMPT: "prompt",
        PLANNER_INSTRUCTION: "prompt",
        REVIEWER_PROMPT: "prompt",
        REVIEW_DECISION: "review",
        LLM_CALL: "llm",
    }

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def __call__(self, event: SessionEvent) -> None:
        level = self._LEVEL_MAP.get(event.level, logging.DEBUG)
        tag = self._TYPE_TO_TAG.get(event.type, "")
        self._logger.log(level, event.summary, extra={"log_tag": tag})
