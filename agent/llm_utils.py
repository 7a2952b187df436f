"""Timeout handling for planner model calls."""

from concurrent.futures import ThreadPoolExecutor

from .event_bus import LLM_CALL, EventBus
from .llm import LLMResponse
from .turn_limits import get_limit


def send_with_timeout(
    chat,
    message,
    pool: ThreadPoolExecutor,
    timeout: float,
    bus: EventBus,
    label: str = "Planner",
) -> LLMResponse:
    """Send *message* on *chat*, abandoning and resending calls that hang.

    A call that has not answered after *timeout* seconds is given up on and
    sent again, at most ``llm.max_timeout_retries`` more times.  When every
    attempt times out a TimeoutError is raised.  Errors from the call itself
    propagate unchanged.
    """
    retries = get_limit("llm.max_timeout_retries")
    for attempt in range(1, retries + 2):
        future = pool.submit(chat.send, message)
        try:
            return future.result(timeout=timeout)
        except TimeoutError:
            future.cancel()
            if attempt > retries:
                bus.emit(LLM_CALL, level="error",
                         msg=f"[{label}] No model answer after {timeout:.0f}s, giving up")
                break
            bus.emit(LLM_CALL, level="warning",
                     msg=f"[{label}] No model answer after {timeout:.0f}s, resending ({attempt}/{retries})")
    raise TimeoutError(f"Model call timed out {retries + 1} times after {timeout:.0f}s each")
