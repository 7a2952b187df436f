"""
Retry utilities for the advisory model calls (clarification and review).

A failed call is retried with a backoff; when every attempt fails the
caller-supplied fallback value is returned instead of raising.
"""

import logging
import time
from collections.abc import Callable
from typing import Any, Optional

logger = logging.getLogger("tabula")


def linear_backoff(base: float) -> Callable[[int], float]:
    """Backoff that waits ``base * attempt`` seconds after attempt N."""
    def backoff(attempt: int) -> float:
        return base * attempt
    return backoff


def no_backoff(attempt: int) -> float:
    return 0.0


class RetryPolicy:
    """Call a function up to *max_attempts* times, then fall back.

    Args:
        max_attempts: Total number of attempts (at least 1).
        backoff: Maps the 1-based number of the failed attempt to a delay
            in seconds before the next one.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        max_attempts: int = 1,
        backoff: Optional[Callable[[int], float]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.backoff = backoff or no_backoff
        self.sleep = sleep

    def call(self, fn: Callable[[], Any], fallback: Callable[[], Any], label: str = "call") -> Any:
        """Return ``fn()``, or ``fallback()`` once all attempts have failed."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except Exception as e:
                if attempt < self.max_attempts:
                    wait_time = self.backoff(attempt)
                    logger.warning(
                        "%s failed (%s). Attempt %s/%s. Waiting %.1f seconds before retry...",
                        label, e, attempt, self.max_attempts, wait_time,
                    )
                    if wait_time > 0:
                        self.sleep(wait_time)
                else:
                    logger.warning(
                        "%s failed (%s). Attempt %s/%s. Using fallback.",
                        label, e, attempt, self.max_attempts,
                    )
        return fallback()
