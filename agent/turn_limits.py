"""agent/turn_limits.py — Central turn limits registry.

Every loop and retry limit in the codebase lives here as a named constant.
Config.json overrides via ``"turn_limits"``.

Public API:
    get_limit(name)  — lookup, KeyError on typo
    reload()         — re-read config overrides
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Default limits
# ---------------------------------------------------------------------------

DEFAULTS: dict[str, int | float] = {
    # Planner tool loop
    "planner.max_turns":                200,
    "planner.max_consecutive_errors":     2,
    "planner.max_empty_responses":        2,
    "planner.max_invalid_responses":      3,
    # Clarification call (one-shot JSON)
    "strategist.max_attempts":            3,
    "strategist.backoff_seconds":       1.0,
    # Final-answer review
    "reviewer.max_attempts":              1,
    # Planner call retries after a timeout
    "llm.max_timeout_retries":            2,
}

# ---------------------------------------------------------------------------
# Runtime state — overrides from config.json
# ---------------------------------------------------------------------------

_overrides: dict[str, int | float] = {}


def reload() -> None:
    """Re-read config.json overrides for turn limits.

    Called by ``config.reload_config()`` and at import time.
    """
    global _overrides
    import config
    _overrides = config.get("turn_limits", {})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_limit(name: str) -> int | float:
    """Return the effective limit for *name*.

    Raises ``KeyError`` if *name* is not in DEFAULTS (catches typos).
    """
    if name not in DEFAULTS:
        raise KeyError(f"Unknown turn limit: {name!r}")
    override = _overrides.get(name)
    if override is not None:
        return type(DEFAULTS[name])(override)
    return DEFAULTS[name]


# ---------------------------------------------------------------------------
# Initialize overrides at import time
# ---------------------------------------------------------------------------

try:
    reload()
except Exception:
    pass  # config may not be loadable yet (e.g., during testing)
