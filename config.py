import json
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# Secret: stays in .env (GOOGLE_API_KEY)

# User config: project-root config.json as base, ~/.tabula/config.json overlaid.
CONFIG_PATH = Path.home() / ".tabula" / "config.json"
_LOCAL_CONFIG_PATH = Path(__file__).resolve().parent / "config.json"
_user_config: dict = {}


def _load_config() -> dict:
    # Project-local config.json as base, user home config overlaid on top
    merged: dict = {}
    for path in (_LOCAL_CONFIG_PATH, CONFIG_PATH):
        if path is not None and path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    merged.update(json.load(f))
            except (json.JSONDecodeError, OSError):
                pass
    return merged


def get(key: str, default=None):
    """Get a config value by dot-separated key. E.g. get('turn_limits.planner.max_turns', 200)"""
    keys = key.split(".")
    val = _user_config
    for k in keys:
        if isinstance(val, dict):
            val = val.get(k)
        else:
            return default
    return val if val is not None else default


_user_config = _load_config()


# ---- Data directory -----------------------------------------------------------
# Base directory for logs.
# Priority: TABULA_DIR env var > "data_dir" config key > ~/.tabula

_data_dir: Optional[Path] = None


def get_data_dir() -> Path:
    """Return the resolved base data directory.

    Resolution order:
    1. ``TABULA_DIR`` environment variable
    2. ``"data_dir"`` key in config.json
    3. ``~/.tabula`` (default)
    """
    global _data_dir
    if _data_dir is not None:
        return _data_dir
    env_val = os.environ.get("TABULA_DIR")
    if env_val:
        _data_dir = Path(env_val).expanduser().resolve()
    else:
        configured = get("data_dir")
        if configured:
            _data_dir = Path(configured).expanduser().resolve()
        else:
            _data_dir = Path.home() / ".tabula"
    return _data_dir


def _reset_data_dir() -> None:
    """Reset the cached data directory (for testing only)."""
    global _data_dir
    _data_dir = None


# ---- LLM provider config ------------------------------------------------------
LLM_PROVIDER = "gemini"

_PROVIDER_ENV_KEYS = {
    "gemini": "GOOGLE_API_KEY",
}


def get_api_key(provider: str | None = None) -> str | None:
    """Return the API key for the given provider (gemini → GOOGLE_API_KEY)."""
    p = (provider or LLM_PROVIDER).lower()
    env_key = _PROVIDER_ENV_KEYS.get(p)
    if env_key:
        return os.getenv(env_key)
    return None


# ---- Per-provider defaults ---------------------------------------------------
# Used as final fallback when neither providers.gemini.<key> nor a top-level
# key is set in config.json.
_PROVIDER_DEFAULTS = {
    "gemini": {
        "planner_model": "gemini-2.5-flash",
        "strategist_model": "gemini-2.5-flash",
        "reviewer_model": "gemini-2.5-flash",
    },
}


def _provider_get(key: str, default=None):
    """Get a config value with provider-section priority.

    Resolution order:
    1. providers.gemini.key             (provider-specific)
    2. Top-level key                    (override)
    3. _PROVIDER_DEFAULTS[provider].key (hardcoded defaults)
    4. default argument
    """
    val = get(f"providers.{LLM_PROVIDER}.{key}")
    if val is not None:
        return val
    val = get(key)
    if val is not None:
        return val
    provider_defaults = _PROVIDER_DEFAULTS.get(LLM_PROVIDER, {})
    if key in provider_defaults:
        return provider_defaults[key]
    return default


# ---- Models --------------------------------------------------------------------
# Planner drives the tool loop; strategist clarifies requests; reviewer checks
# the final answer.
PLANNER_MODEL = _provider_get("planner_model")
STRATEGIST_MODEL = _provider_get("strategist_model") or PLANNER_MODEL
REVIEWER_MODEL = _provider_get("reviewer_model") or PLANNER_MODEL

# Seconds before a single planner call is abandoned and retried
LLM_TIMEOUT_SECONDS = get("llm_timeout_seconds", 120)

# "always" reviews every final answer; "new_artifacts" only runs that produced artifacts
REVIEW_POLICY = get("review_policy", "always")

# Render PNG previews for reports (needs kaleido)
RENDER_REPORT_IMAGES = get("render_report_images", True)

# "simple", "full" or "clean"
CONSOLE_FORMAT = get("console_format", "simple")


def reload_config() -> None:
    """Re-read config from disk and reassign all module-level constants.

    Existing sessions keep their current adapter/model; only new sessions
    pick up changes.
    """
    global _user_config
    global PLANNER_MODEL, STRATEGIST_MODEL, REVIEWER_MODEL
    global LLM_TIMEOUT_SECONDS, REVIEW_POLICY, RENDER_REPORT_IMAGES, CONSOLE_FORMAT

    load_dotenv(override=True)

    _user_config = _load_config()
    _reset_data_dir()

    PLANNER_MODEL = _provider_get("planner_model")
    STRATEGIST_MODEL = _provider_get("strategist_model") or PLANNER_MODEL
    REVIEWER_MODEL = _provider_get("reviewer_model") or PLANNER_MODEL
    LLM_TIMEOUT_SECONDS = get("llm_timeout_seconds", 120)
    REVIEW_POLICY = get("review_policy", "always")
    RENDER_REPORT_IMAGES = get("render_report_images", True)
    CONSOLE_FORMAT = get("console_format", "simple")

    # Reload turn limits overrides from config
    try:
        from agent.turn_limits import reload as _reload_turn_limits

        _reload_turn_limits()
    except ImportError:
        pass
