"""
Logging configuration for Tabula.

Two destinations:
  - Console: DEBUG if --verbose, WARNING+ otherwise
  - File: always DEBUG level, one file per session, attached once a
    session ID is known

Config ``console_format`` options:
  - "simple" — (default) bare messages for DEBUG/INFO, [LEVEL] prefix for WARNING+
  - "full"   — same structured format as the file handler
  - "clean"  — no console output at all (file logging still active)

File format: "timestamp | level | name | session_id | tag | message".
Log files are stored in <data_dir>/logs/.
"""

import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional

import config
from config import get_data_dir

_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(session_id)s | %(log_tag)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Module-level state (shared across re-inits)
_session_filter: Optional["_SessionFilter"] = None


def get_log_dir() -> Path:
    return get_data_dir() / "logs"


class _SessionFilter(logging.Filter):
    """Injects session_id into every log record."""

    def __init__(self) -> None:
        super().__init__()
        self.session_id = ""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id or "-"
        if not hasattr(record, "log_tag"):
            record.log_tag = ""
        return True


class _ConsoleFormatter(logging.Formatter):
    """Console formatter: shows [LEVEL] prefix only for WARNING and above."""

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            return f"  [{record.levelname}] {record.getMessage()}"
        return f"  {record.getMessage()}"


def _ensure_filter(logger: logging.Logger) -> None:
    global _session_filter
    if _session_filter is None:
        _session_filter = _SessionFilter()
    if _session_filter not in logger.filters:
        logger.addFilter(_session_filter)


def attach_log_file(session_id: str) -> Path:
    """Attach a per-session file handler and return the log path.

    Creates or appends to agent_{session_id}.log.
    """
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"agent_{session_id}.log"

    logger = logging.getLogger("tabula")
    _ensure_filter(logger)
    # Remove any existing file handler (e.g. after a reset)
    for handler in [h for h in logger.handlers if isinstance(h, logging.FileHandler)]:
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(file_handler)

    logger.info("=" * 60)
    logger.info(f"Session started at {datetime.now().isoformat()}")
    logger.info(f"Log file: {log_file}")
    return log_file


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure console logging for the agent.

    File handlers are attached later by ``attach_log_file()``.

    Args:
        verbose: If True, show DEBUG level on console; otherwise WARNING+.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger("tabula")
    logger.setLevel(logging.DEBUG)  # Capture everything, filter at handler level
    logger.propagate = False

    # Clear existing handlers (in case of re-init)
    logger.handlers.clear()
    _ensure_filter(logger)

    console_format = config.get("console_format", "simple")
    if console_format != "clean":
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        if console_format == "full":
            console_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
        else:
            console_handler.setFormatter(_ConsoleFormatter())
        logger.addHandler(console_handler)
    # "clean" — no console handler at all

    return logger


def get_logger() -> logging.Logger:
    """Get the agent logger instance (configured with defaults on first use)."""
    logger = logging.getLogger("tabula")
    if not logger.handlers:
        return setup_logging(verbose=False)
    return logger


def set_session_id(session_id: str) -> None:
    """Set the session ID that will be included in all subsequent log lines."""
    global _session_filter
    if _session_filter is None:
        # Logger not set up yet — create filter so it's ready when logging starts
        _session_filter = _SessionFilter()
    _session_filter.session_id = session_id


def log_error(
    message: str,
    exc: Optional[Exception] = None,
    context: Optional[dict] = None,
) -> None:
    """Log an error with full details including stack trace.

    Args:
        message: Error description
        exc: Optional exception to include stack trace from
        context: Optional dict of additional context (tool name, args, etc.)
    """
    lines = [message]

    if context:
        lines.append("Context:")
        for key, value in context.items():
            lines.append(f"  {key}: {value}")

    if exc:
        lines.append(f"Exception type: {type(exc).__name__}")
        lines.append(f"Exception message: {exc}")
        lines.append("Stack trace:")
        lines.append(traceback.format_exc())

    logging.getLogger("tabula").error("\n".join(lines), extra={"log_tag": "error"})
