"""
Logging configuration for graphdeck.

Two destinations:

File - one log file per process, always DEBUG:
  - Format: "timestamp | level | name | session_id | message"
  - Stored in <data_dir>/logs/graphdeck_<timestamp>.log

Console - DEBUG with --verbose, WARNING+ otherwise. Config console_format:
  - "simple" - (default) bare messages for DEBUG/INFO, [LEVEL] prefix for WARNING+
  - "full"   - same structured format as the file handler
  - "clean"  - no console output at all (file logging still active)

User-facing notices (the messages a front end shows as toasts) are logged
with ``extra=tagged("notice")`` so a UI handler can pick them out.
"""

import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional

import config
from config import get_data_dir

LOGGER_NAME = "graphdeck"


def tagged(tag: str) -> dict:
    """Return ``extra`` dict for logger calls: ``logger.info("...", extra=tagged("x"))``."""
    return {"log_tag": tag}


# Module-level state (shared across re-inits)
_session_filter: Optional["_SessionFilter"] = None
_current_log_file: Optional[Path] = None


def _log_dir() -> Path:
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


def setup_logging(verbose: bool = False, log_to_file: bool = True) -> logging.Logger:
    """Configure the graphdeck logger.

    Args:
        verbose: If True, show DEBUG level on console; otherwise WARNING+ only
        log_to_file: Write the per-process log file under the data directory

    Returns:
        Configured logger instance
    """
    global _session_filter, _current_log_file

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture everything, filter at handler level

    # Clear existing handlers (in case of re-init)
    logger.handlers.clear()

    # Session filter - reuse existing instance to preserve session_id across re-inits
    if _session_filter is None:
        _session_filter = _SessionFilter()
    logger.addFilter(_session_filter)

    file_format = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(session_id)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if log_to_file:
        log_dir = _log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"graphdeck_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        _current_log_file = log_file
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    console_format = config.get("console_format", "simple")
    if console_format != "clean":
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        if console_format == "full":
            console_handler.setFormatter(file_format)  # identical to file handler
        else:
            console_handler.setFormatter(_ConsoleFormatter())
        logger.addHandler(console_handler)
    # "clean" - no console handler at all (file logging still active)

    logger.debug(f"Logging started at {datetime.now().isoformat()}")
    if _current_log_file is not None:
        logger.debug(f"Log file: {_current_log_file}")
    return logger


def set_session_id(session_id: str) -> None:
    """Set the session ID that will be included in all subsequent log lines."""
    global _session_filter
    if _session_filter is None:
        # Logger not set up yet - create filter so it's ready when logging starts
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
        context: Optional dict of additional context (graph id, action, etc.)
    """
    logger = logging.getLogger(LOGGER_NAME)

    lines = [message]
    if context:
        lines.append("Context:")
        for key, value in context.items():
            lines.append(f"  {key}: {value}")
    if exc:
        lines.append(f"Exception type: {type(exc).__name__}")
        lines.append(f"Exception message: {exc}")
        lines.append("Stack trace:")
        lines.append("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))

    logger.error("\n".join(lines), extra=tagged("error"))


def get_current_log_path() -> Optional[Path]:
    """Return the path to the current process's log file (or None)."""
    return _current_log_file
