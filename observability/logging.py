"""Logging utilities with structured output and context propagation.

This module provides enhanced logging capabilities:
    - JSON structured logging for log aggregation systems
    - Run ID and announcement position propagated into every record
    - Rotating log files with console-only fallback

Usage:
    >>> from observability.logging import setup_logging, set_run_context
    >>> setup_logging(config)
    >>> set_run_context(run_id="abc123")
    >>> set_item_context(3)
    >>> logger.info("Downloading")  # ... [abc123 #3] pipeline: Downloading
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler, RotatingFileHandler
from typing import Any

LOG_FILENAME = "idx_watch.log"

# Third-party loggers that flood DEBUG output (pdfminer logs every PDF operator)
NOISY_LOGGERS = (
    "aiohttp", "asyncio", "httpx", "httpcore", "urllib3",
    "pdfminer", "pdfplumber", "playwright", "google_genai", "openai",
)

run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="-")

# 1-based position of the announcement being triaged, "-" outside the loop
item_var: contextvars.ContextVar[str] = contextvars.ContextVar("item", default="-")

_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "run_id", "item", "message",
})


def set_run_context(run_id: str) -> None:
    """Set the current run ID for log context propagation."""
    run_id_var.set(run_id)


def set_item_context(position: int | None) -> None:
    """Set the position of the announcement currently being processed."""
    item_var.set("-" if position is None else str(position))


def clear_context() -> None:
    """Clear all logging context variables."""
    run_id_var.set("-")
    item_var.set("-")


class ContextFilter(logging.Filter):
    """Stamp run_id and item onto every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get()
        record.item = item_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Output format:
        {"ts": "...", "level": "WARNING", "logger": "pipeline", "run_id": "a1b2c3d4",
         "item": "3", "msg": "...", "at": "pipeline.py:225"}

    `item` is omitted outside the triage loop; `at` is only added for
    warnings and above.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "run_id": getattr(record, "run_id", "-"),
        }
        item = getattr(record, "item", "-")
        if item != "-":
            entry["item"] = item
        entry["msg"] = record.getMessage()

        if record.levelno >= logging.WARNING:
            entry["at"] = f"{record.filename}:{record.lineno}"
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        # extra={...} fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in entry:
                entry[key] = value if _is_json_scalar(value) else str(value)

        return json.dumps(entry, ensure_ascii=False)


def _is_json_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


class TextFormatter(logging.Formatter):
    """Human-readable lines for the console and the daily log file.

    Format: TIMESTAMP [LEVEL] [run_id #item] logger: message
    """

    def __init__(self, include_date: bool = False):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] [%(run_id)s #%(item)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S" if include_date else "%H:%M:%S",
        )


def _file_handler(config: Any) -> logging.Handler:
    """Size-based rotation when LOG_MAX_BYTES is set, else one file per day.

    Raises:
        OSError: If the log directory cannot be created or opened
    """
    config.log_dir.mkdir(parents=True, exist_ok=True)
    path = config.log_dir / LOG_FILENAME
    if config.log_max_bytes > 0:
        return RotatingFileHandler(
            path,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
    return TimedRotatingFileHandler(
        path,
        when="midnight",
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )


def setup_logging(config: Any, verbose: bool = False) -> bool:
    """Route all loggers to the console and a rotating file under LOG_DIR.

    The console honours LOG_LEVEL (DEBUG with `verbose`); the file always
    records DEBUG so a failed run can be reconstructed announcement by
    announcement. An unwritable LOG_DIR degrades to console-only output.

    Args:
        config: Object with log_dir, log_level, log_format, log_max_bytes
            and log_backup_count
        verbose: Force DEBUG on the console

    Returns:
        True if the log file is active
    """
    json_output = config.log_format == "json"
    context = ContextFilter()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO))
    console.setFormatter(JsonFormatter() if json_output else TextFormatter())
    console.addFilter(context)
    root.addHandler(console)

    try:
        file_handler = _file_handler(config)
    except OSError as e:
        print(
            f"Warning: cannot write logs to '{config.log_dir}': {e}. Logging to console only.",
            file=sys.stderr,
        )
        file_handler = None
    else:
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonFormatter() if json_output else TextFormatter(include_date=True))
        file_handler.addFilter(context)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return file_handler is not None
