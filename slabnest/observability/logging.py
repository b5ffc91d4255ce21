"""Structured logging configuration for SlabNest.

Provides JSON-formatted logs with context propagation for the API server,
and Rich console output for interactive use.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich.logging import RichHandler

from slabnest.utils import console

# Context variable for request-scoped data
_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
))


class LogContext:
    """Context manager for adding context to logs."""

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        current = _log_context.get().copy()
        current.update(self.context)
        self._token = _log_context.set(current)
        return self

    def __exit__(self, *args):
        if self._token:
            _log_context.reset(self._token)


def get_context() -> Dict[str, Any]:
    """Get the current log context."""
    return dict(_log_context.get())


def clear_context():
    """Clear all log context."""
    _log_context.set({})


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = _log_context.get()
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ContextFormatter(logging.Formatter):
    """Text formatter that appends the current log context."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = _log_context.get()
        if context:
            context_str = " ".join(f"{k}={v}" for k, v in context.items())
            message += f" ({context_str})"
        return message


def setup_logging(level: Optional[str] = None, format: Optional[str] = None) -> None:
    """Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("json" or "text")
    """
    from slabnest.config import get_settings

    settings = get_settings()
    level = (level or settings.log_level).upper()
    format = format or settings.log_format

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if format == "json":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(console=console, rich_tracebacks=True)
        handler.setFormatter(ContextFormatter("%(message)s", datefmt="[%X]"))
    handler.setLevel(getattr(logging, level))

    root_logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
