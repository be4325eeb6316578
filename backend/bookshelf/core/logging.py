"""Bookshelf Logging Configuration.

Log records emitted while a request is being handled carry the request's
method, path and caller id. The response cache adds its outcome (HIT/MISS)
and key through ``extra=``. Both end up as fields of the JSON line in
structured mode and as a ``[key=value ...]`` suffix in dev mode.
"""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Literal

# Human-readable format for development
DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Record attributes copied into the output when present, in this order
CONTEXT_FIELDS = ("method", "path", "user_id", "status_code", "cache", "cache_key")

_log_context: ContextVar[dict[str, str]] = ContextVar("bookshelf_log_context", default={})


def _merged(fields: dict[str, Any]) -> dict[str, str]:
    context = dict(_log_context.get())
    context.update({name: str(value) for name, value in fields.items() if value is not None})
    return context


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach fields to every record logged inside the block (and tasks it starts)."""
    token = _log_context.set(_merged(fields))
    try:
        yield
    finally:
        _log_context.reset(token)


def bind_log_context(**fields: Any) -> None:
    """Add fields to the current context, e.g. the user once authenticated."""
    _log_context.set(_merged(fields))


def current_log_context() -> dict[str, str]:
    return dict(_log_context.get())


class RequestContextFilter(logging.Filter):
    """Copy the current request context onto each record.

    Values passed explicitly through ``extra=`` win over the context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for name, value in _log_context.get().items():
            if not hasattr(record, name):
                setattr(record, name, value)
        return True


def _context_of(record: logging.LogRecord) -> dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Every field goes through json.dumps(), so quotes, backslashes and
    newlines in messages or request paths cannot break the line format.
    """

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(_context_of(record))
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """DEV_FORMAT followed by the request context, if any."""

    def __init__(self):
        super().__init__(fmt=DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_of(record)
        if not context:
            return line
        suffix = " ".join(f"{name}={value}" for name, value in context.items())
        first, newline, rest = line.partition("\n")
        return f"{first} [{suffix}]{newline}{rest}"


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format - 'structured' for JSON, 'dev' for readable
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if format_type == "structured" else DevFormatter())
    handler.addFilter(RequestContextFilter())
    logging.root.handlers = [handler]
    logging.root.setLevel(getattr(logging, level.upper()))

    # Third-party loggers stay at WARNING
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING
    )

    logger = logging.getLogger("bookshelf")
    logger.info(f"Logging configured: level={level}, format={format_type}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the bookshelf prefix."""
    return logging.getLogger(f"bookshelf.{name}")
