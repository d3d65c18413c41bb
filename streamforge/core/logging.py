"""Structured logging with correlation IDs.

Every job attempt runs under its own correlation ID so that the encoder,
stage and runner log lines of one attempt can be grouped together.
"""

import json
import logging
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Iterator, Optional

from streamforge.core.tracing import get_span_id, get_trace_id

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime", "correlation_id",
}

QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "celery", "aiosqlite")


def get_correlation_id() -> str:
    """Return the current correlation ID.

    Falls back to the active trace ID, then to a fresh UUID that sticks for
    the rest of the context.
    """
    cid = correlation_id_var.get()
    if cid is None:
        cid = get_trace_id()
        if cid:
            return cid
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: Optional[str]) -> None:
    correlation_id_var.set(correlation_id)


@contextmanager
def correlation_scope(correlation_id: Optional[str]) -> Iterator[str]:
    """Run a block under a fixed correlation ID, restoring the previous one after."""
    token = correlation_id_var.set(correlation_id)
    try:
        yield get_correlation_id()
    finally:
        correlation_id_var.reset(token)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
            "location": f"{record.pathname}:{record.lineno}",
        }

        trace_id = get_trace_id()
        if trace_id:
            entry["trace_id"] = trace_id
            entry["span_id"] = get_span_id()

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": "".join(traceback.format_exception(exc_type, exc, tb)),
            }

        extra = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry)


class CorrelationIdFilter(logging.Filter):
    """Stamp records with the correlation ID for the plain text format."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id()
        return True


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Route all logging to stdout.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON lines instead of plain text
    """
    numeric_level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"
        ))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _log(
    logger: logging.Logger,
    level: int,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    extra["correlation_id"] = get_correlation_id()
    logger.log(level, message, exc_info=exception, extra=extra)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with the correlation ID and, if given, the exception."""
    _log(logger, logging.ERROR, message, exception, **extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.WARNING, message, **extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.INFO, message, **extra)
