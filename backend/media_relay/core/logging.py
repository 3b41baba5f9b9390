"""Structured logging with correlation IDs.

Every connection is tagged with a session ID and every upload handled on it
with a request ID, so a single request cycle can be followed through the logs.
"""

import logging
import sys
import traceback
import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Any
from contextvars import ContextVar

# Context variables for correlation IDs
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Attributes present on every LogRecord; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName", "session_id", "request_id",
))


def new_correlation_id() -> str:
    """Generate a new opaque correlation ID."""
    return uuid.uuid4().hex


def get_session_id() -> Optional[str]:
    """Get the session ID of the connection being served, if any."""
    return session_id_var.get()


def set_session_id(session_id: Optional[str]) -> None:
    """Set the session ID for the current context."""
    session_id_var.set(session_id)


def get_request_id() -> Optional[str]:
    """Get the ID of the request cycle being processed, if any."""
    return request_id_var.get()


def set_request_id(request_id: Optional[str]) -> None:
    """Set the request ID for the current context."""
    request_id_var.set(request_id)


def clear_correlation_ids() -> None:
    """Clear both correlation IDs from the current context."""
    session_id_var.set(None)
    request_id_var.set(None)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter with correlation ID support."""

    def __init__(
        self,
        include_stack_trace: bool = True,
        include_extra_fields: bool = True,
    ):
        super().__init__()
        self.include_stack_trace = include_stack_trace
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, current in (("session_id", get_session_id), ("request_id", get_request_id)):
            value = getattr(record, key, None)
            if value in (None, "-"):
                value = current()
            if value:
                log_data[key] = value

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info and self.include_stack_trace:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": self._format_stack_trace(record.exc_info),
            }

        if self.include_extra_fields:
            extra_fields = {}
            for key, value in record.__dict__.items():
                if key in _RESERVED_ATTRS:
                    continue
                try:
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)

            if extra_fields:
                log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)

    def _format_stack_trace(self, exc_info) -> Optional[list[str]]:
        """Format exception stack trace, including chained causes."""
        if not exc_info or not exc_info[2]:
            return None

        return traceback.format_exception(*exc_info)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation IDs to all records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = get_session_id() or "-"
        record.request_id = get_request_id() or "-"
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Set up application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging
        include_stack_trace: Include stack traces in error logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.addFilter(CorrelationIdFilter())

    if json_format:
        formatter = StructuredFormatter(
            include_stack_trace=include_stack_trace,
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(session_id)s/%(request_id)s] - %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set log levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)


def _with_correlation(extra: dict[str, Any]) -> dict[str, Any]:
    extra["session_id"] = get_session_id()
    extra["request_id"] = get_request_id()
    return extra


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with correlation IDs and optional exception.

    Args:
        logger: Logger instance
        message: Error message
        exception: Optional exception to log with its stack trace
        **extra: Additional context fields
    """
    if exception:
        logger.error(message, exc_info=exception, extra=_with_correlation(extra))
    else:
        logger.error(message, extra=_with_correlation(extra))


def log_warning(
    logger: logging.Logger,
    message: str,
    **extra: Any,
) -> None:
    """Log a warning with correlation IDs."""
    logger.warning(message, extra=_with_correlation(extra))


def log_info(
    logger: logging.Logger,
    message: str,
    **extra: Any,
) -> None:
    """Log info with correlation IDs."""
    logger.info(message, extra=_with_correlation(extra))
