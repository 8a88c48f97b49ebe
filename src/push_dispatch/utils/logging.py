"""Structured logging infrastructure with correlation ID tracking.

Every dispatch runs with the notification record id as its correlation ID,
so a record can be followed from ``queue`` through the worker to the
gateway response. Handlers installed by ``configure_logging`` also redact
the gateway server key from messages, arguments and structured context.
"""

import contextvars
import logging
import sys
from collections.abc import Mapping
from typing import Final, TextIO, override

from push_dispatch.utils.sanitization import (
    sanitize_args,
    sanitize_text,
    sanitize_value,
)

# Inherited by asyncio tasks spawned from the current context
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"

_STANDARD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "correlation_id",
    }
)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds the current correlation ID to log records."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = correlation_id_var.get()
        record.correlation_id = correlation_id if correlation_id is not None else "N/A"
        return True


class SecretRedactingFilter(logging.Filter):
    """Logging filter that redacts credentials from log records.

    Sanitizes the message text, the ``%`` formatting arguments and any
    structured context passed through ``extra=``.

    Examples:
        >>> logger.info("POST with %s", "Authorization: key=AAAA")
        # Logged as: "POST with Authorization: key=<REDACTED>"
    """

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = sanitize_text(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = sanitize_args(record.args)

        for attr_name in list(record.__dict__.keys()):
            if attr_name not in _STANDARD_ATTRS and not attr_name.startswith("_"):
                attr_value: object = getattr(record, attr_name)  # pyright: ignore[reportAny]
                setattr(record, attr_name, sanitize_value(attr_value, field_name=attr_name))

        return True


def configure_logging(
    *,
    log_level: str = "INFO",
    stream: TextIO | None = None,
    log_format: str = DEFAULT_LOG_FORMAT,
) -> None:
    """Configure application logging.

    Installs a single console handler on the root logger carrying the
    correlation ID and secret redaction filters. Calling it again replaces
    the previously installed handlers.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Output stream (defaults to stderr)
        log_format: ``logging.Formatter`` format string

    Example:
        >>> configure_logging(log_level="DEBUG")
        >>> set_correlation_id("0f3c...")
        >>> logging.getLogger(__name__).info("Notification sent")
    """
    root_logger = logging.getLogger()
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(log_format))
    handler.addFilter(CorrelationIDFilter())
    handler.addFilter(SecretRedactingFilter())
    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the specified module."""
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> contextvars.Token[str | None]:
    """Set the correlation ID for the current context.

    Returns:
        Token that restores the previous value via ``reset_correlation_id``
    """
    return correlation_id_var.set(correlation_id)


def reset_correlation_id(token: contextvars.Token[str | None]) -> None:
    """Restore the correlation ID that was active before ``set_correlation_id``."""
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def clear_correlation_id() -> None:
    _ = correlation_id_var.set(None)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    extra: Mapping[str, object] | None = None,
) -> None:
    """Log a message with additional context fields.

    Example:
        >>> log_with_context(
        ...     logger,
        ...     logging.INFO,
        ...     "Notification dispatched",
        ...     extra={"record_id": record.id, "recipients": 3},
        ... )
    """
    context = dict(extra) if extra else {}

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    logger.log(level, message, extra=context)
