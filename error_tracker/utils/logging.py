"""
Structured logging utilities with JSON formatting and context injection.

This module provides structured logging capabilities with:
- JSON formatted log output for machine-readable logs
- Context injection (error_id, context_label, user_id) via LoggerAdapter
- Standardized log fields for the capture pipeline
- Integration with Python's standard logging module
"""

import logging
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional, MutableMapping
from logging import LogRecord


# Fields promoted to the top level of every JSON entry
CONTEXT_FIELDS = ("error_id", "context_label", "user_id", "guild_id", "request_id")

_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info", "taskName",
}


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with standard fields:
    - timestamp: ISO 8601 formatted timestamp
    - level: Log level (INFO, WARNING, ERROR, etc.)
    - logger: Logger name
    - message: Log message
    - context: Additional context fields (meta, stack, etc.)
    - error: Error details when exc_info is attached
    """

    def format(self, record: LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and key not in CONTEXT_FIELDS
        }
        if extra_fields:
            log_data["context"] = extra_fields

        if record.exc_info:
            log_data["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": "".join(traceback.format_exception(*record.exc_info))
            }

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName
        }

        return json.dumps(log_data, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that injects context fields into all log records.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        """Merge the adapter's context into the record's extra fields."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextLoggerAdapter":
        """
        Create a new logger adapter with additional context.

        Args:
            **context: Additional context fields

        Returns:
            New logger adapter with merged context
        """
        new_extra = self.extra.copy()
        new_extra.update(context)
        return ContextLoggerAdapter(self.logger, new_extra)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    formatter = JSONFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("aiomysql").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """
    Get a context-aware logger for a module.

    Args:
        name: Logger name (typically __name__)
        **context: Initial context fields (error_id, context_label, etc.)

    Returns:
        Context logger adapter
    """
    base_logger = logging.getLogger(name)
    return ContextLoggerAdapter(base_logger, context)


def log_error_captured(
    logger: logging.LoggerAdapter,
    error_id: str,
    context_label: str,
    message: str,
    name: Optional[str] = None,
    stack: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a captured failure with its id and identifying details.

    Args:
        logger: Logger to use
        error_id: Fingerprint of the failure
        context_label: Label of the failing operation
        message: Failure message
        name: Exception type name, if any
        stack: Cleaned stack trace, if any
        meta: Caller-supplied metadata
    """
    extra: Dict[str, Any] = {
        "error_id": error_id,
        "context_label": context_label,
        "error_message": message,
    }
    if name is not None:
        extra["error_name"] = name
    if stack is not None:
        extra["stack"] = stack
    if meta:
        extra["meta"] = meta
        for field in ("user_id", "guild_id"):
            if meta.get(field) is not None:
                extra[field] = meta[field]

    logger.error(f"Error captured ({context_label})", extra=extra)


def log_notification_throttled(
    logger: logging.LoggerAdapter,
    error_id: str,
    count: int,
    window_seconds: float
) -> None:
    """
    Log a suppressed operator notification.

    Args:
        logger: Logger to use
        error_id: Fingerprint of the failure
        count: Attempts seen in the current window
        window_seconds: Throttle window length
    """
    logger.warning(
        f"Throttled error log to operator channel for ID {error_id} "
        f"(seen {count} times in {window_seconds:g}s)",
        extra={"error_id": error_id, "window_count": count}
    )


def log_stage_failure(
    logger: logging.LoggerAdapter,
    stage: str,
    error_id: str,
    error: BaseException
) -> None:
    """
    Log a failed best-effort stage with full stack trace.

    Args:
        logger: Logger to use
        stage: Pipeline stage ('persist', 'notify')
        error_id: Fingerprint of the failure being handled
        error: Exception raised by the stage
    """
    logger.error(
        f"Error pipeline stage '{stage}' failed for {error_id}: {error}",
        extra={"error_id": error_id, "stage": stage},
        exc_info=(type(error), error, error.__traceback__)
    )
