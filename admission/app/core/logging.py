"""Structured logging configuration for the admission toolkit.

This module provides a logging setup using Python's standard logging
module, with optional JSON formatting for production environments.
Records below ERROR go to stdout and ERROR and above go to stderr, so each
record is written exactly once.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Union

from admission.app.core.config import settings


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Every object carries timestamp, level, logger, message and source.
    Of the admission context fields, only those named in ``fields`` are
    emitted; any other value passed through ``extra=`` lands under "extra".

    Attributes:
        fields: Context fields to include in JSON output
    """

    # Contextual fields for admission decisions
    CONTEXT_FIELDS = (
        "limiter",       # Limiter class name (DedupWindowCache, ...)
        "key",           # Admission key, redacted by get_log_context
        "decision",      # allowed | denied
        "request_id",    # Request ID from X-Request-ID header
    )

    _RESERVED = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__
    ) | {"message", "asctime"}

    def __init__(
        self,
        fields: Optional[Iterable[str]] = None,
        datefmt: Optional[str] = None,
    ):
        super().__init__(datefmt=datefmt)
        self.fields = tuple(self.CONTEXT_FIELDS if fields is None else fields)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation of the log record
        """
        created = datetime.fromtimestamp(record.created).astimezone()
        log_data: Dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for field in self.fields:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED and key not in self.CONTEXT_FIELDS
        }
        if extra:
            log_data["extra"] = extra

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Logging filter that adds contextual fields to log records.

    Adds default values for limiter, key, decision and request_id if not
    already present in the log record, so format strings never fail.
    """

    CONTEXT_DEFAULTS = {field: None for field in JSONFormatter.CONTEXT_FIELDS}

    def filter(self, record: logging.LogRecord) -> bool:
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


class MaxLevelFilter(logging.Filter):
    """Pass only records strictly below ``level``."""

    def __init__(self, level: Union[int, str] = logging.ERROR):
        super().__init__()
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()

    formatters = {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "structured": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s - limiter=%(limiter)s - key=%(key)s - decision=%(decision)s"
        },
    }

    if log_format == "json":
        formatters["json"] = {
            "()": "admission.app.core.logging.JSONFormatter",
        }
        default_formatter = "json"
    else:
        default_formatter = "structured" if log_format == "structured" else "standard"

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": default_formatter,
            "stream": sys.stdout,
            "filters": ["context", "below_error"],
        },
        "error_console": {
            "class": "logging.StreamHandler",
            "level": "ERROR",
            "formatter": default_formatter,
            "stream": sys.stderr,
            "filters": ["context"],
        },
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {
                "()": "admission.app.core.logging.ContextFilter",
            },
            "below_error": {
                "()": "admission.app.core.logging.MaxLevelFilter",
                "level": "ERROR",
            },
        },
        "handlers": handlers,
        "loggers": {
            "admission": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console", "error_console"],
        },
    }


def setup_logging() -> None:
    """Configure logging for the toolkit."""
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str = "admission") -> logging.Logger:
    """Get a logger instance with the specified name.

    Args:
        name: Logger name, defaults to "admission"

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def redact_key(key: str, keep: int = 8) -> str:
    """Shorten an admission key for log output.

    Keys share prefixes such as ``ratelimit:ip:``, so the tail is kept.
    """
    if len(key) <= keep:
        return key
    return f"...{key[-keep:]}"


def get_log_context(
    limiter: Optional[str] = None,
    key: Optional[str] = None,
    decision: Optional[str] = None,
    request_id: Optional[str] = None,
    **extra
) -> Dict[str, Any]:
    """Create a log context dictionary for use with extra parameter.

    Args:
        limiter: Limiter class name
        key: Admission key (redacted before logging)
        decision: allowed or denied
        request_id: Request ID
        **extra: Additional custom fields

    Returns:
        Dictionary suitable for passing as extra= parameter to logging calls

    Example:
        >>> logger.debug(
        ...     "Evicted entry",
        ...     extra=get_log_context(limiter="DedupWindowCache", key="abc")
        ... )
    """
    context = {
        "limiter": limiter,
        "key": redact_key(key) if key is not None else None,
        "decision": decision,
        "request_id": request_id,
    }
    context.update(extra)
    return {k: v for k, v in context.items() if v is not None}
