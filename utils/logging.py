"""
Logging Utility - Structured Logging

Provides centralized, structured logging configuration for all backend components.
Supports JSON format for production and human-readable format for development.
Fields passed through ``extra`` are rendered in both formats.

Usage:
    import logging

    from utils.logging import setup_logging

    setup_logging(level="debug", format_type="json")
    logger = logging.getLogger(__name__)
    logger.info("Export progress", extra={"processed_keys": 1000})
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# logrus-style names are accepted alongside the stdlib ones
LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

# Attributes every LogRecord carries; anything else came from ``extra``
_RESERVED = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the fields attached to a record through ``extra``."""
    return {k: v for k, v in vars(record).items() if k not in _RESERVED}


class TextFormatter(logging.Formatter):
    """Human-readable formatter appending extras as key=value pairs."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = extra_fields(record)
        if fields:
            line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line, serialized with orjson."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(extra_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def parse_level(level: str) -> int:
    """Map a level name to a logging level.

    Raises:
        ValueError: If the name is not a known level
    """
    try:
        return LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f"invalid log level: {level!r}") from None


def setup_logging(
    level: str = "info",
    format_type: str = "text",
    output: str = "stderr",
) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (trace, debug, info, warn, error, fatal, panic)
        format_type: Log format ('json' or 'text')
        output: Log output ('stdout' or 'stderr')

    Raises:
        ValueError: If level, format or output is not recognized
    """
    log_level = parse_level(level)

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    elif format_type == "text":
        formatter = TextFormatter()
    else:
        raise ValueError(f"invalid log format: {format_type!r}")

    if output == "stdout":
        stream = sys.stdout
    elif output == "stderr":
        stream = sys.stderr
    else:
        raise ValueError(f"invalid log output: {output!r}")

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)
