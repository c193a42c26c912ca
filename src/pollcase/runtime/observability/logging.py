"""Logging setup for the engine.

Every module logs through a stdlib logger under the ``pollcase`` namespace
(``pollcase.task_set``, ``pollcase.abortable``...). Nothing is emitted until
the application configures handlers, either its own or via
``configure_logging`` which reads ``LoggingSettings``.

Quick Start:
    >>> from pollcase.runtime.observability import configure_logging, get_logger
    >>> configure_logging(level="DEBUG")            # text to stderr
    >>> configure_logging(format="json")            # JSON lines for aggregation
    >>> log = get_logger("my-driver")
    >>> log.debug("polling root unit")
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

import orjson

from pollcase.foundation.config import get_settings

ROOT_LOGGER = "pollcase"

# Attributes every LogRecord has; anything else came in through ``extra=``
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


class JsonFormatter(logging.Formatter):
    """JSON Lines output; ``extra=`` fields become top-level keys."""

    def __init__(self, *, include_timestamps: bool = True) -> None:
        super().__init__()
        self.include_timestamps = include_timestamps

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if self.include_timestamps:
            payload["timestamp"] = datetime.fromtimestamp(record.created, tz=UTC).isoformat()
        payload.update({k: v for k, v in vars(record).items() if k not in _RESERVED})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str, option=orjson.OPT_NON_STR_KEYS).decode()


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the pollcase namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def configure_logging(
    level: str | None = None,
    format: str | None = None,  # noqa: A002 - mirrors LoggingSettings.format
    *,
    output: TextIO | None = None,
) -> logging.Handler:
    """Install a single handler on the pollcase logger.

    Unset arguments fall back to ``get_settings().logging``. Calling this
    again replaces the handler installed by the previous call.
    """
    settings = get_settings()
    level = (level or settings.effective_log_level).upper()
    format = format or settings.logging.format
    match format:
        case "text":
            fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s" if settings.logging.include_timestamps \
                else "[%(levelname)s] %(name)s: %(message)s"
            formatter: logging.Formatter = logging.Formatter(fmt)
        case "json":
            formatter = JsonFormatter(include_timestamps=settings.logging.include_timestamps)
        case _:
            raise ValueError(f"Unknown format: {format}. Use 'text' or 'json'")

    root = logging.getLogger(ROOT_LOGGER)
    for handler in [h for h in root.handlers if getattr(h, "_pollcase_handler", False)]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(output or sys.stderr)
    handler.setFormatter(formatter)
    handler._pollcase_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.WARNING))
    return handler
