"""
Structured Logging: JSON Lines for Coordinator Events

Every record is one JSON object. Fields passed as keyword arguments to
StructuredLogger (client_id, failed_id, health, ...) become top-level
keys, so log aggregators can filter a single client's lifecycle:

    {"@timestamp": "...", "level": "WARNING", "logger": "...",
     "message": "C1 DEAD (no heartbeat for 31s)", "client_id": "C1",
     "previous_status": "WORKING"}

Scoped fields (``StructuredLogger.context``) live in a ContextVar and
therefore follow the asyncio task that set them.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Iterator, Mapping, Optional, TextIO


class LogLevel(IntEnum):
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, name: str) -> LogLevel:
        """Resolve a level name, defaulting to INFO for unknown names."""
        return cls.__members__.get(name.strip().upper(), cls.INFO)


_scoped_fields: ContextVar[Mapping[str, Any]] = ContextVar("standbymesh_log_fields", default={})

# Attributes of a bare logging.LogRecord; anything else arrived via extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message", "asctime", "taskName",
}

# Libraries whose INFO chatter drowns out failover events
_QUIET_LOGGERS = ("asyncio", "asyncpg")


class JsonFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, Any] = {
            "@timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        document.update(_scoped_fields.get())
        document.update(
            (key, value) for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        )
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str)


class StructuredLogger:
    """
    Thin wrapper over ``logging.Logger`` taking fields as kwargs.

    Usage:
        logger = StructuredLogger(__name__)
        logger.warning("Heartbeat from unknown client", client_id="ghost")

        monitor_log = logger.bind(component="monitor")
        with monitor_log.context(cycle=7):
            monitor_log.info("Cycle complete")
    """

    __slots__ = ("_logger", "_bound")

    def __init__(self, name: str, bound: Optional[Mapping[str, Any]] = None) -> None:
        self._logger = logging.getLogger(name)
        self._bound = dict(bound or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def log(self, level: int, message: str, exc_info: Any = None, **fields: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, message, exc_info=exc_info, extra={**self._bound, **fields})

    def debug(self, message: str, **fields: Any) -> None:
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log(logging.ERROR, message, **fields)

    def critical(self, message: str, **fields: Any) -> None:
        self.log(logging.CRITICAL, message, **fields)

    def bind(self, **fields: Any) -> StructuredLogger:
        """Logger on the same channel that always attaches ``fields``."""
        return StructuredLogger(self._logger.name, {**self._bound, **fields})

    @staticmethod
    @contextmanager
    def context(**fields: Any) -> Iterator[None]:
        """Attach ``fields`` to every record emitted in this scope."""
        token = _scoped_fields.set({**_scoped_fields.get(), **fields})
        try:
            yield
        finally:
            _scoped_fields.reset(token)


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Replace the root handlers with a single stream handler.

    Args:
        level: Minimum level for the root logger
        json_output: JSON lines if True, otherwise a pipe-separated text line
        stream: Output stream (default: stderr)
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        JsonFormatter() if json_output
        else logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
