# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""
Structured logging with context injection.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, MutableMapping, Optional, TextIO

from src.jobstore.config import StoreSettings
from src.jobstore.observability.context import ObservabilityContextManager
from src.jobstore.observability.events import LogLevel, StoreEvent

ROOT_LOGGER_NAME = "src.jobstore"

_EVENT_LEVELS = {
    LogLevel.DEBUG.value: logging.DEBUG,
    LogLevel.INFO.value: logging.INFO,
    LogLevel.WARN.value: logging.WARNING,
    LogLevel.ERROR.value: logging.ERROR,
}


class LogFormatter(logging.Formatter):
    """Base formatter exposing the injected context and event payload."""

    @staticmethod
    def context_of(record: logging.LogRecord) -> dict[str, Any]:
        return dict(getattr(record, "context", None) or {})

    @staticmethod
    def event_of(record: logging.LogRecord) -> dict[str, Any]:
        return dict(getattr(record, "event_data", None) or {})


class JSONFormatter(LogFormatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(self.context_of(record))
        payload.update(self.event_of(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(LogFormatter):
    """Human readable single-line records with a context suffix."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(levelname)s - %(name)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {**self.context_of(record), **self.event_of(record)}
        fields.pop("timestamp", None)
        fields.pop("level", None)
        if fields:
            line += " [" + " ".join(f"{k}={v}" for k, v in fields.items()) + "]"
        return line


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter that injects the observability context into records."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("context", ObservabilityContextManager.instance().get_all())
        kwargs["extra"] = extra
        return msg, kwargs

    def event(self, event: StoreEvent) -> None:
        """Log a typed store event at its own level.

        :param event: Event to log
        :type event: StoreEvent
        """
        name = event.level.value if isinstance(event.level, LogLevel) else event.level
        level = _EVENT_LEVELS.get(name, logging.INFO)
        self.log(
            level,
            event.event,
            extra={"event_data": event.model_dump(mode="json", exclude_none=True)},
        )


class LoggerFactory:
    """
    Configures the package root logger and hands out structured loggers.
    """

    _handler: Optional[logging.Handler] = None

    @classmethod
    def initialize(
        cls,
        level: int = logging.INFO,
        log_format: str = "console",
        stream: Optional[TextIO] = None,
    ) -> logging.Handler:
        """Install a single stream handler on the package root logger.

        Calling it again replaces the previously installed handler.

        :param level: Logging level
        :param log_format: ``json`` or ``console``
        :param stream: Output stream, stderr by default
        :returns: The installed handler
        """
        root = logging.getLogger(ROOT_LOGGER_NAME)
        if cls._handler is not None:
            root.removeHandler(cls._handler)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(JSONFormatter() if log_format == "json" else ConsoleFormatter())
        root.addHandler(handler)
        root.setLevel(level)
        cls._handler = handler
        return handler

    @classmethod
    def configure(cls, settings: StoreSettings) -> logging.Handler:
        """Install the handler described by store settings.

        :param settings: Settings carrying ``log_level`` and ``log_format``.
        :returns: The installed handler
        """
        return cls.initialize(level=settings.log_level_number, log_format=settings.log_format)

    @classmethod
    def reset(cls) -> None:
        """Remove the installed handler (for testing only)."""
        if cls._handler is not None:
            logging.getLogger(ROOT_LOGGER_NAME).removeHandler(cls._handler)
            cls._handler = None

    @staticmethod
    def get_logger(name: str) -> StructuredLogger:
        return StructuredLogger(logging.getLogger(name), {})


def initialize_logging(level: int = logging.INFO, log_format: str = "console") -> logging.Handler:
    """Initialize package logging."""
    return LoggerFactory.initialize(level=level, log_format=log_format)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module."""
    return LoggerFactory.get_logger(name)
