# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""
Typed event definitions for structured logging.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.jobstore.observability.context import get_correlation_id, get_instance_id


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


StoreEventType = Literal[
    "job_stored",
    "job_removed",
    "trigger_stored",
    "trigger_removed",
    "trigger_state_changed",
    "group_paused",
    "group_resumed",
    "job_blocked",
    "job_unblocked",
    "store_cleared",
    "scheduler_lifecycle",
    "error",
]


class StoreEvent(BaseModel):
    """Store-level log event for job and trigger mutations."""

    model_config = ConfigDict(use_enum_values=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: Optional[str] = None
    instance_id: Optional[str] = None
    level: LogLevel = LogLevel.INFO
    event: StoreEventType
    job_key: Optional[str] = None
    trigger_key: Optional[str] = None
    group: Optional[str] = None
    state: Optional[str] = None
    previous_state: Optional[str] = None
    replaced: Optional[bool] = None
    count: Optional[int] = None
    error: Optional[str] = None


def create_store_event(
    event: StoreEventType,
    level: LogLevel = LogLevel.INFO,
    **kwargs: Any,
) -> StoreEvent:
    """Create a store event with context auto-populated.

    Key and state values are converted to strings.

    :param event: Event type
    :type event: StoreEventType
    :param level: Log level
    :type level: LogLevel
    :param kwargs: Additional event fields
    :returns: StoreEvent instance
    :rtype: StoreEvent
    """
    for field in ("job_key", "trigger_key"):
        if kwargs.get(field) is not None:
            kwargs[field] = str(kwargs[field])
    for field in ("state", "previous_state"):
        value = kwargs.get(field)
        if isinstance(value, Enum):
            kwargs[field] = value.value

    return StoreEvent(
        event=event,
        level=level,
        correlation_id=kwargs.pop("correlation_id", get_correlation_id()),
        instance_id=kwargs.pop("instance_id", get_instance_id()),
        **kwargs,
    )
