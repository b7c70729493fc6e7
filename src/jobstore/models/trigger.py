# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Trigger timing model.

``AbstractTrigger`` carries the identity, job association, priority,
validity window and data payload shared by every trigger; concrete
strategies implement fire time computation on top of it.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from src.jobstore.exceptions import ValidationError
from src.jobstore.models.datamap import JobDataMap
from src.jobstore.models.keys import JobKey, TriggerKey

if TYPE_CHECKING:
    from src.jobstore.models.builders import TriggerBuilder

REPEAT_INDEFINITELY = -1
DEFAULT_PRIORITY = 5

_MIN_INTERVAL = timedelta(milliseconds=1)
_ONE_MICROSECOND = timedelta(microseconds=1)

T = TypeVar("T", bound="AbstractTrigger")


def utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC.

    :param dt: Datetime to normalise.
    :returns: Timezone-aware datetime or None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class AbstractTrigger(ABC):
    """Properties and bookkeeping common to all triggers."""

    def __init__(
        self,
        key: TriggerKey,
        job_key: Optional[JobKey],
        start_time: Optional[datetime],
        end_time: Optional[datetime] = None,
        description: str = "",
        priority: int = DEFAULT_PRIORITY,
        data_map: Optional[JobDataMap] = None,
    ) -> None:
        """Initialize the common trigger state.

        :param key: Trigger identity.
        :param job_key: Key of the job fired by this trigger.
        :param start_time: First instant the trigger may fire at.
        :param end_time: Instant after which the trigger never fires.
        :param description: Human description.
        :param priority: Tie-break priority, higher fires first.
        :param data_map: Trigger data payload.
        :raises ValidationError: If the validity window is invalid.
        """
        self._key = key
        self._job_key = job_key
        self._description = description
        self._priority = priority
        self._data_map = data_map if data_map is not None else JobDataMap()
        self._start_time: Optional[datetime] = None
        self._end_time: Optional[datetime] = None
        self._next_fire_time: Optional[datetime] = None
        self._previous_fire_time: Optional[datetime] = None
        self.start_time = start_time  # type: ignore[assignment]
        self.end_time = end_time

    @property
    def key(self) -> TriggerKey:
        return self._key

    @key.setter
    def key(self, key: TriggerKey) -> None:
        self._key = key

    @property
    def job_key(self) -> Optional[JobKey]:
        return self._job_key

    @job_key.setter
    def job_key(self, key: Optional[JobKey]) -> None:
        self._job_key = key

    @property
    def description(self) -> str:
        return self._description

    @description.setter
    def description(self, description: str) -> None:
        self._description = description

    @property
    def priority(self) -> int:
        return self._priority

    @priority.setter
    def priority(self, priority: int) -> None:
        self._priority = priority

    @property
    def data_map(self) -> JobDataMap:
        return self._data_map

    @data_map.setter
    def data_map(self, data_map: JobDataMap) -> None:
        self._data_map = data_map

    @property
    def start_time(self) -> datetime:
        return self._start_time  # type: ignore[return-value]

    @start_time.setter
    def start_time(self, start_time: datetime) -> None:
        start_time = ensure_aware(start_time)  # type: ignore[assignment]
        if start_time is None:
            raise ValidationError("Start time cannot be null")
        if self._end_time is not None and self._end_time < start_time:
            raise ValidationError("End time cannot be before start time")
        self._start_time = start_time

    @property
    def end_time(self) -> Optional[datetime]:
        return self._end_time

    @end_time.setter
    def end_time(self, end_time: Optional[datetime]) -> None:
        end_time = ensure_aware(end_time)
        if end_time is not None and self._start_time is not None and end_time < self._start_time:
            raise ValidationError("End time cannot be before start time")
        self._end_time = end_time

    @property
    def next_fire_time(self) -> Optional[datetime]:
        return self._next_fire_time

    @next_fire_time.setter
    def next_fire_time(self, value: Optional[datetime]) -> None:
        self._next_fire_time = ensure_aware(value)

    @property
    def previous_fire_time(self) -> Optional[datetime]:
        return self._previous_fire_time

    @previous_fire_time.setter
    def previous_fire_time(self, value: Optional[datetime]) -> None:
        self._previous_fire_time = ensure_aware(value)

    def may_fire_again(self) -> bool:
        """True while a next fire time is recorded on the trigger."""
        return self._next_fire_time is not None

    def compute_first_fire_time(self) -> Optional[datetime]:
        """Set ``next_fire_time`` to the first fire time and return it."""
        self._next_fire_time = self.fire_time_after(self.start_time - _ONE_MICROSECOND)
        return self._next_fire_time

    def triggered(self) -> None:
        """Advance the fire time bookkeeping after the trigger fired."""
        self._previous_fire_time = self._next_fire_time
        if self._next_fire_time is not None:
            self._next_fire_time = self.fire_time_after(self._next_fire_time)

    def clone(self: T) -> T:
        """Return an independent copy of the same concrete type."""
        clone = copy.copy(self)
        clone._data_map = self._data_map.clone()
        return clone

    def trigger_builder(self) -> "TriggerBuilder":
        """Describe how to rebuild an equivalent trigger."""
        from src.jobstore.models.builders import TriggerBuilder

        return TriggerBuilder(
            key=self._key,
            description=self._description,
            start_time=self._start_time,
            end_time=self._end_time,
            priority=self._priority,
            job_key=self._job_key,
            job_data=self._data_map.to_dict(),
            schedule=self.schedule_builder(),
        )

    @abstractmethod
    def schedule_builder(self) -> Any:
        """Return the schedule configuration of this trigger."""

    @abstractmethod
    def fire_time_after(self, after_time: Optional[datetime] = None) -> Optional[datetime]:
        """Return the first fire time strictly after ``after_time`` (default now)."""

    @abstractmethod
    def final_fire_time(self) -> Optional[datetime]:
        """Return the last time the trigger will fire, if bounded."""

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(key={self._key}, job_key={self._job_key}, "
            f"next_fire_time={self._next_fire_time})"
        )


class SimpleTrigger(AbstractTrigger):
    """Fires at ``start_time`` and then every ``repeat_interval``.

    ``repeat_count`` is the number of repeats after the first fire, or
    ``REPEAT_INDEFINITELY``.
    """

    def __init__(
        self,
        key: TriggerKey,
        job_key: Optional[JobKey],
        start_time: Optional[datetime],
        end_time: Optional[datetime] = None,
        repeat_interval: timedelta = timedelta(0),
        repeat_count: int = 0,
        **kwargs: Any,
    ) -> None:
        if repeat_count < REPEAT_INDEFINITELY:
            raise ValidationError(f"Repeat count must be >= 0 or indefinite, got {repeat_count}")
        if repeat_count != 0 and repeat_interval <= timedelta(0):
            raise ValidationError("Repeat interval must be positive for a repeating trigger")
        super().__init__(key, job_key, start_time, end_time, **kwargs)
        self._repeat_interval = repeat_interval
        self._repeat_count = repeat_count
        self._times_triggered = 0
        self._complete = False

    @property
    def repeat_interval(self) -> timedelta:
        return self._repeat_interval

    @property
    def repeat_count(self) -> int:
        return self._repeat_count

    @property
    def times_triggered(self) -> int:
        return self._times_triggered

    @times_triggered.setter
    def times_triggered(self, value: int) -> None:
        self._times_triggered = value

    @property
    def complete(self) -> bool:
        return self._complete

    @complete.setter
    def complete(self, value: bool) -> None:
        self._complete = value

    def triggered(self) -> None:
        self._times_triggered += 1
        super().triggered()

    def fire_time_after(self, after_time: Optional[datetime] = None) -> Optional[datetime]:
        if self._complete:
            return None
        if self._repeat_count != REPEAT_INDEFINITELY and self._times_triggered > self._repeat_count:
            return None

        after_time = ensure_aware(after_time) or utcnow()
        start_time = self.start_time

        if self._repeat_count == 0 and after_time >= start_time:
            return None
        if self._end_time is not None and self._end_time < after_time:
            return None
        if after_time < start_time:
            return start_time

        times_executed = (after_time - start_time) // self._repeat_interval + 1
        if self._repeat_count != REPEAT_INDEFINITELY and times_executed > self._repeat_count:
            return None

        fire_time = start_time + times_executed * self._repeat_interval
        if self._end_time is not None and self._end_time < fire_time:
            return None
        return fire_time

    def fire_time_before(self, end_time: datetime) -> Optional[datetime]:
        """Return the last fire time at or before ``end_time``."""
        end_time = ensure_aware(end_time)  # type: ignore[assignment]
        if end_time < self.start_time:
            return None
        fires = self._times_fired_between(self.start_time, end_time)
        return self.start_time + fires * self._repeat_interval

    def _times_fired_between(self, start: datetime, end: datetime) -> int:
        if self._repeat_interval < _MIN_INTERVAL:
            return 0
        return (end - start) // self._repeat_interval

    def final_fire_time(self) -> Optional[datetime]:
        if self._repeat_count == 0:
            return self.start_time

        if self._repeat_count == REPEAT_INDEFINITELY:
            if self._end_time is None:
                return None
            return self.fire_time_before(self._end_time)

        last_fire = self.start_time + self._repeat_count * self._repeat_interval
        if self._end_time is None or last_fire < self._end_time:
            return last_fire
        return self.fire_time_before(self._end_time)

    def schedule_builder(self) -> "SimpleScheduleBuilder":
        return SimpleScheduleBuilder(
            repeat_interval=self._repeat_interval,
            repeat_count=self._repeat_count,
        )


class SimpleScheduleBuilder(BaseModel):
    """Immutable fixed-interval schedule configuration."""

    model_config = ConfigDict(frozen=True)

    repeat_interval: timedelta = timedelta(0)
    repeat_count: int = 0

    def with_interval(self, interval: timedelta) -> "SimpleScheduleBuilder":
        return self.model_copy(update={"repeat_interval": interval})

    def with_interval_in_seconds(self, seconds: float) -> "SimpleScheduleBuilder":
        return self.with_interval(timedelta(seconds=seconds))

    def with_repeat_count(self, count: int) -> "SimpleScheduleBuilder":
        return self.model_copy(update={"repeat_count": count})

    def repeat_forever(self) -> "SimpleScheduleBuilder":
        return self.with_repeat_count(REPEAT_INDEFINITELY)

    def build(
        self,
        key: TriggerKey,
        job_key: Optional[JobKey],
        start_time: Optional[datetime],
        end_time: Optional[datetime] = None,
        **kwargs: Any,
    ) -> SimpleTrigger:
        """Create a ``SimpleTrigger`` with this schedule.

        :raises ValidationError: If the schedule or window is invalid.
        """
        return SimpleTrigger(
            key,
            job_key,
            start_time,
            end_time,
            repeat_interval=self.repeat_interval,
            repeat_count=self.repeat_count,
            **kwargs,
        )
