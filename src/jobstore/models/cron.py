# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Cron expression trigger backed by APScheduler's cron arithmetic."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from apscheduler.triggers.cron import CronTrigger as ApsCronTrigger
from pydantic import BaseModel, ConfigDict

from src.jobstore.exceptions import ValidationError
from src.jobstore.models.keys import JobKey, TriggerKey
from src.jobstore.models.trigger import AbstractTrigger, ensure_aware, utcnow

_ONE_MICROSECOND = timedelta(microseconds=1)
_INITIAL_LOOKBACK = timedelta(minutes=1)


def make_cron_trigger(cron_expression: str, timezone: str = "UTC") -> ApsCronTrigger:
    """Build an APScheduler cron trigger for a crontab expression.

    :param cron_expression: Five-field crontab expression.
    :param timezone: IANA timezone the expression is evaluated in.
    :returns: Configured APScheduler trigger.
    :raises ValidationError: If the expression or timezone is invalid.
    """
    try:
        return ApsCronTrigger.from_crontab(cron_expression, timezone=timezone)
    except (ValueError, LookupError) as e:
        raise ValidationError(f"Invalid cron expression '{cron_expression}': {e}") from e


class CronTrigger(AbstractTrigger):
    """Fires at every match of a crontab expression inside the validity window."""

    def __init__(
        self,
        key: TriggerKey,
        job_key: Optional[JobKey],
        start_time: Optional[datetime],
        end_time: Optional[datetime] = None,
        cron_expression: str = "* * * * *",
        timezone: str = "UTC",
        **kwargs: Any,
    ) -> None:
        self._aps_trigger = make_cron_trigger(cron_expression, timezone)
        super().__init__(key, job_key, start_time, end_time, **kwargs)
        self._cron_expression = cron_expression
        self._timezone = timezone

    @property
    def cron_expression(self) -> str:
        return self._cron_expression

    @property
    def timezone(self) -> str:
        return self._timezone

    def fire_time_after(self, after_time: Optional[datetime] = None) -> Optional[datetime]:
        after_time = ensure_aware(after_time) or utcnow()
        if self._end_time is not None and self._end_time < after_time:
            return None

        if after_time < self.start_time:
            probe = self.start_time
        else:
            probe = after_time + _ONE_MICROSECOND

        fire_time = self._aps_trigger.get_next_fire_time(None, probe)
        if fire_time is None:
            return None
        if self._end_time is not None and self._end_time < fire_time:
            return None
        return fire_time

    def final_fire_time(self) -> Optional[datetime]:
        if self._end_time is None:
            return None

        lookback = _INITIAL_LOOKBACK
        while True:
            lower = max(self.start_time, self._end_time - lookback)
            last_fire = None
            fire_time = self.fire_time_after(lower - _ONE_MICROSECOND)
            while fire_time is not None and fire_time <= self._end_time:
                last_fire = fire_time
                fire_time = self.fire_time_after(fire_time)
            if last_fire is not None or lower == self.start_time:
                return last_fire
            lookback *= 2

    def schedule_builder(self) -> "CronScheduleBuilder":
        return CronScheduleBuilder(
            cron_expression=self._cron_expression,
            timezone=self._timezone,
        )


class CronScheduleBuilder(BaseModel):
    """Immutable cron schedule configuration."""

    model_config = ConfigDict(frozen=True)

    cron_expression: str = "* * * * *"
    timezone: str = "UTC"

    def with_expression(self, cron_expression: str) -> "CronScheduleBuilder":
        return self.model_copy(update={"cron_expression": cron_expression})

    def in_timezone(self, timezone: str) -> "CronScheduleBuilder":
        return self.model_copy(update={"timezone": timezone})

    def build(
        self,
        key: TriggerKey,
        job_key: Optional[JobKey],
        start_time: Optional[datetime],
        end_time: Optional[datetime] = None,
        **kwargs: Any,
    ) -> CronTrigger:
        """Create a ``CronTrigger`` with this schedule."""
        return CronTrigger(
            key,
            job_key,
            start_time,
            end_time,
            cron_expression=self.cron_expression,
            timezone=self.timezone,
            **kwargs,
        )
