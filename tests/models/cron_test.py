# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tests for CronTrigger."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from src.jobstore.exceptions import ValidationError
from src.jobstore.models.cron import CronScheduleBuilder, CronTrigger, make_cron_trigger
from src.jobstore.models.keys import JobKey, TriggerKey


def _hourly(start: datetime, end: Optional[datetime] = None) -> CronTrigger:
    return CronTrigger(
        TriggerKey("hourly", "cron"),
        JobKey("j1", "cron"),
        start,
        end,
        cron_expression="0 * * * *",
    )


class TestCronTrigger:
    """
    Tests for cron fire time computation.
    """

    def test_first_fire_time_is_start_when_matching(self, start_time: datetime) -> None:
        """
        A start time on a cron match is the first fire time.
        """
        trigger = _hourly(start_time)
        assert trigger.compute_first_fire_time() == start_time

    def test_fire_time_after_is_strict(self, start_time: datetime) -> None:
        """
        The fire time returned is strictly after the queried moment.
        """
        trigger = _hourly(start_time)
        assert trigger.fire_time_after(start_time) == start_time + timedelta(hours=1)
        assert trigger.fire_time_after(start_time + timedelta(minutes=5)) == start_time + timedelta(
            hours=1
        )

    def test_end_time(self, start_time: datetime) -> None:
        """
        Matches past end_time are not returned.
        """
        trigger = _hourly(start_time, start_time + timedelta(minutes=90))
        assert trigger.fire_time_after(start_time + timedelta(minutes=30)) == start_time + timedelta(
            hours=1
        )
        assert trigger.fire_time_after(start_time + timedelta(hours=1)) is None

    def test_final_fire_time(self, start_time: datetime) -> None:
        """
        The final fire time is the last match at or before end_time.
        """
        assert _hourly(start_time).final_fire_time() is None
        bounded = _hourly(start_time, start_time + timedelta(minutes=90))
        assert bounded.final_fire_time() == start_time + timedelta(hours=1)

    def test_final_fire_time_without_match(self, start_time: datetime) -> None:
        """
        A window containing no match has no final fire time.
        """
        trigger = _hourly(start_time + timedelta(minutes=1), start_time + timedelta(minutes=30))
        assert trigger.final_fire_time() is None

    def test_timezone(self) -> None:
        """
        Expressions are evaluated in the trigger's timezone.
        """
        start = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
        trigger = CronTrigger(
            TriggerKey("ny"),
            JobKey("j"),
            start,
            cron_expression="0 9 * * *",
            timezone="America/New_York",
        )
        assert trigger.compute_first_fire_time() == datetime(2024, 1, 1, 14, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "expression,tz",
        [("not a cron", "UTC"), ("61 * * * *", "UTC"), ("0 * * * *", "Mars/Olympus_Mons")],
    )
    def test_invalid_configuration(self, expression: str, tz: str) -> None:
        """
        Invalid expressions and timezones raise ValidationError.
        """
        with pytest.raises(ValidationError):
            make_cron_trigger(expression, tz)

    def test_clone_and_rebuild(self, start_time: datetime) -> None:
        """
        Clones and rebuilt triggers keep the cron schedule.
        """
        trigger = _hourly(start_time)
        clone = trigger.clone()
        assert isinstance(clone, CronTrigger)
        assert clone.cron_expression == "0 * * * *"

        rebuilt = trigger.trigger_builder().build()
        assert isinstance(rebuilt, CronTrigger)
        assert rebuilt.key == trigger.key
        assert rebuilt.fire_time_after(start_time) == start_time + timedelta(hours=1)

    def test_schedule_builder(self, start_time: datetime) -> None:
        """
        CronScheduleBuilder is immutable and builds a cron trigger.
        """
        base = CronScheduleBuilder()
        daily = base.with_expression("30 6 * * *").in_timezone("UTC")
        assert base.cron_expression == "* * * * *"
        trigger = daily.build(TriggerKey("daily"), JobKey("j"), start_time)
        assert trigger.compute_first_fire_time() == datetime(2024, 1, 2, 6, 30, tzinfo=timezone.utc)
