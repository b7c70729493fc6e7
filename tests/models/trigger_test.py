# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Tests for SimpleTrigger timing."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from src.jobstore.exceptions import ValidationError
from src.jobstore.models.datamap import JobDataMap
from src.jobstore.models.keys import JobKey, TriggerKey
from src.jobstore.models.trigger import (
    REPEAT_INDEFINITELY,
    SimpleScheduleBuilder,
    SimpleTrigger,
    utcnow,
)

TEN_SECONDS = timedelta(seconds=10)


def _simple(
    start: datetime,
    repeat_count: int,
    interval: timedelta = TEN_SECONDS,
    end: Optional[datetime] = None,
) -> SimpleTrigger:
    return SimpleTrigger(
        TriggerKey("t1", "g1"),
        JobKey("j1", "g1"),
        start,
        end,
        repeat_interval=interval,
        repeat_count=repeat_count,
    )


class TestFireTimeAfter:
    """
    Tests for SimpleTrigger.fire_time_after.
    """

    @pytest.mark.parametrize(
        "after,expected",
        [
            (timedelta(seconds=-1), timedelta(0)),
            (timedelta(0), timedelta(seconds=10)),
            (timedelta(seconds=15), timedelta(seconds=20)),
            (timedelta(seconds=25), None),
        ],
    )
    def test_repeat_count_two(
        self, start_time: datetime, after: timedelta, expected: Optional[timedelta]
    ) -> None:
        """
        A trigger repeating twice fires at T, T+10s and T+20s only.
        """
        trigger = _simple(start_time, repeat_count=2)
        result = trigger.fire_time_after(start_time + after)
        assert result == (start_time + expected if expected is not None else None)

    def test_repeat_count_zero(self, start_time: datetime) -> None:
        """
        A one-shot trigger fires at its start time and never after.
        """
        trigger = _simple(start_time, repeat_count=0, interval=timedelta(0))
        assert trigger.fire_time_after(start_time - timedelta(minutes=1)) == start_time
        assert trigger.fire_time_after(start_time + timedelta(seconds=1)) is None

    def test_end_time_bounds_result(self, start_time: datetime) -> None:
        """
        Fire times past end_time, or queries past it, yield None.
        """
        trigger = _simple(
            start_time, REPEAT_INDEFINITELY, end=start_time + timedelta(seconds=15)
        )
        assert trigger.fire_time_after(start_time + timedelta(seconds=5)) == start_time + TEN_SECONDS
        assert trigger.fire_time_after(start_time + timedelta(seconds=12)) is None
        assert trigger.fire_time_after(start_time + timedelta(seconds=20)) is None

    def test_complete_trigger(self, start_time: datetime) -> None:
        """
        A trigger marked complete never fires again.
        """
        trigger = _simple(start_time, REPEAT_INDEFINITELY)
        trigger.complete = True
        assert trigger.fire_time_after(start_time - timedelta(seconds=1)) is None

    def test_times_triggered_exhausted(self, start_time: datetime) -> None:
        """
        Once times_triggered exceeds repeat_count no fire time is returned.
        """
        trigger = _simple(start_time, repeat_count=1)
        trigger.times_triggered = 2
        assert trigger.fire_time_after(start_time - timedelta(seconds=1)) is None

    def test_defaults_to_now(self) -> None:
        """
        Without an argument the query is made relative to now.
        """
        start = utcnow() + timedelta(days=1)
        trigger = _simple(start, REPEAT_INDEFINITELY)
        assert trigger.fire_time_after() == start

    def test_naive_datetimes_are_utc(self, start_time: datetime) -> None:
        """
        Naive datetimes are interpreted as UTC.
        """
        trigger = _simple(start_time.replace(tzinfo=None), repeat_count=2)
        assert trigger.start_time == start_time
        assert trigger.fire_time_after(datetime(2024, 1, 1, 12, 0, 5)) == start_time + TEN_SECONDS


class TestFinalFireTime:
    """
    Tests for SimpleTrigger.final_fire_time and fire_time_before.
    """

    def test_finite_repeat_count(self, start_time: datetime) -> None:
        """
        Three hourly repeats end three hours after the start.
        """
        trigger = _simple(start_time, repeat_count=3, interval=timedelta(hours=1))
        assert trigger.final_fire_time() == start_time + timedelta(hours=3)

    def test_one_shot(self, start_time: datetime) -> None:
        """
        A one-shot trigger's final fire time is its start time.
        """
        assert _simple(start_time, 0, timedelta(0)).final_fire_time() == start_time

    def test_indefinite_without_end(self, start_time: datetime) -> None:
        """
        An unbounded trigger has no final fire time.
        """
        assert _simple(start_time, REPEAT_INDEFINITELY).final_fire_time() is None

    def test_indefinite_with_end(self, start_time: datetime) -> None:
        """
        An unbounded trigger with an end time stops at the last fire before it.
        """
        trigger = _simple(start_time, REPEAT_INDEFINITELY, end=start_time + timedelta(seconds=25))
        assert trigger.final_fire_time() == start_time + timedelta(seconds=20)

    def test_finite_cut_by_end(self, start_time: datetime) -> None:
        """
        When end_time precedes the last repeat, the final fire is before end_time.
        """
        trigger = _simple(start_time, 5, end=start_time + timedelta(seconds=25))
        assert trigger.final_fire_time() == start_time + timedelta(seconds=20)

    def test_fire_time_before_start(self, start_time: datetime) -> None:
        """
        fire_time_before a moment preceding the start is None.
        """
        trigger = _simple(start_time, REPEAT_INDEFINITELY)
        assert trigger.fire_time_before(start_time - timedelta(seconds=1)) is None
        assert trigger.fire_time_before(start_time + timedelta(seconds=35)) == start_time + timedelta(
            seconds=30
        )

    def test_sub_millisecond_interval(self, start_time: datetime) -> None:
        """
        Intervals below one millisecond resolve to zero repeats.
        """
        trigger = _simple(start_time, REPEAT_INDEFINITELY, interval=timedelta(microseconds=500))
        assert trigger.fire_time_before(start_time + timedelta(seconds=1)) == start_time


class TestTriggerLifecycle:
    """
    Tests for validation, fire bookkeeping and cloning.
    """

    def test_end_before_start_rejected(self, start_time: datetime) -> None:
        """
        Constructing with end_time before start_time raises ValidationError.
        """
        with pytest.raises(ValidationError, match="End time cannot be before start time"):
            _simple(start_time, 0, timedelta(0), end=start_time - timedelta(seconds=1))

    def test_start_time_required(self) -> None:
        """
        A missing start time raises ValidationError.
        """
        with pytest.raises(ValidationError, match="Start time cannot be null"):
            _simple(None, 0, timedelta(0))  # type: ignore[arg-type]

    def test_clearing_start_time_rejected(self, start_time: datetime) -> None:
        """
        start_time cannot be reset to None after construction.
        """
        trigger = _simple(start_time, 0, timedelta(0))
        with pytest.raises(ValidationError, match="Start time cannot be null"):
            trigger.start_time = None  # type: ignore[assignment]
        assert trigger.start_time == start_time

    def test_moving_start_past_end_rejected(self, start_time: datetime) -> None:
        """
        The window is enforced by the start_time setter too.
        """
        trigger = _simple(start_time, 0, timedelta(0), end=start_time + timedelta(hours=1))
        with pytest.raises(ValidationError):
            trigger.start_time = start_time + timedelta(hours=2)
        assert trigger.start_time == start_time

    @pytest.mark.parametrize(
        "count,interval",
        [(-2, TEN_SECONDS), (3, timedelta(0)), (REPEAT_INDEFINITELY, timedelta(seconds=-1))],
    )
    def test_invalid_schedule(self, start_time: datetime, count: int, interval: timedelta) -> None:
        """
        Invalid repeat counts or non-positive repeating intervals are rejected.
        """
        with pytest.raises(ValidationError):
            _simple(start_time, count, interval)

    def test_fire_sequence(self, start_time: datetime) -> None:
        """
        triggered() walks through every fire time until the schedule ends.
        """
        trigger = _simple(start_time, repeat_count=2)
        assert trigger.compute_first_fire_time() == start_time
        assert trigger.may_fire_again()

        trigger.triggered()
        assert trigger.previous_fire_time == start_time
        assert trigger.next_fire_time == start_time + TEN_SECONDS
        trigger.triggered()
        assert trigger.next_fire_time == start_time + 2 * TEN_SECONDS
        trigger.triggered()
        assert trigger.times_triggered == 3
        assert trigger.next_fire_time is None
        assert not trigger.may_fire_again()

    def test_clone_is_independent(self, start_time: datetime) -> None:
        """
        Clones keep the concrete type and share no mutable state.
        """
        trigger = _simple(start_time, 2)
        trigger.data_map.put("attempt", 1)
        clone = trigger.clone()
        assert isinstance(clone, SimpleTrigger)
        clone.data_map.put("attempt", 2)
        clone.priority = 9
        clone.triggered()
        assert trigger.data_map["attempt"] == 1
        assert trigger.priority == 5
        assert trigger.times_triggered == 0

    def test_trigger_builder_rebuilds_equivalent(self, start_time: datetime) -> None:
        """
        The builder returned by a trigger reproduces its configuration.
        """
        trigger = SimpleTrigger(
            TriggerKey("t1", "g1"),
            JobKey("j1", "g1"),
            start_time,
            start_time + timedelta(hours=1),
            repeat_interval=TEN_SECONDS,
            repeat_count=4,
            description="every ten seconds",
            priority=7,
            data_map=JobDataMap({"a": 1}),
        )
        rebuilt = trigger.trigger_builder().build()
        assert isinstance(rebuilt, SimpleTrigger)
        assert rebuilt.key == trigger.key
        assert rebuilt.job_key == trigger.job_key
        assert rebuilt.start_time == trigger.start_time
        assert rebuilt.end_time == trigger.end_time
        assert rebuilt.repeat_interval == TEN_SECONDS
        assert rebuilt.repeat_count == 4
        assert rebuilt.priority == 7
        assert rebuilt.description == "every ten seconds"
        assert rebuilt.data_map == trigger.data_map

    def test_schedule_builder(self, start_time: datetime) -> None:
        """
        Schedule builders are immutable and build the configured trigger.
        """
        base = SimpleScheduleBuilder()
        forever = base.with_interval_in_seconds(30).repeat_forever()
        assert base.repeat_count == 0
        assert forever.repeat_interval == timedelta(seconds=30)
        trigger = forever.build(TriggerKey("t"), JobKey("j"), start_time)
        assert trigger.repeat_count == REPEAT_INDEFINITELY
        assert trigger.start_time.tzinfo == timezone.utc
