# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Shared fixtures for job store tests."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Optional

import pytest

from src.jobstore.models.datamap import JobDataMap
from src.jobstore.models.job import JobDetail
from src.jobstore.models.keys import JobKey, TriggerKey
from src.jobstore.models.trigger import DEFAULT_PRIORITY, REPEAT_INDEFINITELY, SimpleTrigger
from src.jobstore.observability import LoggerFactory, ObservabilityContextManager
from src.jobstore.storage.ram_job_store import RAMJobStore

START_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_observability() -> Generator[None, None, None]:
    yield
    LoggerFactory.reset()
    ObservabilityContextManager.reset_instance()


@pytest.fixture
def start_time() -> datetime:
    return START_TIME


@pytest.fixture
def job_key() -> JobKey:
    return JobKey("nightly-report", "reports")


@pytest.fixture
def job_detail(job_key: JobKey) -> JobDetail:
    return JobDetail(
        key=job_key,
        description="Nightly report",
        data_map=JobDataMap({"recipients": 3, "format": "pdf"}),
    )


@pytest.fixture
def durable_job() -> JobDetail:
    return JobDetail(key=JobKey("cleanup", "maintenance"), durable=True)


@pytest.fixture
def make_trigger(
    start_time: datetime, job_key: JobKey
) -> Callable[..., SimpleTrigger]:
    """
    Factory for repeating simple triggers with their first fire time computed.
    """

    def _make(
        name: str,
        group: str = "reports",
        for_job: Optional[JobKey] = None,
        offset: timedelta = timedelta(0),
        repeat_count: int = REPEAT_INDEFINITELY,
        interval: timedelta = timedelta(seconds=10),
        priority: int = DEFAULT_PRIORITY,
    ) -> SimpleTrigger:
        trigger = SimpleTrigger(
            TriggerKey(name, group),
            for_job or job_key,
            start_time + offset,
            repeat_interval=interval,
            repeat_count=repeat_count,
            priority=priority,
        )
        trigger.compute_first_fire_time()
        return trigger

    return _make


@pytest.fixture
def store() -> RAMJobStore:
    return RAMJobStore()
