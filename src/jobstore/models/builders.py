# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Immutable builder configurations for jobs and triggers.

Every ``with_*``/``using_*`` call returns a new configuration; ``build()``
turns a configuration into a fresh entity without touching the builder.
"""

from datetime import datetime
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.jobstore.models.cron import CronScheduleBuilder
from src.jobstore.models.datamap import JobDataMap
from src.jobstore.models.job import JobDetail
from src.jobstore.models.keys import DEFAULT_GROUP, JobKey, RandomSource, TriggerKey
from src.jobstore.models.trigger import (
    DEFAULT_PRIORITY,
    AbstractTrigger,
    SimpleScheduleBuilder,
    utcnow,
)

ScheduleBuilder = Union[SimpleScheduleBuilder, CronScheduleBuilder]


def _data_dict(data: Union[JobDataMap, Mapping[str, Any]]) -> dict[str, Any]:
    return data.to_dict() if isinstance(data, JobDataMap) else dict(data)


class JobBuilder(BaseModel):
    """Configuration describing a ``JobDetail``."""

    model_config = ConfigDict(frozen=True)

    key: Optional[JobKey] = None
    description: str = ""
    durable: bool = False
    job_data: dict[str, Any] = Field(default_factory=dict)

    def with_identity(self, name: str, group: str = DEFAULT_GROUP) -> "JobBuilder":
        return self.model_copy(update={"key": JobKey(name, group)})

    def with_key(self, key: JobKey) -> "JobBuilder":
        return self.model_copy(update={"key": key})

    def with_description(self, description: str) -> "JobBuilder":
        return self.model_copy(update={"description": description})

    def store_durably(self, durable: bool = True) -> "JobBuilder":
        return self.model_copy(update={"durable": durable})

    def using_job_data(self, key: str, value: Any) -> "JobBuilder":
        return self.model_copy(update={"job_data": {**self.job_data, key: value}})

    def using_job_data_map(self, data: Union[JobDataMap, Mapping[str, Any]]) -> "JobBuilder":
        """Merge entries into the configured job data."""
        return self.model_copy(update={"job_data": {**self.job_data, **_data_dict(data)}})

    def set_job_data_map(self, data: Union[JobDataMap, Mapping[str, Any]]) -> "JobBuilder":
        """Replace the configured job data."""
        return self.model_copy(update={"job_data": _data_dict(data)})

    def build(self, rng: Optional[RandomSource] = None) -> JobDetail:
        """Create the job detail, generating a unique key when none is set.

        :param rng: Random source for the generated key.
        :returns: New job detail.
        """
        return JobDetail(
            key=self.key or JobKey.unique(rng=rng),
            description=self.description,
            durable=self.durable,
            data_map=JobDataMap(self.job_data),
        )


class TriggerBuilder(BaseModel):
    """Configuration describing a trigger and its schedule."""

    model_config = ConfigDict(frozen=True)

    key: Optional[TriggerKey] = None
    description: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    priority: int = DEFAULT_PRIORITY
    job_key: Optional[JobKey] = None
    job_data: dict[str, Any] = Field(default_factory=dict)
    schedule: ScheduleBuilder = Field(default_factory=SimpleScheduleBuilder)

    def with_identity(self, name: str, group: str = DEFAULT_GROUP) -> "TriggerBuilder":
        return self.model_copy(update={"key": TriggerKey(name, group)})

    def with_key(self, key: TriggerKey) -> "TriggerBuilder":
        return self.model_copy(update={"key": key})

    def with_description(self, description: str) -> "TriggerBuilder":
        return self.model_copy(update={"description": description})

    def with_priority(self, priority: int) -> "TriggerBuilder":
        return self.model_copy(update={"priority": priority})

    def start_at(self, start_time: datetime) -> "TriggerBuilder":
        return self.model_copy(update={"start_time": start_time})

    def start_now(self) -> "TriggerBuilder":
        return self.start_at(utcnow())

    def end_at(self, end_time: Optional[datetime]) -> "TriggerBuilder":
        return self.model_copy(update={"end_time": end_time})

    def with_schedule(self, schedule: ScheduleBuilder) -> "TriggerBuilder":
        return self.model_copy(update={"schedule": schedule})

    def for_job(self, name: str, group: str = DEFAULT_GROUP) -> "TriggerBuilder":
        return self.model_copy(update={"job_key": JobKey(name, group)})

    def for_job_key(self, job_key: JobKey) -> "TriggerBuilder":
        return self.model_copy(update={"job_key": job_key})

    def for_job_detail(self, job: JobDetail) -> "TriggerBuilder":
        return self.for_job_key(job.key)

    def using_job_data(self, key: str, value: Any) -> "TriggerBuilder":
        return self.model_copy(update={"job_data": {**self.job_data, key: value}})

    def using_job_data_map(self, data: Union[JobDataMap, Mapping[str, Any]]) -> "TriggerBuilder":
        return self.model_copy(update={"job_data": {**self.job_data, **_data_dict(data)}})

    def set_job_data_map(self, data: Union[JobDataMap, Mapping[str, Any]]) -> "TriggerBuilder":
        return self.model_copy(update={"job_data": _data_dict(data)})

    def build(self, rng: Optional[RandomSource] = None) -> AbstractTrigger:
        """Create the trigger described by this configuration.

        Without an explicit start time the trigger starts now; without a
        key a unique one is generated.

        :param rng: Random source for the generated key.
        :returns: New trigger of the configured schedule type.
        :raises ValidationError: If the window or schedule is invalid.
        """
        return self.schedule.build(
            self.key or TriggerKey.unique(rng=rng),
            self.job_key,
            self.start_time or utcnow(),
            self.end_time,
            description=self.description,
            priority=self.priority,
            data_map=JobDataMap(self.job_data),
        )
