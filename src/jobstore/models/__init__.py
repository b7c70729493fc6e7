# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Job, trigger and key models."""

from src.jobstore.models.keys import DEFAULT_GROUP, JobKey, Key, TriggerKey, unique_name
from src.jobstore.models.datamap import JobDataMap
from src.jobstore.models.state import TriggerState
from src.jobstore.models.job import JobDetail
from src.jobstore.models.trigger import (
    DEFAULT_PRIORITY,
    REPEAT_INDEFINITELY,
    AbstractTrigger,
    SimpleScheduleBuilder,
    SimpleTrigger,
)
from src.jobstore.models.cron import CronScheduleBuilder, CronTrigger
from src.jobstore.models.builders import JobBuilder, TriggerBuilder

__all__ = [
    "DEFAULT_GROUP",
    "DEFAULT_PRIORITY",
    "REPEAT_INDEFINITELY",
    "Key",
    "JobKey",
    "TriggerKey",
    "unique_name",
    "JobDataMap",
    "TriggerState",
    "JobDetail",
    "AbstractTrigger",
    "SimpleTrigger",
    "SimpleScheduleBuilder",
    "CronTrigger",
    "CronScheduleBuilder",
    "JobBuilder",
    "TriggerBuilder",
]
