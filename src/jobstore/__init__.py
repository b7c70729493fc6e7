# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""In-memory job and trigger store.

This package provides:
- Job and trigger keys, job details and the job data map
- Simple and cron trigger timing with fluent builders
- An ordered index of waiting triggers
- RAMJobStore, a volatile thread-safe store with pause and block support
"""

from src.jobstore.config import StoreSettings
from src.jobstore.exceptions import (
    JobAlreadyExistsError,
    JobPersistenceError,
    JobStoreError,
    ObjectAlreadyExistsError,
    TriggerAlreadyExistsError,
    ValidationError,
)
from src.jobstore.models import (
    DEFAULT_GROUP,
    AbstractTrigger,
    CronScheduleBuilder,
    CronTrigger,
    JobBuilder,
    JobDataMap,
    JobDetail,
    JobKey,
    SimpleScheduleBuilder,
    SimpleTrigger,
    TriggerBuilder,
    TriggerKey,
    TriggerState,
)
from src.jobstore.storage import RAMJobStore

__all__ = [
    "StoreSettings",
    "JobStoreError",
    "ObjectAlreadyExistsError",
    "JobAlreadyExistsError",
    "TriggerAlreadyExistsError",
    "JobPersistenceError",
    "ValidationError",
    "DEFAULT_GROUP",
    "AbstractTrigger",
    "CronScheduleBuilder",
    "CronTrigger",
    "JobBuilder",
    "JobDataMap",
    "JobDetail",
    "JobKey",
    "SimpleScheduleBuilder",
    "SimpleTrigger",
    "TriggerBuilder",
    "TriggerKey",
    "TriggerState",
    "RAMJobStore",
]
