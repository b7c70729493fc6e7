# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Storage layer for jobs and triggers."""

from src.jobstore.storage.sorted_set import SortedSet, compare_by_fire_time, compare_by_key
from src.jobstore.storage.ram_job_store import JobWrapper, RAMJobStore, TriggerWrapper

__all__ = [
    "SortedSet",
    "compare_by_fire_time",
    "compare_by_key",
    "JobWrapper",
    "TriggerWrapper",
    "RAMJobStore",
]
