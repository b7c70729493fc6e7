# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""In-memory storage for jobs and triggers."""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set

from src.jobstore.config import StoreSettings
from src.jobstore.exceptions import (
    JobAlreadyExistsError,
    JobPersistenceError,
    JobStoreError,
    TriggerAlreadyExistsError,
)
from src.jobstore.models.job import JobDetail
from src.jobstore.models.keys import JobKey, TriggerKey
from src.jobstore.models.state import TriggerState
from src.jobstore.models.trigger import AbstractTrigger
from src.jobstore.observability import (
    LogLevel,
    LoggerFactory,
    ObservabilityScope,
    create_store_event,
    get_logger,
)
from src.jobstore.storage.sorted_set import (
    SortedSet,
    compare_by_fire_time,
    compare_by_key,
)

logger = get_logger(__name__)


@dataclass
class JobWrapper:
    """Stored job detail."""

    job: JobDetail

    @property
    def key(self) -> JobKey:
        return self.job.key


@dataclass
class TriggerWrapper:
    """Stored trigger and its derived state."""

    trigger: AbstractTrigger
    state: TriggerState = TriggerState.WAITING

    @property
    def key(self) -> TriggerKey:
        return self.trigger.key

    @property
    def job_key(self) -> JobKey:
        return self.trigger.job_key  # type: ignore[return-value]


class RAMJobStore:
    """Volatile, thread-safe store for jobs and triggers.

    One re-entrant lock serialises every operation. Besides the by-key
    and by-group maps the store keeps an ordered index holding exactly
    the triggers in ``WAITING`` state, plus the sets of paused trigger
    groups, paused job groups and blocked jobs from which each trigger's
    state is derived. Entities are cloned on the way in and on the way
    out, so callers never share objects with the store.
    """

    def __init__(self, settings: Optional[StoreSettings] = None) -> None:
        """Initialize an empty store.

        Explicit settings also configure package logging from their
        ``log_level`` and ``log_format``.

        :param settings: Store settings, defaults to ``StoreSettings()``.
        """
        if settings is not None:
            LoggerFactory.configure(settings)
        self._settings = settings or StoreSettings()
        self._lock = threading.RLock()

        self._jobs_by_key: Dict[JobKey, JobWrapper] = {}
        self._jobs_by_group: Dict[str, Dict[JobKey, JobWrapper]] = {}
        self._triggers_by_key: Dict[TriggerKey, TriggerWrapper] = {}
        self._triggers_by_group: Dict[str, Dict[TriggerKey, TriggerWrapper]] = {}
        self._triggers_by_job: Dict[JobKey, Dict[TriggerKey, TriggerWrapper]] = {}

        compare = (
            compare_by_key if self._settings.index_order == "key" else compare_by_fire_time
        )
        self._time_triggers: SortedSet[AbstractTrigger] = SortedSet(compare)

        self._paused_trigger_groups: Set[str] = set()
        self._paused_job_groups: Set[str] = set()
        self._blocked_jobs: Set[JobKey] = set()

        logger.info(
            f"Initialized RAMJobStore (instance={self._settings.instance_id}, "
            f"index_order={self._settings.index_order})"
        )

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold the store lock with the instance id in the log context."""
        with self._lock, ObservabilityScope(instance_id=self._settings.instance_id):
            yield

    @property
    def settings(self) -> StoreSettings:
        return self._settings

    # Scheduler lifecycle hooks

    def scheduler_started(self) -> None:
        """Called by the scheduler when it starts."""
        logger.event(create_store_event("scheduler_lifecycle", state="started"))

    def scheduler_paused(self) -> None:
        logger.event(create_store_event("scheduler_lifecycle", state="paused"))

    def scheduler_resumed(self) -> None:
        logger.event(create_store_event("scheduler_lifecycle", state="resumed"))

    def shutdown(self) -> None:
        logger.event(create_store_event("scheduler_lifecycle", state="shutdown"))

    def supports_persistence(self) -> bool:
        return False

    def clustered(self) -> bool:
        return False

    # Jobs

    def store_job_and_trigger(self, job: JobDetail, trigger: AbstractTrigger) -> None:
        """Store a new job and a new trigger for it.

        The job stays stored if storing the trigger fails.

        :param job: Job to store.
        :param trigger: Trigger to store.
        :raises JobAlreadyExistsError: If the job key is taken.
        :raises TriggerAlreadyExistsError: If the trigger key is taken.
        :raises JobPersistenceError: If the trigger references another, missing job.
        """
        with self._locked():
            self._store_job(job, replace_existing=False)
            self._store_trigger(trigger, replace_existing=False)

    def store_jobs_and_triggers(
        self,
        triggers_and_jobs: Mapping[JobDetail, Sequence[AbstractTrigger]],
        replace: bool,
    ) -> None:
        """Store several jobs, each with its triggers.

        Without ``replace`` every key is checked before anything is stored,
        against the store and against the rest of the batch.
        Failures after that point do not roll back earlier entries.

        :param triggers_and_jobs: Triggers to store, grouped by job.
        :param replace: Whether existing jobs and triggers are superseded.
        :raises ObjectAlreadyExistsError: If a key is taken and not replacing.
        """
        with self._locked():
            if not replace:
                batch_jobs: Set[JobKey] = set()
                batch_triggers: Set[TriggerKey] = set()
                for job, triggers in triggers_and_jobs.items():
                    if job.key in self._jobs_by_key or job.key in batch_jobs:
                        logger.warning(f"Refusing batch store: job {job.key} already exists")
                        raise JobAlreadyExistsError(job.key)
                    batch_jobs.add(job.key)
                    for trigger in triggers:
                        if trigger.key in self._triggers_by_key or trigger.key in batch_triggers:
                            logger.warning(
                                f"Refusing batch store: trigger {trigger.key} already exists"
                            )
                            raise TriggerAlreadyExistsError(trigger.key)
                        batch_triggers.add(trigger.key)

            for job, triggers in triggers_and_jobs.items():
                self._store_job(job, replace_existing=True)
                for trigger in triggers:
                    self._store_trigger(trigger, replace_existing=True)

    def store_job(self, job: JobDetail, replace_existing: bool = False) -> None:
        """Store a job, optionally superseding one with the same key.

        :param job: Job to store.
        :param replace_existing: Overwrite a stored job with the same key.
        :raises JobAlreadyExistsError: If the key is taken and not replacing.
        """
        with self._locked():
            self._store_job(job, replace_existing)

    def _store_job(self, job: JobDetail, replace_existing: bool) -> None:
        key = job.key
        wrapper = self._jobs_by_key.get(key)
        if wrapper is not None and not replace_existing:
            logger.warning(f"Job {key} already exists")
            raise JobAlreadyExistsError(key)

        stored = job.clone()
        if wrapper is None:
            wrapper = JobWrapper(stored)
            self._jobs_by_group.setdefault(key.group, {})[key] = wrapper
            self._jobs_by_key[key] = wrapper
            replaced = False
        else:
            wrapper.job = stored
            replaced = True

        logger.event(create_store_event("job_stored", job_key=key, replaced=replaced))

    def remove_job(self, key: JobKey) -> bool:
        """Remove a job together with all of its triggers.

        :param key: Job key.
        :returns: True if the job or any trigger of it was found.
        """
        with self._locked():
            return self._remove_job(key)

    def _remove_job(self, key: JobKey) -> bool:
        found = False
        for trigger_key in list(self._triggers_by_job.get(key, {})):
            self._remove_trigger(trigger_key, remove_orphaned_job=False)
            found = True

        wrapper = self._jobs_by_key.pop(key, None)
        if wrapper is not None:
            found = True
            group_jobs = self._jobs_by_group.get(key.group)
            if group_jobs is not None:
                group_jobs.pop(key, None)
                if not group_jobs:
                    del self._jobs_by_group[key.group]
            self._blocked_jobs.discard(key)
            logger.event(create_store_event("job_removed", job_key=key))

        return found

    def remove_jobs(self, keys: Iterable[JobKey]) -> bool:
        """Remove several jobs.

        :param keys: Job keys.
        :returns: True only if every job was found.
        """
        with self._locked():
            all_found = True
            for key in keys:
                all_found = self._remove_job(key) and all_found
            return all_found

    def retrieve_job(self, key: JobKey) -> Optional[JobDetail]:
        """Get a copy of a stored job.

        :param key: Job key.
        :returns: Cloned job detail, or None if not stored.
        """
        with self._locked():
            wrapper = self._jobs_by_key.get(key)
            return wrapper.job.clone() if wrapper else None

    def check_job_exists(self, key: JobKey) -> bool:
        with self._locked():
            return key in self._jobs_by_key

    def number_of_jobs(self) -> int:
        with self._locked():
            return len(self._jobs_by_key)

    def job_group_names(self) -> List[str]:
        with self._locked():
            return sorted(self._jobs_by_group)

    def job_keys(self, group: str) -> List[JobKey]:
        with self._locked():
            return sorted(self._jobs_by_group.get(group, {}))

    # Triggers

    def store_trigger(self, trigger: AbstractTrigger, replace_existing: bool = False) -> None:
        """Store a trigger and classify its initial state.

        :param trigger: Trigger to store; its job must already be stored.
        :param replace_existing: Supersede a stored trigger with the same key.
        :raises TriggerAlreadyExistsError: If the key is taken and not replacing.
        :raises JobPersistenceError: If the referenced job is not stored.
        """
        with self._locked():
            self._store_trigger(trigger, replace_existing)

    def _store_trigger(self, trigger: AbstractTrigger, replace_existing: bool) -> None:
        key = trigger.key
        replaced = key in self._triggers_by_key
        if replaced:
            if not replace_existing:
                logger.warning(f"Trigger {key} already exists")
                raise TriggerAlreadyExistsError(key)
            self._remove_trigger(key, remove_orphaned_job=False)

        job_key = trigger.job_key
        if job_key is None or job_key not in self._jobs_by_key:
            logger.warning(f"Trigger {key} references unknown job {job_key}")
            raise JobPersistenceError(job_key)

        wrapper = TriggerWrapper(trigger.clone())
        wrapper.state = self._derive_state(wrapper)
        self._index_trigger(wrapper)

        logger.event(
            create_store_event(
                "trigger_stored",
                trigger_key=key,
                job_key=job_key,
                state=wrapper.state,
                replaced=replaced,
            )
        )

    def _derive_state(self, wrapper: TriggerWrapper) -> TriggerState:
        blocked = wrapper.job_key in self._blocked_jobs
        if self._is_group_paused(wrapper):
            return TriggerState.PAUSED_BLOCKED if blocked else TriggerState.PAUSED
        if blocked:
            return TriggerState.BLOCKED
        return TriggerState.WAITING

    def _is_group_paused(self, wrapper: TriggerWrapper) -> bool:
        return (
            wrapper.key.group in self._paused_trigger_groups
            or wrapper.job_key.group in self._paused_job_groups
        )

    def _index_trigger(self, wrapper: TriggerWrapper) -> None:
        key = wrapper.key
        self._triggers_by_key[key] = wrapper
        self._triggers_by_group.setdefault(key.group, {})[key] = wrapper
        self._triggers_by_job.setdefault(wrapper.job_key, {})[key] = wrapper
        if wrapper.state == TriggerState.WAITING:
            self._time_triggers.add(wrapper.trigger)

    def remove_trigger(self, key: TriggerKey) -> bool:
        """Remove a trigger, and its job if left orphaned and not durable.

        :param key: Trigger key.
        :returns: True if the trigger was found.
        """
        with self._locked():
            return self._remove_trigger(key, remove_orphaned_job=True)

    def _remove_trigger(self, key: TriggerKey, remove_orphaned_job: bool) -> bool:
        wrapper = self._triggers_by_key.pop(key, None)
        if wrapper is None:
            return False

        group_triggers = self._triggers_by_group.get(key.group)
        if group_triggers is not None:
            group_triggers.pop(key, None)
            if not group_triggers:
                del self._triggers_by_group[key.group]

        job_key = wrapper.job_key
        job_triggers = self._triggers_by_job.get(job_key)
        if job_triggers is not None:
            job_triggers.pop(key, None)
            if not job_triggers:
                del self._triggers_by_job[job_key]

        self._time_triggers.remove(wrapper.trigger)
        logger.event(create_store_event("trigger_removed", trigger_key=key, job_key=job_key))

        if remove_orphaned_job:
            job_wrapper = self._jobs_by_key.get(job_key)
            if (
                job_wrapper is not None
                and job_key not in self._triggers_by_job
                and not job_wrapper.job.durable
            ):
                logger.info(f"Removing orphaned non-durable job {job_key}")
                self._remove_job(job_key)

        return True

    def remove_triggers(self, keys: Iterable[TriggerKey]) -> bool:
        """Remove several triggers.

        :param keys: Trigger keys.
        :returns: True only if every trigger was found.
        """
        with self._locked():
            all_found = True
            for key in keys:
                all_found = self._remove_trigger(key, remove_orphaned_job=True) and all_found
            return all_found

    def replace_trigger(self, key: TriggerKey, new_trigger: AbstractTrigger) -> bool:
        """Replace a stored trigger with one for the same job.

        The old trigger is put back if the new one cannot be stored.

        :param key: Key of the trigger to replace.
        :param new_trigger: Replacement trigger.
        :returns: False if no trigger is stored under ``key``.
        :raises JobPersistenceError: If the new trigger targets another job.
        """
        with self._locked():
            wrapper = self._triggers_by_key.get(key)
            if wrapper is None:
                return False
            if new_trigger.job_key != wrapper.job_key:
                raise JobPersistenceError(
                    new_trigger.job_key,
                    "New trigger is not related to the same job as the old trigger.",
                )

            self._remove_trigger(key, remove_orphaned_job=False)
            try:
                self._store_trigger(new_trigger, replace_existing=False)
            except JobStoreError:
                self._store_trigger(wrapper.trigger, replace_existing=False)
                raise
            return True

    def update_trigger(self, trigger: AbstractTrigger) -> bool:
        """Write back a modified copy of a stored trigger, keeping its state.

        Used by the dispatch loop to persist fire time bookkeeping.

        :param trigger: Updated trigger.
        :returns: False if no trigger with that key is stored.
        :raises JobPersistenceError: If the trigger now targets another job.
        """
        with self._locked():
            wrapper = self._triggers_by_key.get(trigger.key)
            if wrapper is None:
                return False
            if trigger.job_key != wrapper.job_key:
                raise JobPersistenceError(
                    trigger.job_key,
                    "Updated trigger is not related to the same job as the stored trigger.",
                )
            indexed = self._time_triggers.remove(wrapper.trigger)
            wrapper.trigger = trigger.clone()
            if indexed:
                self._time_triggers.add(wrapper.trigger)
            return True

    def retrieve_trigger(self, key: TriggerKey) -> Optional[AbstractTrigger]:
        """Get a copy of a stored trigger.

        :param key: Trigger key.
        :returns: Cloned trigger, or None if not stored.
        """
        with self._locked():
            wrapper = self._triggers_by_key.get(key)
            return wrapper.trigger.clone() if wrapper else None

    def check_trigger_exists(self, key: TriggerKey) -> bool:
        with self._locked():
            return key in self._triggers_by_key

    def number_of_triggers(self) -> int:
        with self._locked():
            return len(self._triggers_by_key)

    def trigger_group_names(self) -> List[str]:
        with self._locked():
            return sorted(self._triggers_by_group)

    def trigger_keys(self, group: str) -> List[TriggerKey]:
        with self._locked():
            return sorted(self._triggers_by_group.get(group, {}))

    def triggers_for_job(self, key: JobKey) -> List[AbstractTrigger]:
        """Get copies of every trigger of a job, ordered by trigger key.

        :param key: Job key.
        :returns: Cloned triggers.
        """
        with self._locked():
            triggers = self._triggers_by_job.get(key, {})
            return [triggers[k].trigger.clone() for k in sorted(triggers)]

    def waiting_triggers(self) -> List[AbstractTrigger]:
        """Get copies of the ``WAITING`` triggers in index order."""
        with self._locked():
            return [trigger.clone() for trigger in self._time_triggers]

    def next_waiting_trigger(self) -> Optional[AbstractTrigger]:
        with self._locked():
            first = self._time_triggers.first()
            return first.clone() if first is not None else None

    # Trigger state

    def get_trigger_state(self, key: TriggerKey) -> Optional[TriggerState]:
        with self._locked():
            wrapper = self._triggers_by_key.get(key)
            return wrapper.state if wrapper else None

    def set_trigger_state(self, key: TriggerKey, state: TriggerState) -> bool:
        """Record the state reported by the dispatch loop.

        :param key: Trigger key.
        :param state: New state.
        :returns: False if the trigger is not stored.
        """
        with self._locked():
            wrapper = self._triggers_by_key.get(key)
            if wrapper is None:
                return False
            self._transition(wrapper, TriggerState(state))
            return True

    def _transition(self, wrapper: TriggerWrapper, state: TriggerState) -> None:
        previous = wrapper.state
        if previous == state:
            return
        wrapper.state = state
        if state == TriggerState.WAITING:
            self._time_triggers.add(wrapper.trigger)
        else:
            self._time_triggers.remove(wrapper.trigger)
        logger.event(
            create_store_event(
                "trigger_state_changed",
                level=LogLevel.DEBUG,
                trigger_key=wrapper.key,
                state=state,
                previous_state=previous,
            )
        )

    def _pause(self, wrapper: TriggerWrapper) -> None:
        if wrapper.state == TriggerState.WAITING:
            self._transition(wrapper, TriggerState.PAUSED)
        elif wrapper.state == TriggerState.BLOCKED:
            self._transition(wrapper, TriggerState.PAUSED_BLOCKED)

    def _resume(self, wrapper: TriggerWrapper) -> None:
        if not wrapper.state.is_paused:
            return
        if wrapper.job_key in self._blocked_jobs:
            self._transition(wrapper, TriggerState.BLOCKED)
        else:
            self._transition(wrapper, TriggerState.WAITING)

    # Pause / resume

    def pause_trigger(self, key: TriggerKey) -> None:
        """Pause a single trigger."""
        with self._locked():
            wrapper = self._triggers_by_key.get(key)
            if wrapper is not None:
                self._pause(wrapper)

    def resume_trigger(self, key: TriggerKey) -> None:
        """Resume a single paused trigger, regardless of its groups."""
        with self._locked():
            wrapper = self._triggers_by_key.get(key)
            if wrapper is not None:
                self._resume(wrapper)

    def pause_job(self, key: JobKey) -> None:
        """Pause every trigger of a job."""
        with self._locked():
            for wrapper in list(self._triggers_by_job.get(key, {}).values()):
                self._pause(wrapper)

    def resume_job(self, key: JobKey) -> None:
        with self._locked():
            for wrapper in list(self._triggers_by_job.get(key, {}).values()):
                self._resume(wrapper)

    def pause_trigger_group(self, group: str) -> None:
        """Pause a trigger group, including triggers stored into it later.

        :param group: Trigger group name.
        """
        with self._locked():
            self._paused_trigger_groups.add(group)
            for wrapper in list(self._triggers_by_group.get(group, {}).values()):
                self._pause(wrapper)
            logger.event(create_store_event("group_paused", group=group))

    def resume_trigger_group(self, group: str) -> None:
        """Resume a trigger group.

        Triggers whose job group is still paused stay paused.

        :param group: Trigger group name.
        """
        with self._locked():
            self._paused_trigger_groups.discard(group)
            for wrapper in list(self._triggers_by_group.get(group, {}).values()):
                if wrapper.job_key.group not in self._paused_job_groups:
                    self._resume(wrapper)
            logger.event(create_store_event("group_resumed", group=group))

    def pause_job_group(self, group: str) -> None:
        """Pause the triggers of every job in a job group.

        :param group: Job group name.
        """
        with self._locked():
            self._paused_job_groups.add(group)
            for job_key in list(self._jobs_by_group.get(group, {})):
                for wrapper in list(self._triggers_by_job.get(job_key, {}).values()):
                    self._pause(wrapper)
            logger.event(create_store_event("group_paused", group=group))

    def resume_job_group(self, group: str) -> None:
        """Resume a job group.

        Triggers whose own group is still paused stay paused.

        :param group: Job group name.
        """
        with self._locked():
            self._paused_job_groups.discard(group)
            for job_key in list(self._jobs_by_group.get(group, {})):
                for wrapper in list(self._triggers_by_job.get(job_key, {}).values()):
                    if wrapper.key.group not in self._paused_trigger_groups:
                        self._resume(wrapper)
            logger.event(create_store_event("group_resumed", group=group))

    def pause_all(self) -> None:
        """Pause every trigger group currently holding triggers."""
        with self._locked():
            for group in list(self._triggers_by_group):
                self.pause_trigger_group(group)

    def resume_all(self) -> None:
        """Forget every paused group and resume every paused trigger."""
        with self._locked():
            self._paused_job_groups.clear()
            self._paused_trigger_groups.clear()
            for wrapper in list(self._triggers_by_key.values()):
                self._resume(wrapper)
            logger.event(create_store_event("group_resumed", group="*"))

    def paused_trigger_groups(self) -> Set[str]:
        with self._locked():
            return set(self._paused_trigger_groups)

    def is_trigger_group_paused(self, group: str) -> bool:
        with self._locked():
            return group in self._paused_trigger_groups

    def is_job_group_paused(self, group: str) -> bool:
        with self._locked():
            return group in self._paused_job_groups

    # Blocking

    def block_job(self, key: JobKey) -> None:
        """Hold back a job's triggers while it executes exclusively.

        :param key: Job key.
        """
        with self._locked():
            self._blocked_jobs.add(key)
            for wrapper in list(self._triggers_by_job.get(key, {}).values()):
                if wrapper.state == TriggerState.WAITING:
                    self._transition(wrapper, TriggerState.BLOCKED)
                elif wrapper.state == TriggerState.PAUSED:
                    self._transition(wrapper, TriggerState.PAUSED_BLOCKED)
            logger.event(create_store_event("job_blocked", job_key=key))

    def unblock_job(self, key: JobKey) -> None:
        """Release a job blocked by ``block_job``.

        :param key: Job key.
        """
        with self._locked():
            self._blocked_jobs.discard(key)
            for wrapper in list(self._triggers_by_job.get(key, {}).values()):
                if wrapper.state == TriggerState.BLOCKED:
                    self._transition(wrapper, TriggerState.WAITING)
                elif wrapper.state == TriggerState.PAUSED_BLOCKED:
                    self._transition(wrapper, TriggerState.PAUSED)
            logger.event(create_store_event("job_unblocked", job_key=key))

    def is_job_blocked(self, key: JobKey) -> bool:
        with self._locked():
            return key in self._blocked_jobs

    def clear_all_scheduling_data(self) -> None:
        """Remove every job and trigger and forget paused and blocked state."""
        with self._locked():
            count = len(self._jobs_by_key) + len(self._triggers_by_key)
            self._jobs_by_key.clear()
            self._jobs_by_group.clear()
            self._triggers_by_key.clear()
            self._triggers_by_group.clear()
            self._triggers_by_job.clear()
            self._time_triggers.clear()
            self._paused_trigger_groups.clear()
            self._paused_job_groups.clear()
            self._blocked_jobs.clear()
            logger.event(create_store_event("store_cleared", count=count))
