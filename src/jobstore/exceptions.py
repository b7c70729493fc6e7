# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Job store exceptions.
"""

from typing import Any


class JobStoreError(Exception):
    """
    Base exception for job store errors.
    """

    pass


class ObjectAlreadyExistsError(JobStoreError):
    """
    Raised when storing an object whose key is already taken.
    """

    def __init__(self, key: Any, message: str) -> None:
        self.key = key
        super().__init__(message)


class JobAlreadyExistsError(ObjectAlreadyExistsError):
    """
    Raised when a job key collides and replacement was not requested.
    """

    def __init__(self, key: Any) -> None:
        super().__init__(
            key,
            f"Unable to store Job: '{key}', because one already exists "
            f"with this identification.",
        )


class TriggerAlreadyExistsError(ObjectAlreadyExistsError):
    """
    Raised when a trigger key collides and replacement was not requested.
    """

    def __init__(self, key: Any) -> None:
        super().__init__(
            key,
            f"Unable to store Trigger with name: '{key.name}' and group: "
            f"'{key.group}', because one already exists with this identification.",
        )


class JobPersistenceError(JobStoreError):
    """
    Raised when a trigger references a job that is not stored.
    """

    def __init__(self, job_key: Any, message: str = "") -> None:
        self.job_key = job_key
        super().__init__(
            message or f"The job ({job_key}) referenced by the trigger does not exist."
        )


class ValidationError(JobStoreError, ValueError):
    """Raised when a key, trigger window or schedule is invalid."""
