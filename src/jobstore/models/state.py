# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Trigger lifecycle states."""

from enum import Enum


class TriggerState(str, Enum):
    """Derived runtime state of a stored trigger."""

    WAITING = "waiting"
    ACQUIRED = "acquired"
    EXECUTING = "executing"
    COMPLETE = "complete"
    PAUSED = "paused"
    BLOCKED = "blocked"
    PAUSED_BLOCKED = "paused_blocked"
    ERROR = "error"

    @property
    def is_paused(self) -> bool:
        """True for the states produced by a group or trigger pause."""
        return self in (TriggerState.PAUSED, TriggerState.PAUSED_BLOCKED)

    @property
    def is_blocked(self) -> bool:
        """True for the states produced by a blocked job."""
        return self in (TriggerState.BLOCKED, TriggerState.PAUSED_BLOCKED)
