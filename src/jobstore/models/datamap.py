# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Key-ordered data map that tracks modifications."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterator, Mapping, Optional, Union

DataValue = Union[
    str, int, float, bool, bytes, None, datetime, timedelta, "JobDataMap"
]

_SCALAR_TYPES = (str, int, float, bool, bytes, datetime, timedelta, type(None))


def _coerce(value: Any) -> DataValue:
    """Normalise a value into the closed set of storable types.

    :param value: Candidate value.
    :returns: The value, with mappings copied into a new ``JobDataMap``.
    :raises TypeError: If the value type cannot be stored.
    """
    if isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, JobDataMap):
        return value.clone()
    if isinstance(value, Mapping):
        return JobDataMap(value)
    raise TypeError(f"Unsupported data map value type: {type(value).__name__}")


class JobDataMap:
    """String-keyed map enumerated in ascending key order.

    ``dirty`` reports whether the contents changed since construction or
    the last ``clear_dirty_flag``. Nested maps are copied on ``clone``.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._entries: dict[str, DataValue] = {}
        self._dirty = False
        if initial:
            for key, value in initial.items():
                self._entries[self._check_key(key)] = _coerce(value)

    @staticmethod
    def _check_key(key: Any) -> str:
        if not isinstance(key, str):
            raise TypeError(f"Data map keys must be strings, got {type(key).__name__}")
        return key

    @property
    def dirty(self) -> bool:
        """True when modified since the flag was last cleared."""
        return self._dirty

    def clear_dirty_flag(self) -> None:
        """Reset the dirty flag."""
        self._dirty = False

    @property
    def empty(self) -> bool:
        return not self._entries

    def keys(self) -> list[str]:
        return sorted(self._entries)

    def values(self) -> list[DataValue]:
        return [self._entries[key] for key in self.keys()]

    def entries(self) -> list[tuple[str, DataValue]]:
        return [(key, self._entries[key]) for key in self.keys()]

    def contains(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str, default: DataValue = None) -> DataValue:
        return self._entries.get(key, default)

    def put(self, key: str, value: Any) -> None:
        """Set a value, marking the map dirty only if it changed.

        :param key: Entry key.
        :param value: Entry value, see ``DataValue``.
        """
        key = self._check_key(key)
        value = _coerce(value)
        if key in self._entries:
            current = self._entries[key]
            if type(current) is type(value) and current == value:
                return
        self._entries[key] = value
        self._dirty = True

    def put_all(self, other: Union["JobDataMap", Mapping[str, Any]]) -> None:
        """Merge entries of another map; later values win."""
        items = other.entries() if isinstance(other, JobDataMap) else other.items()
        for key, value in items:
            self.put(key, value)

    def remove(self, key: str) -> DataValue:
        """Remove an entry, returning its value (``None`` when absent)."""
        if key not in self._entries:
            return None
        self._dirty = True
        return self._entries.pop(key)

    def clone(self) -> "JobDataMap":
        """Return an independent deep copy preserving the dirty flag."""
        clone = JobDataMap()
        for key, value in self._entries.items():
            clone._entries[key] = value.clone() if isinstance(value, JobDataMap) else value
        clone._dirty = self._dirty
        return clone

    def to_dict(self) -> dict[str, Any]:
        """Plain ``dict`` view, nested maps included, in key order."""
        return {
            key: value.to_dict() if isinstance(value, JobDataMap) else value
            for key, value in self.entries()
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __getitem__(self, key: str) -> DataValue:
        return self._entries[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self.put(key, value)

    def __delitem__(self, key: str) -> None:
        if key not in self._entries:
            raise KeyError(key)
        self.remove(key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JobDataMap):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"JobDataMap({self.to_dict()!r}, dirty={self._dirty})"
