# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""List-backed sorted set ordered by a comparator function."""

from bisect import bisect_left
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Callable, Generic, Iterator, List, Optional, TypeVar

from src.jobstore.models.trigger import AbstractTrigger

T = TypeVar("T")

CompareFunc = Callable[[Any, Any], int]


def _cmp(lhs: Any, rhs: Any) -> int:
    return (lhs > rhs) - (lhs < rhs)


def compare_by_key(lhs: AbstractTrigger, rhs: AbstractTrigger) -> int:
    """Order triggers by their ``group.name`` key string."""
    return _cmp(str(lhs.key), str(rhs.key))


def compare_by_fire_time(lhs: AbstractTrigger, rhs: AbstractTrigger) -> int:
    """Order triggers by next fire time, then priority (highest first), then key.

    Triggers without a next fire time sort last.
    """
    lhs_time: Optional[datetime] = lhs.next_fire_time
    rhs_time: Optional[datetime] = rhs.next_fire_time
    if lhs_time != rhs_time:
        if lhs_time is None:
            return 1
        if rhs_time is None:
            return -1
        return _cmp(lhs_time, rhs_time)
    if lhs.priority != rhs.priority:
        return _cmp(rhs.priority, lhs.priority)
    return compare_by_key(lhs, rhs)


class SortedSet(Generic[T]):
    """Sequence kept sorted by ``compare``.

    Lookups are binary searches; insertion and removal shift the backing
    list. Elements that compare equal are treated as the same element.
    """

    def __init__(self, compare: CompareFunc) -> None:
        self._compare = compare
        self._sort_key = cmp_to_key(compare)
        self._items: List[T] = []

    def _search(self, item: T) -> int:
        return bisect_left(self._items, self._sort_key(item), key=self._sort_key)

    def _found(self, index: int, item: T) -> bool:
        return index < len(self._items) and self._compare(self._items[index], item) == 0

    def add(self, item: T) -> bool:
        """Insert ``item`` unless an equal element is already present.

        :returns: True if the item was inserted.
        """
        index = self._search(item)
        if self._found(index, item):
            return False
        self._items.insert(index, item)
        return True

    def remove(self, item: T) -> bool:
        """Remove the element equal to ``item``.

        :returns: True if an element was removed.
        """
        index = self._search(item)
        if not self._found(index, item):
            return False
        del self._items[index]
        return True

    def contains(self, item: T) -> bool:
        return self._found(self._search(item), item)

    def first(self) -> Optional[T]:
        return self._items[0] if self._items else None

    def clear(self) -> None:
        self._items.clear()

    @property
    def empty(self) -> bool:
        return not self._items

    def __contains__(self, item: object) -> bool:
        return self.contains(item)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))
