# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Identity keys for jobs and triggers."""

import hashlib
import random
from dataclasses import dataclass
from functools import total_ordering
from typing import Optional, Protocol, Type, TypeVar

from src.jobstore.exceptions import ValidationError

DEFAULT_GROUP = "DEFAULT"

_SYSTEM_RANDOM = random.SystemRandom()

K = TypeVar("K", bound="Key")


class RandomSource(Protocol):
    """Anything exposing ``getrandbits``, e.g. ``random.Random``."""

    def getrandbits(self, k: int) -> int: ...


def unique_name(group: str, rng: Optional[RandomSource] = None) -> str:
    """Generate a name that will not collide with others in the same group.

    The name is the tail of the group's md5 digest followed by 16 random
    bytes, both hex encoded (41 characters in total).

    :param group: Group the name is generated for.
    :param rng: Random source, defaults to the system random generator.
    :returns: Generated name.
    """
    source = rng or _SYSTEM_RANDOM
    suffix = source.getrandbits(128).to_bytes(16, "big").hex()
    digest = hashlib.md5(group.encode("utf-8")).digest()
    return f"{digest[12:].hex()}-{suffix}"


@total_ordering
@dataclass(frozen=True)
class Key:
    """Immutable ``(group, name)`` identity, rendered as ``group.name``.

    Keys of different concrete types never compare equal.
    """

    name: str
    group: str = DEFAULT_GROUP

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError(f"{type(self).__name__} name cannot be empty")
        if not self.group:
            object.__setattr__(self, "group", DEFAULT_GROUP)
        if "." in self.group:
            raise ValidationError(
                f"{type(self).__name__} group cannot contain '.': {self.group!r}"
            )

    def __str__(self) -> str:
        return f"{self.group}.{self.name}"

    def __lt__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return (self.group, self.name) < (other.group, other.name)  # type: ignore[attr-defined]

    @classmethod
    def parse(cls: Type[K], value: str) -> K:
        """Build a key from its ``group.name`` string form.

        :param value: String form; without a dot the default group is used.
        :returns: Parsed key.
        """
        group, sep, name = value.partition(".")
        if not sep:
            return cls(group)
        return cls(name, group)

    @classmethod
    def unique(cls: Type[K], group: str = "", rng: Optional[RandomSource] = None) -> K:
        """Build a key with a generated unique name.

        :param group: Group of the key, the default group when empty.
        :param rng: Injectable random source.
        :returns: New key.
        """
        group = group or DEFAULT_GROUP
        return cls(unique_name(group, rng), group)


class JobKey(Key):
    """Identity of a stored job."""


class TriggerKey(Key):
    """Identity of a stored trigger."""
