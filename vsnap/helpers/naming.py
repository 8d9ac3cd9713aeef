"""
Snapshot naming convention.

A snapshot volume is named ``<prefix>-<timestamp>-<name>``. The timestamp
has at least ten digits so the pattern stays unambiguous for any name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

from ..types import SnapshotIdentity
from .constants import SNAPSHOT_PREFIX, TIMESTAMP_MIN_DIGITS

T = TypeVar("T")


class LookupStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass
class Lookup(Generic[T]):
    """Tagged result of an exactly-one lookup."""

    status: LookupStatus
    candidates: List[T] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @property
    def value(self) -> T:
        if self.status is not LookupStatus.FOUND:
            raise LookupError(f"lookup has no single value ({self.status.value})")
        return self.candidates[0]


def exactly_one(items: Iterable[T], predicate: Callable[[T], bool]) -> Lookup[T]:
    """Filter ``items`` and report whether exactly one of them matched."""
    matches = [item for item in items if predicate(item)]
    if not matches:
        return Lookup(LookupStatus.NOT_FOUND)
    if len(matches) > 1:
        return Lookup(LookupStatus.AMBIGUOUS, matches)
    return Lookup(LookupStatus.FOUND, matches)


class SnapshotNaming:
    """Formatter and parser for snapshot volume names with a given prefix."""

    def __init__(self, prefix: str = SNAPSHOT_PREFIX):
        if not prefix:
            raise ValueError("snapshot prefix must not be empty")
        self.prefix = prefix
        self._pattern = re.compile(
            rf"^{re.escape(prefix)}-(\d{{{TIMESTAMP_MIN_DIGITS},}})-(.+)$", re.DOTALL
        )

    @property
    def search_term(self) -> str:
        """Substring handed to the runtime's volume name filter."""
        return f"{self.prefix}-"

    def encode(self, identity: SnapshotIdentity) -> str:
        if identity.timestamp < 0:
            raise ValueError(f"timestamp must not be negative: {identity.timestamp}")
        if not identity.name:
            raise ValueError("snapshot name must not be empty")
        return f"{self.prefix}-{identity.timestamp:0{TIMESTAMP_MIN_DIGITS}d}-{identity.name}"

    def decode(self, volume_name: str) -> Optional[SnapshotIdentity]:
        """Return the identity encoded in ``volume_name`` or None."""
        match = self._pattern.match(volume_name)
        if match is None:
            return None
        return SnapshotIdentity(timestamp=int(match.group(1)), name=match.group(2))

    def matches(self, volume_name: str) -> bool:
        return self._pattern.match(volume_name) is not None

    def strip_prefix(self, volume_name: str) -> str:
        """Snapshot name of a volume, or the volume name itself if it does not match."""
        identity = self.decode(volume_name)
        return identity.name if identity else volume_name
