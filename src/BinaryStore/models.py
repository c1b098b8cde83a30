"""Value types for stored binaries: content keys, usage states and records."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Union

__all__ = ["ContentKey", "UsageState", "ContentRecord", "KeyLike"]


@dataclass(frozen=True)
class ContentKey:
    """Identifier of one stored binary value, normally a digest of its bytes."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("content key must be a non-blank string")

    @classmethod
    def for_content(cls, content: bytes, algorithm: str = "sha1") -> ContentKey:
        """Derive the key of ``content`` as a hex digest."""
        return cls(hashlib.new(algorithm, content).hexdigest())

    def __str__(self) -> str:
        return self.value


KeyLike = Union[ContentKey, str]


class UsageState(Enum):
    """Lifecycle state of a stored binary value."""

    ACTIVE = "active"
    UNUSED = "unused"
    DELETED = "deleted"

    @classmethod
    def from_unused_since(cls, unused_since: Optional[datetime]) -> UsageState:
        return cls.ACTIVE if unused_since is None else cls.UNUSED

    @property
    def successors(self) -> FrozenSet[UsageState]:
        return _TRANSITIONS[self]

    def can_become(self, other: UsageState) -> bool:
        return other in _TRANSITIONS[self]


_TRANSITIONS = {
    UsageState.ACTIVE: frozenset({UsageState.UNUSED}),
    UsageState.UNUSED: frozenset({UsageState.ACTIVE, UsageState.DELETED}),
    UsageState.DELETED: frozenset(),
}


@dataclass(frozen=True)
class ContentRecord:
    """Metadata row of a stored binary value (the payload is read separately)."""

    key: str
    usage_time: Optional[datetime]
    unused_since: Optional[datetime]
    mime_type: Optional[str]
    extracted_text: Optional[str]

    @property
    def state(self) -> UsageState:
        return UsageState.from_unused_since(self.unused_since)

    def is_expired(self, deadline: datetime) -> bool:
        """True when the record would be removed by a sweep at ``deadline``."""
        return self.unused_since is not None and self.unused_since < deadline
