"""Retention sweeps for unused binary values.

Provides tools for:
  - Turning a time-to-live into a removal deadline
  - Removing every Unused value marked before that deadline
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from .config import RetentionConfig
from .dialects import as_utc, utc_now

if TYPE_CHECKING:
    from .store import ContentStore

logger = logging.getLogger(__name__)

__all__ = ["RetentionPolicy", "SweepResult", "collect_garbage"]


@dataclass(frozen=True)
class RetentionPolicy:
    """How long a value must stay Unused before a sweep may remove it.

    Attributes:
        unused_ttl: Minimum time between mark-unused and removal
    """

    unused_ttl: timedelta = timedelta(days=7)

    def __post_init__(self) -> None:
        if self.unused_ttl < timedelta(0):
            raise ValueError("unused_ttl must be >= 0")

    @classmethod
    def from_config(cls, config: RetentionConfig) -> RetentionPolicy:
        return cls(unused_ttl=timedelta(seconds=config.unused_ttl_seconds))

    def deadline(self, now: Optional[datetime] = None) -> datetime:
        """Values marked unused strictly before this moment are expired."""
        moment = as_utc(now) if now is not None else utc_now()
        return moment - self.unused_ttl


@dataclass(frozen=True)
class SweepResult:
    """Outcome of one sweep; ``removed`` is -1 when the driver gives no count."""

    deadline: datetime
    removed: int


def collect_garbage(
    store: ContentStore,
    connection: Any,
    policy: Optional[RetentionPolicy] = None,
    now: Optional[datetime] = None,
) -> SweepResult:
    """Remove Unused values older than the policy allows.

    Args:
        store: Store whose table is swept
        connection: Connection the delete runs on (left open)
        policy: Retention policy; the store's configured retention when omitted
        now: Reference time (defaults to the current UTC time)

    Returns:
        SweepResult with the deadline used and the number of rows removed
    """
    if policy is None:
        policy = RetentionPolicy.from_config(store.config.retention)
    deadline = policy.deadline(now)
    removed = store.remove_expired(deadline, connection)
    logger.info(
        f"Retention sweep on '{store.table_name}': removed {removed} values "
        f"unused since before {deadline.isoformat()}"
    )
    return SweepResult(deadline=deadline, removed=removed)
