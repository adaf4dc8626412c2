"""Core value types shared by the storage, retention and backup modules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class RoleState(str, Enum):
    """Replication role of the local Redis node."""

    PRIMARY = "primary"
    REPLICA = "replica"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class StorageObject:
    """One previously uploaded snapshot, as reported by a listing."""

    key: str
    created_at: datetime
    size_bytes: int = 0
    node_name: str | None = None  # None when the key is not one of ours


@dataclass(frozen=True)
class RetentionPolicy:
    """Count- and age-based retention rule.

    An object survives pruning if it is among the ``keep_last`` newest objects
    OR younger than ``keep_duration``. With ``keep_last == 0`` and no
    ``keep_duration`` the policy retains everything.
    """

    keep_last: int = 0
    keep_duration: timedelta | None = None

    def __post_init__(self) -> None:
        if self.keep_last < 0:
            raise ValueError(f"keep_last must be >= 0, got {self.keep_last}")
        if self.keep_duration is not None and self.keep_duration < timedelta(0):
            raise ValueError(f"keep_duration must be >= 0, got {self.keep_duration}")

    @property
    def is_noop(self) -> bool:
        """True when the policy never deletes anything."""
        return self.keep_last == 0 and not self.keep_duration


def backup_decision(role: RoleState, backup_on_primary: bool, backup_on_replica: bool) -> bool:
    """Decide whether a node in ``role`` should be backed up.

    An unknown role is never eligible, whatever the flags say.
    """
    if role is RoleState.PRIMARY:
        return backup_on_primary
    if role is RoleState.REPLICA:
        return backup_on_replica
    return False
