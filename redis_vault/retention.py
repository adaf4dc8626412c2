"""Retention policy evaluation.

Pure functions only: callers pass the listing, the policy and the current
time, and get back the keys to delete.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from redis_vault.models import RetentionPolicy, StorageObject


@dataclass
class RetentionPlan:
    """Ordered outcome of a retention pass (newest first)."""

    retain: list[StorageObject] = field(default_factory=list)
    delete: list[StorageObject] = field(default_factory=list)

    @property
    def delete_keys(self) -> set[str]:
        return {obj.key for obj in self.delete}


def sort_newest_first(objects: Iterable[StorageObject]) -> list[StorageObject]:
    """Sort by ``created_at`` descending, ties broken by ``key`` ascending."""
    by_key = sorted(objects, key=lambda o: o.key)
    # stable sort keeps key order within equal timestamps
    return sorted(by_key, key=lambda o: o.created_at, reverse=True)


def plan(
    objects: Iterable[StorageObject],
    policy: RetentionPolicy,
    now: datetime,
    node_name: str,
) -> RetentionPlan:
    """Split this node's objects into retained and deletable ones."""
    ours = sort_newest_first(o for o in objects if o.node_name == node_name)

    if policy.is_noop:
        return RetentionPlan(retain=ours)

    retained: set[str] = {o.key for o in ours[: policy.keep_last]}

    if policy.keep_duration:
        retained.update(o.key for o in ours if now - o.created_at < policy.keep_duration)

    result = RetentionPlan()
    for obj in ours:
        (result.retain if obj.key in retained else result.delete).append(obj)
    return result


def evaluate(
    objects: Iterable[StorageObject],
    policy: RetentionPolicy,
    now: datetime,
    node_name: str,
) -> set[str]:
    """Return the keys that satisfy neither retention criterion."""
    return plan(objects, policy, now, node_name).delete_keys
