"""Object key naming scheme.

Keys look like ``{prefix}/{node_name}_{timestamp}.{ext}``, for example
``redis-vault/cache-0_2024-01-15T08:30:00Z.rdb``. The timestamp is RFC 3339
UTC at second precision, which sorts lexicographically in chronological
order. Buckets written by earlier releases use the same format, so it must
not change.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import PurePosixPath

from redis_vault.models import StorageObject

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DEFAULT_EXTENSION = "rdb"

_KEY_RE = re.compile(
    r"^(?P<node>[^/]+)_(?P<ts>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z)\.(?P<ext>[^/]+)$"
)


def _normalize_prefix(prefix: str) -> str:
    return prefix.rstrip("/")


def format_timestamp(ts: datetime) -> str:
    """Encode ``ts`` in the fixed sortable form. Naive datetimes are UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Inverse of :func:`format_timestamp`. Raises ``ValueError``."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def snapshot_extension(filename: str) -> str:
    """Extension used for uploaded keys, taken from the dump filename."""
    suffix = PurePosixPath(filename).suffix.lstrip(".")
    return suffix or DEFAULT_EXTENSION


def node_prefix(prefix: str, node_name: str) -> str:
    """Listing scope for one node's snapshots."""
    prefix = _normalize_prefix(prefix)
    return f"{prefix}/{node_name}" if prefix else node_name


def build_key(prefix: str, node_name: str, timestamp: datetime, extension: str = DEFAULT_EXTENSION) -> str:
    """Build the storage key for a snapshot taken at ``timestamp``."""
    name = f"{node_name}_{format_timestamp(timestamp)}.{extension.lstrip('.')}"
    prefix = _normalize_prefix(prefix)
    return f"{prefix}/{name}" if prefix else name


def parse_key(key: str, prefix: str) -> tuple[str, datetime] | None:
    """Return ``(node_name, timestamp)`` for keys produced by :func:`build_key`.

    Keys outside ``prefix`` or not matching the scheme give ``None`` so that
    foreign objects sharing the bucket are ignored rather than pruned.
    """
    prefix = _normalize_prefix(prefix)
    if prefix:
        head = prefix + "/"
        if not key.startswith(head):
            return None
        rest = key[len(head):]
    else:
        rest = key

    match = _KEY_RE.match(rest)
    if match is None:
        return None

    try:
        timestamp = parse_timestamp(match.group("ts"))
    except ValueError:
        return None

    return match.group("node"), timestamp


def annotate(obj: StorageObject, prefix: str) -> StorageObject:
    """Fill in ``node_name`` and the logical ``created_at`` from the key.

    Objects whose key does not parse keep their storage modification time and
    get ``node_name=None``.
    """
    parsed = parse_key(obj.key, prefix)
    if parsed is None:
        return replace(obj, node_name=None)
    node_name, timestamp = parsed
    return replace(obj, node_name=node_name, created_at=timestamp)
