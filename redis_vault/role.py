"""Replication role detection.

Uses ``INFO replication`` and reads the ``role`` field. Any failure to get a
clear answer becomes :attr:`RoleState.UNKNOWN`; role detection never raises.
"""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlparse

from redis import Redis

from redis_vault.models import RoleState

logger = logging.getLogger(__name__)

_ROLE_MAP = {
    "master": RoleState.PRIMARY,
    "primary": RoleState.PRIMARY,
    "slave": RoleState.REPLICA,
    "replica": RoleState.REPLICA,
}


def mask_url(url: str) -> str:
    """Return a connection URL with the password masked for display."""
    parsed = urlparse(url)
    if not parsed.password:
        return url
    host = parsed.hostname or ""
    if parsed.port:
        host = f"{host}:{parsed.port}"
    return parsed._replace(netloc=f"{parsed.username or ''}:****@{host}").geturl()


class RoleQuery(Protocol):
    """Return the raw role string reported by the database."""

    def __call__(self, connection_string: str, timeout: float) -> str: ...


def redis_role_query(connection_string: str, timeout: float) -> str:
    """Ask Redis for its replication role with a bounded timeout."""
    client = Redis.from_url(
        connection_string,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
        decode_responses=True,
    )
    try:
        info = client.info("replication")
    finally:
        client.close()
    return str(info.get("role", ""))


def classify_role(raw: str | None) -> RoleState:
    """Map a raw role string onto :class:`RoleState`."""
    if not raw:
        return RoleState.UNKNOWN
    return _ROLE_MAP.get(raw.strip().lower(), RoleState.UNKNOWN)


class RoleDetector:
    """Determine whether the local node is a primary or a replica."""

    def __init__(self, connection_string: str, timeout: float, query: RoleQuery = redis_role_query):
        self.connection_string = connection_string
        self.timeout = timeout
        self._query = query

    def detect(self) -> RoleState:
        try:
            raw = self._query(self.connection_string, self.timeout)
        except Exception as e:
            logger.warning(f"Role detection failed, treating role as unknown: {e}")
            return RoleState.UNKNOWN

        role = classify_role(raw)
        if role is RoleState.UNKNOWN:
            logger.warning(f"Unrecognized replication role {raw!r}")
        else:
            logger.debug(f"Detected replication role: {role.value}")
        return role
