"""Storage backends for uploaded snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO, Protocol

from redis_vault.exceptions import StorageError
from redis_vault.models import StorageObject

if TYPE_CHECKING:
    from redis_vault.config import Settings

__all__ = ["StorageBackend", "StorageError", "StorageObject", "create_backend"]


class StorageBackend(Protocol):
    """Protocol for snapshot storage backends.

    Every failure is raised as :class:`StorageError`; no SDK-specific type
    crosses this boundary.
    """

    name: str
    url: str

    def upload(self, key: str, content: BinaryIO, size_hint: int) -> None:
        """Store ``content`` under ``key``, replacing any existing object."""
        ...

    def list(self, prefix: str) -> list[StorageObject]:
        """Every object whose key starts with ``prefix``, in no particular order."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are not an error."""
        ...

    def verify(self) -> None:
        """Check that the bucket or directory is reachable."""
        ...


def create_backend(settings: Settings) -> StorageBackend:
    """Create a storage backend based on configuration."""
    storage = settings.storage
    if storage.type == "s3":
        from redis_vault.storage.s3 import S3Backend

        return S3Backend(storage)

    if storage.type == "gcs":
        from redis_vault.storage.gcs import GcsBackend

        return GcsBackend(storage)

    from redis_vault.storage.local import LocalBackend

    return LocalBackend(storage)
