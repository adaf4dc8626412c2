"""Exception hierarchy for Redis Vault."""

from __future__ import annotations


class VaultError(Exception):
    """Base class for all Redis Vault errors."""


class ConfigError(VaultError):
    """Configuration could not be loaded or failed validation."""


class StartupError(VaultError):
    """A fatal condition discovered before the backup loop starts."""


class StorageError(VaultError):
    """A storage backend operation failed.

    Wraps the SDK-specific exception so that nothing backend-specific leaks
    past the storage layer. The original exception is kept as ``__cause__``.
    """

    def __init__(self, backend: str, operation: str, target: str, cause: BaseException | None = None):
        self.backend = backend
        self.operation = operation
        self.target = target
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{backend} {operation} failed for {target!r}{detail}")
