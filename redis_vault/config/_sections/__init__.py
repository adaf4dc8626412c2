"""Config section models."""

from redis_vault.config._sections.backup import BackupSettings
from redis_vault.config._sections.logging import LoggingSettings
from redis_vault.config._sections.metrics import MetricsSettings
from redis_vault.config._sections.redis import RedisSettings
from redis_vault.config._sections.retention import RetentionSettings
from redis_vault.config._sections.storage import (
    GcsStorageSettings,
    LocalStorageSettings,
    S3StorageSettings,
    StorageSettings,
)

__all__ = [
    "BackupSettings",
    "GcsStorageSettings",
    "LocalStorageSettings",
    "LoggingSettings",
    "MetricsSettings",
    "RedisSettings",
    "RetentionSettings",
    "S3StorageSettings",
    "StorageSettings",
]
