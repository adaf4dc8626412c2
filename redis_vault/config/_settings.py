"""Root Settings model."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from redis_vault.config._sections import (
    BackupSettings,
    LoggingSettings,
    MetricsSettings,
    RedisSettings,
    RetentionSettings,
    S3StorageSettings,
    StorageSettings,
)
from redis_vault.models import RetentionPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REDIS_VAULT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    redis: RedisSettings = Field(default_factory=RedisSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    storage: StorageSettings = Field(default_factory=S3StorageSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    @model_validator(mode="after")
    def _check_timeouts(self) -> Settings:
        interval = self.backup.interval
        timeouts = {
            "redis.role_timeout": self.redis.role_timeout,
            "storage.timeout": self.storage.timeout,
        }
        for name, timeout in timeouts.items():
            if timeout >= interval:
                raise ValueError(f"{name} ({timeout}) must be shorter than backup.interval ({interval})")
        if self.storage.call_budget >= interval:
            raise ValueError(
                f"storage.timeout x storage.max_attempts ({self.storage.call_budget}) "
                f"must be shorter than backup.interval ({interval})"
            )
        return self

    @property
    def snapshot_path(self) -> Path:
        return self.redis.data_path / self.backup.dump_filename

    @property
    def retention_policy(self) -> RetentionPolicy:
        return self.retention.policy

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # init carries the YAML file with legacy env overrides already applied
        return (
            env_settings,
            init_settings,
        )
