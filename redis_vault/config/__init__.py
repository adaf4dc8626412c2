"""Configuration for Redis Vault.

Usage:
    from redis_vault.config import load_settings

    settings = load_settings("config.yaml")
    settings.redis.node_name        # "redis-node"
    settings.retention_policy       # RetentionPolicy(keep_last=7, ...)

Precedence, highest first: ``REDIS_VAULT_*`` nested environment variables
(``REDIS_VAULT_RETENTION__KEEP_LAST=3``), the flat environment variables
listed in :data:`ENV_OVERRIDES`, the YAML file, built-in defaults.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from redis_vault.config._durations import format_duration, parse_duration
from redis_vault.config._loader import (
    ENV_OVERRIDES,
    apply_env_overrides,
    find_config_file,
    read_config_file,
)
from redis_vault.config._sections import (
    GcsStorageSettings,
    LocalStorageSettings,
    S3StorageSettings,
)
from redis_vault.config._settings import Settings
from redis_vault.exceptions import ConfigError

logger = logging.getLogger(__name__)

__all__ = [
    "ENV_OVERRIDES",
    "GcsStorageSettings",
    "LocalStorageSettings",
    "S3StorageSettings",
    "Settings",
    "apply_env_overrides",
    "find_config_file",
    "format_duration",
    "load_settings",
    "parse_duration",
]


def load_settings(path: str | Path | None = None, *, dotenv: bool = False) -> Settings:
    """Build the immutable Settings for one run.

    A missing config file falls back to defaults; an unreadable or invalid
    one raises :class:`ConfigError`.
    """
    if dotenv:
        load_dotenv()

    config_path = find_config_file(path)
    if config_path is None:
        logger.info("No config file in use, starting from defaults")
        data = {}
    else:
        data = read_config_file(config_path)
    data = apply_env_overrides(data)

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration:\n{e}") from e
