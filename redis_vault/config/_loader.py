"""Config file discovery, YAML loading and legacy environment overrides."""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from redis_vault.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "REDIS_VAULT_CONFIG"

# env var -> (section, field)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "REDIS_CONNECTION": ("redis", "connection_string"),
    "REDIS_DATA_PATH": ("redis", "data_path"),
    "REDIS_NODE_NAME": ("redis", "node_name"),
    "REDIS_ROLE_TIMEOUT": ("redis", "role_timeout"),
    "BACKUP_MASTER": ("redis", "backup_master"),
    "BACKUP_REPLICA": ("redis", "backup_replica"),
    "BACKUP_INTERVAL": ("backup", "interval"),
    "DUMP_FILENAME": ("backup", "dump_filename"),
    "INITIAL_DELAY": ("backup", "initial_delay"),
    "BACKUP_ALIGN_SCHEDULE": ("backup", "align_schedule"),
    "RETENTION_KEEP_LAST": ("retention", "keep_last"),
    "RETENTION_KEEP_DURATION": ("retention", "keep_duration"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_LEVEL": ("logging", "level"),
    "METRICS_ENABLED": ("metrics", "enabled"),
    "METRICS_PORT": ("metrics", "port"),
    "METRICS_LISTEN_ADDRESS": ("metrics", "listen_address"),
}

# storage type -> {env var: field}
STORAGE_ENV_OVERRIDES: dict[str, dict[str, str]] = {
    "s3": {
        "S3_BUCKET": "bucket",
        "S3_PREFIX": "prefix",
        "AWS_REGION": "region",
        "S3_ENDPOINT": "endpoint",
        "S3_MAX_ATTEMPTS": "max_attempts",
    },
    "gcs": {
        "GCS_BUCKET": "bucket",
        "GCS_PREFIX": "prefix",
        "GCS_PROJECT_ID": "project_id",
    },
    "local": {
        "LOCAL_STORAGE_PATH": "path",
        "LOCAL_STORAGE_PREFIX": "prefix",
    },
}


def find_config_file(explicit: str | Path | None = None) -> Path | None:
    """Find the config file using search order:
    1. explicit path (``--config``)
    2. REDIS_VAULT_CONFIG env var
    3. ./config.yaml, ./config.yml (CWD)
    4. /etc/redis-vault/config.yaml
    """
    if explicit is None:
        explicit = os.environ.get(CONFIG_ENV_VAR) or None

    if explicit is not None:
        p = Path(explicit)
        if p.is_file():
            return p
        logger.warning(f"No config file found at {p}, using defaults")
        return None

    candidates = [
        Path.cwd() / "config.yaml",
        Path.cwd() / "config.yml",
        Path("/etc/redis-vault/config.yaml"),
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML (or JSON, which is valid YAML) config file."""
    logger.info(f"Loading configuration from file: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping at the top level")
    return data


def _resolve_storage_type(storage: Mapping[str, Any], environ: Mapping[str, str]) -> str:
    explicit = environ.get("STORAGE_TYPE", "").strip().lower()
    if explicit:
        return explicit
    if environ.get("GCS_BUCKET"):
        return "gcs"
    if environ.get("S3_BUCKET"):
        return "s3"
    return str(storage.get("type", "s3")).lower()


def apply_env_overrides(data: Mapping[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Return a copy of ``data`` with environment variable overrides applied.

    Switching the storage type from the environment drops the file's settings
    for the other backend, so an S3 bucket name never ends up as a GCS one.
    """
    environ = os.environ if environ is None else environ
    result: dict[str, Any] = copy.deepcopy(dict(data))

    for var, (section, field) in ENV_OVERRIDES.items():
        if var in environ:
            if not isinstance(result.get(section), dict):
                result[section] = {}
            result[section][field] = environ[var]

    storage = dict(result.get("storage") or {})
    storage_type = _resolve_storage_type(storage, environ)
    if storage.get("type", "s3") != storage_type:
        # carry over only backend-neutral fields
        storage = {k: v for k, v in storage.items() if k == "timeout"}
    storage["type"] = storage_type

    for var, field in STORAGE_ENV_OVERRIDES.get(storage_type, {}).items():
        if var in environ:
            storage[field] = environ[var]
    if "STORAGE_TIMEOUT" in environ:
        storage["timeout"] = environ["STORAGE_TIMEOUT"]

    result["storage"] = storage
    return result
