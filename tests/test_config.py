"""Tests for configuration loading."""

from datetime import timedelta
from pathlib import Path

import pytest

from redis_vault.config import (
    ENV_OVERRIDES,
    GcsStorageSettings,
    LocalStorageSettings,
    S3StorageSettings,
    Settings,
    apply_env_overrides,
    find_config_file,
    load_settings,
)
from redis_vault.exceptions import ConfigError
from redis_vault.models import RetentionPolicy

YAML = """
redis:
  connection_string: redis://:s3cret@cache:6379/0
  data_path: /var/lib/redis
  node_name: cache-0
backup:
  interval: 30m
  initial_delay: 10s
storage:
  type: s3
  bucket: prod-backups
  prefix: snapshots
  region: eu-west-1
retention:
  keep_last: 3
  keep_duration: 2d
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(YAML)
    return path


class TestDefaults:
    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings()

        assert settings.redis.connection_string == "redis://localhost:6379"
        assert settings.redis.node_name == "redis-node"
        assert settings.redis.backup_master and settings.redis.backup_replica
        assert settings.backup.interval == timedelta(hours=1)
        assert settings.backup.initial_delay == timedelta(seconds=300)
        assert settings.snapshot_path == Path("/data/dump.rdb")
        assert isinstance(settings.storage, S3StorageSettings)
        assert settings.storage.prefix == "redis-vault"
        assert settings.retention_policy == RetentionPolicy(keep_last=7)
        assert settings.logging.format == "text"
        assert settings.metrics.enabled is False

    def test_settings_are_frozen(self):
        settings = Settings()
        with pytest.raises(Exception):
            settings.redis = None

    def test_connection_string_not_in_repr(self, config_file):
        settings = load_settings(config_file)
        assert "s3cret" not in repr(settings)


class TestYamlFile:
    def test_values_loaded(self, config_file):
        settings = load_settings(config_file)

        assert settings.redis.node_name == "cache-0"
        assert settings.snapshot_path == Path("/var/lib/redis/dump.rdb")
        assert settings.backup.interval == timedelta(minutes=30)
        assert settings.storage.bucket == "prod-backups"
        assert settings.storage.prefix == "snapshots"
        assert settings.storage.region == "eu-west-1"
        assert settings.retention_policy == RetentionPolicy(keep_last=3, keep_duration=timedelta(days=2))

    def test_path_from_env(self, config_file, monkeypatch):
        monkeypatch.setenv("REDIS_VAULT_CONFIG", str(config_file))
        assert load_settings().redis.node_name == "cache-0"

    def test_found_in_cwd(self, config_file, monkeypatch):
        monkeypatch.chdir(config_file.parent)
        assert find_config_file() == Path.cwd() / "config.yaml"

    def test_missing_explicit_file_uses_defaults(self, tmp_path):
        assert find_config_file(tmp_path / "nope.yaml") is None
        assert load_settings(tmp_path / "nope.yaml").redis.node_name == "redis-node"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path).retention.keep_last == 7

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("redis: [unclosed")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_settings(path)


class TestValidation:
    @pytest.mark.parametrize(
        "data",
        [
            {"redis": {"node_name": ""}},
            {"redis": {"node_name": "a/b"}},
            {"retention": {"keep_last": -1}},
            {"backup": {"interval": "0s"}},
            {"backup": {"interval": "soon"}},
            {"storage": {"type": "s3", "bucket": ""}},
            {"storage": {"type": "gcs"}},
            {"storage": {"type": "ftp"}},
            {"logging": {"format": "xml"}},
            {"metrics": {"port": 0}},
        ],
    )
    def test_rejected(self, data):
        with pytest.raises(ValueError):
            Settings(**data)

    def test_role_timeout_must_be_below_interval(self):
        with pytest.raises(ValueError, match="role_timeout"):
            Settings(backup={"interval": "5s"})

    def test_storage_timeout_must_be_below_interval(self):
        with pytest.raises(ValueError, match="storage.timeout"):
            Settings(backup={"interval": "30s"}, redis={"role_timeout": "1s"})

    def test_s3_retries_must_fit_in_interval(self):
        with pytest.raises(ValueError, match="max_attempts"):
            Settings(backup={"interval": "2m"}, storage={"type": "s3", "timeout": "60s"})

    def test_s3_single_attempt_fits_in_interval(self):
        settings = Settings(backup={"interval": "2m"}, storage={"type": "s3", "timeout": "60s", "max_attempts": 1})
        assert settings.storage.call_budget == timedelta(seconds=60)

    def test_s3_max_attempts_from_env(self, monkeypatch):
        monkeypatch.setenv("S3_MAX_ATTEMPTS", "5")
        assert load_settings(None).storage.max_attempts == 5

    def test_load_wraps_validation_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("retention:\n  keep_last: -3\n")
        with pytest.raises(ConfigError, match="keep_last"):
            load_settings(path)

    def test_log_format_case_insensitive(self):
        assert Settings(logging={"format": "JSON", "level": "WARN"}).logging.format == "json"


class TestEnvOverrides:
    def test_flat_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("REDIS_NODE_NAME", "cache-9")
        monkeypatch.setenv("RETENTION_KEEP_LAST", "12")
        monkeypatch.setenv("BACKUP_INTERVAL", "2h")
        monkeypatch.setenv("BACKUP_REPLICA", "false")
        monkeypatch.setenv("S3_BUCKET", "other-bucket")

        settings = load_settings(config_file)

        assert settings.redis.node_name == "cache-9"
        assert settings.retention.keep_last == 12
        assert settings.backup.interval == timedelta(hours=2)
        assert settings.redis.backup_replica is False
        assert settings.storage.bucket == "other-bucket"
        assert settings.storage.prefix == "snapshots"

    def test_nested_env_wins_over_flat(self, config_file, monkeypatch):
        monkeypatch.setenv("RETENTION_KEEP_LAST", "12")
        monkeypatch.setenv("REDIS_VAULT_RETENTION__KEEP_LAST", "4")
        assert load_settings(config_file).retention.keep_last == 4

    def test_gcs_bucket_selects_gcs(self, config_file, monkeypatch):
        monkeypatch.setenv("GCS_BUCKET", "gcs-backups")
        monkeypatch.setenv("GCS_PROJECT_ID", "my-project")

        storage = load_settings(config_file).storage

        assert isinstance(storage, GcsStorageSettings)
        assert storage.bucket == "gcs-backups"
        assert storage.project_id == "my-project"
        assert storage.prefix == "redis-vault"

    def test_storage_type_local(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("STORAGE_TYPE", "local")
        monkeypatch.setenv("LOCAL_STORAGE_PATH", str(tmp_path / "out"))
        monkeypatch.setenv("STORAGE_TIMEOUT", "15s")

        storage = load_settings().storage

        assert isinstance(storage, LocalStorageSettings)
        assert storage.path == tmp_path / "out"
        assert storage.timeout == timedelta(seconds=15)

    def test_apply_env_overrides_does_not_mutate(self):
        data = {"redis": {"node_name": "a"}}
        result = apply_env_overrides(data, {"REDIS_NODE_NAME": "b"})
        assert data == {"redis": {"node_name": "a"}}
        assert result["redis"]["node_name"] == "b"
        assert result["storage"] == {"type": "s3"}

    def test_null_section_in_file(self):
        result = apply_env_overrides({"retention": None}, {"RETENTION_KEEP_LAST": "2"})
        assert result["retention"] == {"keep_last": "2"}

    def test_every_override_targets_a_field(self):
        for var, (section, field) in ENV_OVERRIDES.items():
            assert field in Settings.model_fields[section].annotation.model_fields, var
