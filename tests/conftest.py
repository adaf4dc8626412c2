"""Pytest configuration and fixtures for Redis Vault tests."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import BinaryIO

import pytest

from redis_vault.config import ENV_OVERRIDES, Settings
from redis_vault.config._loader import CONFIG_ENV_VAR, STORAGE_ENV_OVERRIDES
from redis_vault.exceptions import StorageError
from redis_vault.metrics import PrometheusMetrics
from redis_vault.models import StorageObject
from redis_vault.naming import annotate

NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)


class FakeBackend:
    """In-memory StorageBackend that records every call."""

    name = "fake"
    url = "mem://bucket"

    def __init__(self, prefix: str = "redis-vault"):
        self.prefix = prefix
        self.objects: dict[str, tuple[bytes, datetime]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_verify = False
        self.fail_upload = False
        self.fail_list = False
        self.fail_delete: set[str] = set()

    def add(self, key: str, created_at: datetime = NOW, data: bytes = b"x") -> None:
        self.objects[key] = (data, created_at)

    def verify(self) -> None:
        self.calls.append(("verify", ""))
        if self.fail_verify:
            raise StorageError(self.name, "verify", self.url, ConnectionError("unreachable"))

    def upload(self, key: str, content: BinaryIO, size_hint: int) -> None:
        self.calls.append(("upload", key))
        if self.fail_upload:
            raise StorageError(self.name, "upload", key, ConnectionError("connection reset"))
        self.objects[key] = (content.read(), NOW)

    def list(self, prefix: str) -> list[StorageObject]:
        self.calls.append(("list", prefix))
        if self.fail_list:
            raise StorageError(self.name, "list", prefix, TimeoutError("timed out"))
        return [
            annotate(StorageObject(key=key, created_at=created, size_bytes=len(data)), self.prefix)
            for key, (data, created) in self.objects.items()
            if key.startswith(prefix)
        ]

    def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        if key in self.fail_delete:
            raise StorageError(self.name, "delete", key, PermissionError("access denied"))
        self.objects.pop(key, None)

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Drop every environment variable the config loader reads."""
    names = set(ENV_OVERRIDES) | {CONFIG_ENV_VAR, "STORAGE_TYPE", "STORAGE_TIMEOUT"}
    for overrides in STORAGE_ENV_OVERRIDES.values():
        names.update(overrides)
    for name in names:
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.upper().startswith("REDIS_VAULT_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def metrics():
    return PrometheusMetrics()


@pytest.fixture
def make_settings(tmp_path):
    """Build Settings with local storage and a data dir under tmp_path."""

    def _make(**sections) -> Settings:
        data = {
            "redis": {"data_path": str(tmp_path / "data"), "node_name": "cache-0"},
            "storage": {"type": "local", "path": str(tmp_path / "bucket")},
            "backup": {"initial_delay": 0},
        }
        for section, values in sections.items():
            data.setdefault(section, {}).update(values)
        return Settings(**data)

    return _make


@pytest.fixture
def snapshot(tmp_path):
    """Write a dump.rdb with a fixed modification time."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    path = data_dir / "dump.rdb"
    path.write_bytes(b"REDIS0011" + b"\x00" * 128)
    mtime = datetime(2024, 1, 15, 8, 30, 0, tzinfo=UTC).timestamp()
    os.utime(path, (mtime, mtime))
    return path
