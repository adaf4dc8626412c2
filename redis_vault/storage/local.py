"""Local filesystem storage backend."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, BinaryIO

from redis_vault.exceptions import StorageError
from redis_vault.models import StorageObject
from redis_vault.naming import annotate

if TYPE_CHECKING:
    from redis_vault.config import LocalStorageSettings

logger = logging.getLogger(__name__)

_TMP_SUFFIX = ".partial"


class LocalBackend:
    """Store snapshots below a directory, one file per key."""

    name = "local"

    def __init__(self, settings: LocalStorageSettings) -> None:
        self.base_dir = Path(settings.path)
        self.prefix = settings.prefix
        self.url = f"file://{self.base_dir.resolve()}"

    def _path(self, key: str) -> Path:
        rel = PurePosixPath(key)
        if rel.is_absolute() or ".." in rel.parts:
            raise StorageError(self.name, "resolve", key, ValueError("key escapes the storage directory"))
        return self.base_dir.joinpath(*rel.parts)

    def verify(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(self.name, "verify", str(self.base_dir), e) from e
        if not os.access(self.base_dir, os.W_OK):
            raise StorageError(self.name, "verify", str(self.base_dir), PermissionError("directory is not writable"))

    def upload(self, key: str, content: BinaryIO, size_hint: int) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=path.parent, suffix=_TMP_SUFFIX, delete=False) as tmp:
                tmp_name = tmp.name
                shutil.copyfileobj(content, tmp)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(self.name, "upload", key, e) from e
        logger.debug(f"Saved {size_hint} bytes to {path}")

    def list(self, prefix: str) -> list[StorageObject]:
        root = self.base_dir
        parent = PurePosixPath(prefix).parent if prefix else None
        if parent is not None and str(parent) != ".":
            root = self._path(str(parent))
        if not root.is_dir():
            return []

        objects: list[StorageObject] = []
        try:
            for f in root.rglob("*"):
                if not f.is_file() or f.name.endswith(_TMP_SUFFIX):
                    continue
                key = f.relative_to(self.base_dir).as_posix()
                if not key.startswith(prefix):
                    continue
                stat = f.stat()
                objects.append(
                    annotate(
                        StorageObject(
                            key=key,
                            created_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                            size_bytes=stat.st_size,
                        ),
                        self.prefix,
                    )
                )
        except OSError as e:
            raise StorageError(self.name, "list", prefix, e) from e
        return objects

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(self.name, "delete", key, e) from e
        logger.info(f"Deleted {path}")
