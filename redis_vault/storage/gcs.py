"""Google Cloud Storage backend."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, BinaryIO

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from redis_vault.exceptions import StorageError
from redis_vault.models import StorageObject
from redis_vault.naming import annotate

if TYPE_CHECKING:
    from redis_vault.config import GcsStorageSettings

logger = logging.getLogger(__name__)

# requests' transport errors derive from OSError
_GCS_ERRORS = (GoogleAPIError, GoogleAuthError, OSError)


class GcsBackend:
    """Store snapshots in a GCS bucket, authenticated with application default credentials."""

    name = "gcs"

    def __init__(self, settings: GcsStorageSettings, client=None) -> None:
        self.bucket_name = settings.bucket
        self.prefix = settings.prefix
        self.url = f"gs://{self.bucket_name}"
        self.timeout = settings.timeout.total_seconds()

        if client is None:
            try:
                client = storage.Client(project=settings.project_id)
            except _GCS_ERRORS as e:
                raise StorageError(self.name, "connect", self.url, e) from e
        self.client = client
        self.bucket = self.client.bucket(self.bucket_name)

    def verify(self) -> None:
        try:
            exists = self.bucket.exists(timeout=self.timeout)
        except _GCS_ERRORS as e:
            raise StorageError(self.name, "verify", self.url, e) from e
        if not exists:
            raise StorageError(self.name, "verify", self.url, NotFound(f"bucket {self.bucket_name} does not exist"))

    def upload(self, key: str, content: BinaryIO, size_hint: int) -> None:
        # single-shot and resumable uploads only become visible once complete
        blob = self.bucket.blob(key)
        try:
            blob.upload_from_file(
                content,
                size=size_hint,
                content_type="application/octet-stream",
                timeout=self.timeout,
            )
        except _GCS_ERRORS as e:
            raise StorageError(self.name, "upload", key, e) from e
        logger.debug(f"Uploaded {size_hint} bytes to {self.url}/{key}")

    def list(self, prefix: str) -> list[StorageObject]:
        objects: list[StorageObject] = []
        try:
            # the iterator follows page tokens on its own
            for blob in self.client.list_blobs(self.bucket_name, prefix=prefix, timeout=self.timeout):
                created = blob.time_created or blob.updated
                if created is None:
                    created = datetime.fromtimestamp(0, UTC)
                if created.tzinfo is None:
                    created = created.replace(tzinfo=UTC)
                objects.append(
                    annotate(
                        StorageObject(
                            key=blob.name,
                            created_at=created.astimezone(UTC),
                            size_bytes=blob.size or 0,
                        ),
                        self.prefix,
                    )
                )
        except _GCS_ERRORS as e:
            raise StorageError(self.name, "list", prefix, e) from e
        return objects

    def delete(self, key: str) -> None:
        try:
            self.bucket.blob(key).delete(timeout=self.timeout)
        except NotFound:
            return
        except _GCS_ERRORS as e:
            raise StorageError(self.name, "delete", key, e) from e
        logger.info(f"Deleted {self.url}/{key}")
