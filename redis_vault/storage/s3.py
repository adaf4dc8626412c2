"""S3-compatible storage backend (AWS, MinIO, Wasabi)."""

from __future__ import annotations

import logging
from datetime import UTC
from typing import TYPE_CHECKING, BinaryIO

import boto3
from boto3.exceptions import Boto3Error
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from redis_vault.exceptions import StorageError
from redis_vault.models import StorageObject
from redis_vault.naming import annotate

if TYPE_CHECKING:
    from redis_vault.config import S3StorageSettings

logger = logging.getLogger(__name__)

_S3_ERRORS = (BotoCoreError, ClientError, Boto3Error)
_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class S3Backend:
    """Store snapshots in an S3 bucket."""

    name = "s3"

    def __init__(self, settings: S3StorageSettings, client=None) -> None:
        self.bucket = settings.bucket
        self.prefix = settings.prefix
        self.url = f"s3://{self.bucket}"
        timeout = settings.timeout.total_seconds()

        if client is None:
            try:
                client = boto3.client(
                    "s3",
                    region_name=settings.region,
                    endpoint_url=settings.endpoint,
                    config=Config(
                        connect_timeout=timeout,
                        read_timeout=timeout,
                        retries={"max_attempts": settings.max_attempts, "mode": "standard"},
                    ),
                )
            except (*_S3_ERRORS, ValueError) as e:
                raise StorageError(self.name, "connect", self.url, e) from e
        self.client = client
        self.transfer_config = TransferConfig(use_threads=False)

    def verify(self) -> None:
        """Verify S3 credentials and bucket access."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except _S3_ERRORS as e:
            raise StorageError(self.name, "verify", self.url, e) from e

    def upload(self, key: str, content: BinaryIO, size_hint: int) -> None:
        # managed transfer switches to multipart for large files and aborts
        # incomplete uploads, so a failed upload leaves no partial object
        try:
            self.client.upload_fileobj(
                content,
                self.bucket,
                key,
                ExtraArgs={"ContentType": "application/octet-stream"},
                Config=self.transfer_config,
            )
        except _S3_ERRORS as e:
            raise StorageError(self.name, "upload", key, e) from e
        logger.debug(f"Uploaded {size_hint} bytes to {self.url}/{key}")

    def list(self, prefix: str) -> list[StorageObject]:
        objects: list[StorageObject] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    modified = obj["LastModified"]
                    if modified.tzinfo is None:
                        modified = modified.replace(tzinfo=UTC)
                    objects.append(
                        annotate(
                            StorageObject(
                                key=obj["Key"],
                                created_at=modified.astimezone(UTC),
                                size_bytes=obj.get("Size", 0),
                            ),
                            self.prefix,
                        )
                    )
        except _S3_ERRORS as e:
            raise StorageError(self.name, "list", prefix, e) from e
        return objects

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return
            raise StorageError(self.name, "delete", key, e) from e
        except _S3_ERRORS as e:
            raise StorageError(self.name, "delete", key, e) from e
        logger.info(f"Deleted {self.url}/{key}")
