"""Tests for the S3 storage backend (boto3 client mocked)."""

import io
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from redis_vault.config import S3StorageSettings
from redis_vault.exceptions import StorageError
from redis_vault.storage.s3 import S3Backend


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def s3(client):
    return S3Backend(S3StorageSettings(bucket="vault", prefix="redis-vault"), client=client)


class TestS3Client:
    def test_client_configuration(self):
        settings = S3StorageSettings(
            bucket="vault", region="eu-west-1", endpoint="http://minio:9000", timeout="30s", max_attempts=2
        )
        with patch("redis_vault.storage.s3.boto3.client") as factory:
            backend = S3Backend(settings)

        args, kwargs = factory.call_args
        assert args == ("s3",)
        assert kwargs["region_name"] == "eu-west-1"
        assert kwargs["endpoint_url"] == "http://minio:9000"
        assert kwargs["config"].connect_timeout == 30
        assert kwargs["config"].read_timeout == 30
        assert kwargs["config"].retries == {"max_attempts": 2, "mode": "standard"}
        assert backend.url == "s3://vault"


class TestVerify:
    def test_head_bucket(self, s3, client):
        s3.verify()
        client.head_bucket.assert_called_once_with(Bucket="vault")

    def test_missing_bucket(self, s3, client):
        client.head_bucket.side_effect = client_error("404", "HeadBucket")
        with pytest.raises(StorageError) as exc:
            s3.verify()
        assert exc.value.backend == "s3"
        assert exc.value.operation == "verify"
        assert isinstance(exc.value.__cause__, ClientError)


class TestUpload:
    def test_upload_fileobj(self, s3, client):
        content = io.BytesIO(b"REDIS0011")
        s3.upload("redis-vault/n1_2024-01-15T08:30:00Z.rdb", content, 9)

        args, kwargs = client.upload_fileobj.call_args
        assert args == (content, "vault", "redis-vault/n1_2024-01-15T08:30:00Z.rdb")
        assert kwargs["ExtraArgs"] == {"ContentType": "application/octet-stream"}
        assert kwargs["Config"] is s3.transfer_config

    def test_network_error_wrapped(self, s3, client):
        client.upload_fileobj.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")
        with pytest.raises(StorageError) as exc:
            s3.upload("k", io.BytesIO(b""), 0)
        assert exc.value.target == "k"
        assert isinstance(exc.value.cause, EndpointConnectionError)


class TestList:
    def test_pages_are_merged_and_annotated(self, s3, client):
        modified = datetime(2024, 1, 16, 0, 0, 0)
        client.get_paginator.return_value.paginate.return_value = [
            {
                "Contents": [
                    {"Key": "redis-vault/n1_2024-01-15T08:30:00Z.rdb", "LastModified": modified, "Size": 10},
                ]
            },
            {"Contents": [{"Key": "redis-vault/n1/notes.txt", "LastModified": modified, "Size": 3}]},
            {},
        ]

        objects = s3.list("redis-vault/n1")

        client.get_paginator.assert_called_once_with("list_objects_v2")
        client.get_paginator.return_value.paginate.assert_called_once_with(Bucket="vault", Prefix="redis-vault/n1")
        assert [o.key for o in objects] == ["redis-vault/n1_2024-01-15T08:30:00Z.rdb", "redis-vault/n1/notes.txt"]
        assert objects[0].node_name == "n1"
        assert objects[0].created_at == datetime(2024, 1, 15, 8, 30, tzinfo=UTC)
        assert objects[1].node_name is None
        assert objects[1].created_at == modified.replace(tzinfo=UTC)
        assert objects[1].size_bytes == 3

    def test_empty(self, s3, client):
        client.get_paginator.return_value.paginate.return_value = [{"KeyCount": 0}]
        assert s3.list("redis-vault/n1") == []

    def test_error_wrapped(self, s3, client):
        client.get_paginator.return_value.paginate.side_effect = client_error("AccessDenied", "ListObjectsV2")
        with pytest.raises(StorageError) as exc:
            s3.list("redis-vault/n1")
        assert exc.value.operation == "list"


class TestDelete:
    def test_delete_object(self, s3, client):
        s3.delete("redis-vault/old.rdb")
        client.delete_object.assert_called_once_with(Bucket="vault", Key="redis-vault/old.rdb")

    def test_missing_key_is_not_an_error(self, s3, client):
        client.delete_object.side_effect = client_error("NoSuchKey", "DeleteObject")
        s3.delete("redis-vault/old.rdb")

    def test_access_denied(self, s3, client):
        client.delete_object.side_effect = client_error("AccessDenied", "DeleteObject")
        with pytest.raises(StorageError) as exc:
            s3.delete("redis-vault/old.rdb")
        assert exc.value.operation == "delete"
