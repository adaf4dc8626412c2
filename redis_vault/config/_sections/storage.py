"""Storage backend configuration models."""

from datetime import timedelta
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from redis_vault.config._durations import Duration

DEFAULT_PREFIX = "redis-vault"


def _check_bucket(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("bucket must not be empty")
    if "/" in v:
        raise ValueError("bucket must not contain '/'")
    return v


BucketName = Annotated[str, AfterValidator(_check_bucket)]


class S3StorageSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["s3"] = "s3"
    bucket: BucketName = "redis-vault"
    prefix: str = DEFAULT_PREFIX
    region: str | None = None
    endpoint: str | None = None
    timeout: Duration = timedelta(seconds=60)
    max_attempts: int = Field(default=3, ge=1)

    @property
    def call_budget(self) -> timedelta:
        """Worst-case duration of one call including botocore retries."""
        return self.timeout * self.max_attempts


class GcsStorageSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["gcs"] = "gcs"
    bucket: BucketName
    prefix: str = DEFAULT_PREFIX
    project_id: str | None = None
    timeout: Duration = timedelta(seconds=60)

    @property
    def call_budget(self) -> timedelta:
        return self.timeout


class LocalStorageSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["local"] = "local"
    path: Path = Path("./backups")
    prefix: str = DEFAULT_PREFIX
    timeout: Duration = timedelta(seconds=60)

    @property
    def call_budget(self) -> timedelta:
        return self.timeout


StorageSettings = Annotated[
    Union[S3StorageSettings, GcsStorageSettings, LocalStorageSettings],
    Field(discriminator="type"),
]
