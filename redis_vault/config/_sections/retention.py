"""Retention policy configuration models."""

from pydantic import BaseModel, ConfigDict, Field

from redis_vault.config._durations import Duration
from redis_vault.models import RetentionPolicy


class RetentionSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    keep_last: int = Field(default=7, ge=0)
    keep_duration: Duration | None = None

    @property
    def policy(self) -> RetentionPolicy:
        return RetentionPolicy(keep_last=self.keep_last, keep_duration=self.keep_duration)
