"""Backup schedule configuration models."""

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, field_validator

from redis_vault.config._durations import Duration


class BackupSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    interval: Duration = timedelta(hours=1)
    initial_delay: Duration = timedelta(seconds=300)
    dump_filename: str = "dump.rdb"
    align_schedule: bool = True

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, v: timedelta) -> timedelta:
        if v.total_seconds() < 1:
            raise ValueError("interval must be at least 1s")
        return v

    @field_validator("initial_delay")
    @classmethod
    def _check_initial_delay(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("initial_delay must not be negative")
        return v
