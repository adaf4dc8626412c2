"""Logging configuration models."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

_LEVELS = {"debug", "info", "warning", "warn", "error", "critical"}


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    format: Literal["text", "json"] = "text"
    level: str = "info"

    @field_validator("format", mode="before")
    @classmethod
    def _lower_format(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator("level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in _LEVELS:
            raise ValueError(f"Unknown log level {v!r}")
        return v
