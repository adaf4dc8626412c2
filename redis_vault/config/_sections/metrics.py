"""Metrics endpoint configuration models."""

from pydantic import BaseModel, ConfigDict, Field


class MetricsSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = False
    port: int = Field(default=9090, ge=1, le=65535)
    listen_address: str = "0.0.0.0"
