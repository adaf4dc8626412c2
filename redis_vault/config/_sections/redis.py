"""Redis node configuration models."""

from datetime import timedelta
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from redis_vault.config._durations import Duration


class RedisSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    connection_string: str = Field(default="redis://localhost:6379", repr=False)
    data_path: Path = Path("/data")
    node_name: str = "redis-node"
    backup_master: bool = True
    backup_replica: bool = True
    role_timeout: Duration = timedelta(seconds=5)

    @field_validator("node_name")
    @classmethod
    def _check_node_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("node_name must not be empty")
        if "/" in v:
            raise ValueError("node_name must not contain '/'")
        return v
