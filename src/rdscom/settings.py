"""Broker configuration powered by pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment or .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    queue_backend: Literal["redis", "memory"] = Field(default="redis", alias="QUEUE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    # Each blocked pop-loop holds a connection, so leave unbounded unless the
    # server enforces a client cap.
    redis_max_connections: int | None = Field(default=None, gt=0, alias="REDIS_MAX_CONNECTIONS")

    # 0 means no ceiling
    default_worklimit: int = Field(default=1, ge=0, alias="DEFAULT_WORKLIMIT")
    stop_poll_interval_seconds: float = Field(default=0.1, gt=0, alias="STOP_POLL_INTERVAL_SECONDS")

    rpc_timeout_seconds: float = Field(default=30.0, gt=0, alias="RPC_TIMEOUT_SECONDS")
    rpc_strategy: Literal["backchannel", "per_call"] = Field(
        default="backchannel", alias="RPC_STRATEGY"
    )


@lru_cache(1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
