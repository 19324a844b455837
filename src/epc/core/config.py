"""Application configuration for the event platform client."""
from __future__ import annotations

from functools import lru_cache
import logging
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


logger = logging.getLogger("epc.config")

# Comma-separated in the environment rather than JSON.
CsvList = Annotated[List[str], NoDecode]


class Settings(BaseSettings):
    """Runtime configuration loaded from ``EPC_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="EPC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="EPC Dispatch", description="Human readable application name.")
    environment: str = Field(default="development", description="Environment name attached to event payloads.")
    api_v1_prefix: str = Field(default="/api/v1", description="Prefix for versioned API routes.")
    stream_url: str = Field(
        default="http://localhost:8192/v1/events",
        description="Collector endpoint used when an event does not name its own destination.",
    )
    max_batch_size: int = Field(default=10, ge=1, description="Queued item count that forces an immediate flush.")
    max_wait_ms: int = Field(default=2000, ge=0, description="Milliseconds to wait for more items before flushing.")
    sending_enabled: bool = Field(default=True, description="Whether the dispatcher starts with sending enabled.")
    default_timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP timeout for a single delivery.")
    max_connections: int = Field(default=10, ge=1, description="Maximum concurrent connections to the collector.")
    user_agent: str = Field(default="epc-dispatch/0.1", description="User agent sent with outbound deliveries.")
    content_type: str | None = Field(
        default=None,
        description="Content-Type header for outbound deliveries. Payloads are sent unlabelled when unset.",
    )
    session_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Idle time after which a session is regenerated. Sessions never expire when unset.",
    )
    session_store_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for persisting session tokens. Tokens stay in memory when unset.",
    )
    allowed_origins: CsvList = Field(
        default_factory=lambda: ["*"],
        description="List of CORS origins allowed to access the intake API.",
    )
    api_keys: CsvList = Field(
        default_factory=list,
        description="Optional list of static API keys that can access mutating routes.",
    )
    request_rate_per_minute: int = Field(
        default=120,
        ge=1,
        description="Maximum number of API requests allowed per minute for a single client identifier.",
    )
    log_level: str = Field(default="INFO", description="Application log level.")

    @field_validator("api_keys", "allowed_origins", mode="before")
    def _split_csv(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def max_wait_seconds(self) -> float:
        return self.max_wait_ms / 1000.0


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    settings = Settings()
    logger.debug(
        "Loaded settings: batch=%s wait=%sms stream=%s",
        settings.max_batch_size,
        settings.max_wait_ms,
        settings.stream_url,
    )
    return settings
