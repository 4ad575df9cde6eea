"""
Configuration management for the fieldops coordination service.

This module centralizes environment-driven configuration using Pydantic's
`BaseSettings`. Components never read the environment themselves; they are
constructed from the shared `settings` instance (or an explicit `Settings`
passed in tests) so that failure policies are decided once at startup.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import AnyUrl, Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings


class FailurePolicy(str, Enum):
    """Behaviour when the coordination store cannot be reached."""

    FAIL_OPEN = "fail-open"
    FAIL_CLOSED = "fail-closed"


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    # General application settings
    API_TITLE: str = "Fieldops Coordination API"
    API_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field("development", pattern=r"^(development|staging|production)$")
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])

    # Backing stores
    STORE_BACKEND: str = Field("mongo", pattern=r"^(mongo|memory)$")
    COORDINATION_BACKEND: str = Field("redis", pattern=r"^(redis|memory)$")
    MONGODB_URL: AnyUrl = Field("mongodb://localhost:27017")
    MONGODB_DB: str = "fieldops"
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000
    REDIS_URL: AnyUrl = Field("redis://localhost:6379/0")
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 2.0

    # Locking
    LOCK_LEASE_SECONDS: PositiveInt = 10
    LOCK_FAILURE_POLICY: FailurePolicy = FailurePolicy.FAIL_CLOSED

    # Location ingestion / rate limiting
    GPS_RATE_LIMIT: PositiveInt = 6
    GPS_RATE_LIMIT_WINDOW: PositiveInt = 60
    GPS_HISTORY_LIMIT: PositiveInt = 100
    RATE_LIMIT_FAILURE_POLICY: FailurePolicy = FailurePolicy.FAIL_OPEN

    # Assignment
    ASSIGNMENT_MAX_DISTANCE_METERS: float = Field(50_000.0, gt=0)
    ASSIGNMENT_CANDIDATE_POOL: PositiveInt = 5

    # Monitoring / tracing
    OTEL_EXPORTER_OTLP_ENDPOINT: Optional[AnyUrl] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @field_validator("ALLOWED_ORIGINS", mode="before")
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache()
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()


# Singleton-style settings instance for modules that prefer direct access.
settings = get_settings()
