"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Two layers:
- Settings: raw values from the environment / .env file
- ExportConfig: immutable, validated run configuration handed to the pipeline

Usage:
    from utils.config import ExportConfig, get_settings

    settings = get_settings()
    config = ExportConfig.from_settings(settings, workers=8)
"""

import os
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


def default_workers() -> int:
    """Two workers per available CPU."""
    return (os.cpu_count() or 1) * 2


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Redis Configuration
    REDIS_ADDR: str = Field(default="localhost:6379")
    REDIS_PASSWORD: str = Field(default="")
    REDIS_DB: int = Field(default=0)
    REDIS_SOCKET_TIMEOUT: float = Field(default=10.0)
    REDIS_CONNECT_TIMEOUT: float = Field(default=10.0)
    REDIS_POOL_TIMEOUT: float = Field(default=30.0)
    REDIS_CONNECT_RETRIES: int = Field(default=3)

    # Export Configuration
    OUTPUT_FILE: str = Field(default="redis_export.json")
    EXPORT_WORKERS: int = Field(default_factory=default_workers)
    EXPORT_BATCH_SIZE: int = Field(default=1000)
    PROGRESS_INTERVAL: float = Field(default=5.0)
    QUEUE_POLL_INTERVAL: float = Field(default=0.1)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="info")
    LOG_FORMAT: str = Field(default="text")

    # Application Metadata
    APP_NAME: str = Field(default="redis-export")
    APP_VERSION: str = Field(default="0.1.0")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


class ExportConfig(BaseModel):
    """Validated, immutable configuration for a single export run."""

    model_config = ConfigDict(frozen=True)

    redis_addr: str = "localhost:6379"
    redis_password: str = ""
    redis_db: int = Field(default=0, ge=0)
    socket_timeout: float = Field(default=10.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    pool_timeout: float = Field(default=30.0, gt=0)
    connect_retries: int = Field(default=3, ge=1)

    output_file: str = Field(default="redis_export.json", min_length=1)
    workers: int = Field(default_factory=default_workers, ge=1)
    batch_size: int = Field(default=1000, ge=1)
    progress_interval: float = Field(default=5.0, gt=0)
    poll_interval: float = Field(default=0.1, gt=0)

    @field_validator("redis_addr")
    @classmethod
    def validate_addr(cls, v: str) -> str:
        """Require a host:port address with a numeric port."""
        host, sep, port = v.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError(f"redis address must be host:port, got {v!r}")
        return v

    @property
    def host(self) -> str:
        return self.redis_addr.rpartition(":")[0]

    @property
    def port(self) -> int:
        return int(self.redis_addr.rpartition(":")[2])

    @property
    def max_connections(self) -> int:
        """Connection pool size, two connections per worker."""
        return self.workers * 2

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "ExportConfig":
        """Build a run configuration from settings, applying non-None overrides.

        Args:
            settings: Environment settings
            **overrides: Field values that take precedence (e.g. CLI flags)

        Returns:
            Validated ExportConfig

        Raises:
            pydantic.ValidationError: If any value is invalid
        """
        values: dict[str, Any] = {
            "redis_addr": settings.REDIS_ADDR,
            "redis_password": settings.REDIS_PASSWORD,
            "redis_db": settings.REDIS_DB,
            "socket_timeout": settings.REDIS_SOCKET_TIMEOUT,
            "connect_timeout": settings.REDIS_CONNECT_TIMEOUT,
            "pool_timeout": settings.REDIS_POOL_TIMEOUT,
            "connect_retries": settings.REDIS_CONNECT_RETRIES,
            "output_file": settings.OUTPUT_FILE,
            "workers": settings.EXPORT_WORKERS,
            "batch_size": settings.EXPORT_BATCH_SIZE,
            "progress_interval": settings.PROGRESS_INTERVAL,
            "poll_interval": settings.QUEUE_POLL_INTERVAL,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
