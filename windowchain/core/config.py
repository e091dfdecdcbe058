"""
windowchain Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import DEFAULT_STORAGE_PREFIX


class Settings(BaseSettings):
    """Library settings with validation and safe defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(
        default=False, description="Render structured logs as JSON lines"
    )

    # Cache defaults
    CACHE_DEFAULT_TTL_SECONDS: float = Field(
        default=300.0, gt=0, description="Default cache entry time to live"
    )
    CACHE_DEFAULT_MAX_SIZE: int = Field(
        default=100, ge=1, le=1_000_000, description="Default cache capacity"
    )
    CACHE_DEFAULT_STRATEGY: str = Field(
        default="lru", description="Default eviction strategy"
    )

    # Cache persistence
    CACHE_STORAGE_PREFIX: str = Field(
        default=DEFAULT_STORAGE_PREFIX, description="Prefix for persisted cache slots"
    )
    CACHE_STORAGE_BACKEND: str = Field(
        default="file", description="Persistent storage backend (file, memory, redis)"
    )
    CACHE_STORAGE_DIRECTORY: str = Field(
        default="./.windowchain/cache",
        description="Directory used by the file storage backend",
    )
    REDIS_URL: Optional[str] = Field(
        default=None, description="Redis connection URL for the redis backend"
    )

    # Pipeline defaults
    PIPELINE_RETRY_MAX_ATTEMPTS: int = Field(
        default=3, ge=1, le=20, description="Default retry attempts per step"
    )
    PIPELINE_RETRY_DELAY_SECONDS: float = Field(
        default=1.0, ge=0.0, le=300.0, description="Base retry delay in seconds"
    )

    # Generation
    TOKEN_LIMIT_DEFAULT: int = Field(
        default=4096, ge=1, description="Default context window for token counters"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("CACHE_DEFAULT_STRATEGY")
    @classmethod
    def validate_cache_strategy(cls, v):
        """Validate eviction strategy name."""
        allowed = ["lru", "lfu", "fifo", "arbitrary"]
        if v.lower() not in allowed:
            raise ValueError(f"CACHE_DEFAULT_STRATEGY must be one of: {allowed}")
        return v.lower()

    @field_validator("CACHE_STORAGE_BACKEND")
    @classmethod
    def validate_storage_backend(cls, v):
        """Validate persistent storage backend."""
        allowed = ["file", "memory", "redis"]
        if v.lower() not in allowed:
            raise ValueError(f"CACHE_STORAGE_BACKEND must be one of: {allowed}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
