"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated defaults for the engine from environment
variables. Supports .env files and nested configuration.

Example:
    >>> from pollcase.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.select.strategy
    'round_robin'

    # Or with environment variables:
    # POLLCASE_CONCURRENCY_DEFAULT_LIMIT=16
    # POLLCASE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, PositiveFloat, PositiveInt, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POLLCASE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["text", "json"] = "text"
    include_timestamps: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class ConcurrencySettings(BaseSettings):
    """Admission defaults for bounded pipelines."""

    model_config = SettingsConfigDict(
        env_prefix="POLLCASE_CONCURRENCY_",
        extra="ignore",
    )

    default_limit: PositiveInt | None = Field(
        default=None,
        description="Limit used when a pipeline is built without one (None = unbounded)",
    )


class SelectSettings(BaseSettings):
    """Multiplexer defaults."""

    model_config = SettingsConfigDict(
        env_prefix="POLLCASE_SELECT_",
        extra="ignore",
    )

    strategy: Literal["round_robin", "left", "right"] = "round_robin"


class ExecutorSettings(BaseSettings):
    """Defaults for the blocking driver."""

    model_config = SettingsConfigDict(
        env_prefix="POLLCASE_EXECUTOR_",
        extra="ignore",
    )

    timeout: PositiveFloat | None = Field(
        default=None,
        description="Overall deadline for block_on when none is passed",
    )


class PollcaseSettings(BaseSettings):
    """Root settings for pollcase.

    Loads configuration from environment variables with POLLCASE_ prefix.

    Example environment variables:
        POLLCASE_DEBUG=true
        POLLCASE_LOG_LEVEL=DEBUG
        POLLCASE_CONCURRENCY_DEFAULT_LIMIT=8
        POLLCASE_SELECT_STRATEGY=left
        POLLCASE_EXECUTOR_TIMEOUT=30
    """

    model_config = SettingsConfigDict(
        env_prefix="POLLCASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Enable debug mode")

    # Nested settings (loaded with POLLCASE_LOG_, POLLCASE_CONCURRENCY_, etc.)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    select: SelectSettings = Field(default_factory=SelectSettings)
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)

    @computed_field
    @property
    def effective_log_level(self) -> str:
        """Debug mode forces DEBUG regardless of the logging section."""
        return "DEBUG" if self.debug else self.logging.level


@lru_cache(maxsize=1)
def get_settings() -> PollcaseSettings:
    """Get the global settings instance (cached)."""
    return PollcaseSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
