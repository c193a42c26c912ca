"""Configuration management using pydantic-settings.

Provides environment-based configuration with type safety and validation.
"""

from .settings import (
    ConcurrencySettings,
    ExecutorSettings,
    LoggingSettings,
    PollcaseSettings,
    SelectSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "ConcurrencySettings",
    "ExecutorSettings",
    "LoggingSettings",
    "PollcaseSettings",
    "SelectSettings",
    "clear_settings_cache",
    "get_settings",
]
