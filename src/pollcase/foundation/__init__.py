"""Foundation layer: errors, result type and configuration."""

from .config import PollcaseSettings, clear_settings_cache, get_settings
from .errors import (
    Err,
    ErrorCode,
    InvalidConcurrencyLimit,
    Ok,
    PollcaseException,
    PollError,
    PolledAfterCompletion,
    Result,
)

__all__ = [
    "Err",
    "ErrorCode",
    "InvalidConcurrencyLimit",
    "Ok",
    "PollError",
    "PollcaseException",
    "PolledAfterCompletion",
    "PollcaseSettings",
    "Result",
    "clear_settings_cache",
    "get_settings",
]
