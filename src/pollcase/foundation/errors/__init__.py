"""Unified error handling for pollcase.

- ErrorCode: Standard error codes for engine failures
- PollError/PollcaseException: Structured errors and fail-fast exceptions
- Result/Ok/Err: Outcome carrier for abortable and failure-catching wrappers
"""

from .errors import (
    ErrorCode,
    InvalidConcurrencyLimit,
    PollcaseException,
    PollError,
    PolledAfterCompletion,
)
from .result import Err, Ok, Result

__all__ = [
    # Core errors
    "ErrorCode", "PollError", "PollcaseException", "PolledAfterCompletion", "InvalidConcurrencyLimit",
    # Result monad
    "Result", "Ok", "Err",
]
