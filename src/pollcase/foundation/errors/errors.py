"""Standardized error handling for poll-driven units.

Provides error codes, a structured error model and the exception types raised
for programming errors (polling past completion, invalid concurrency limits).
Uses Pydantic for validation and serialization of the structured error.
"""

from __future__ import annotations

import traceback
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ErrorCode(StrEnum):
    """Standard error codes for engine failures."""
    POLLED_AFTER_COMPLETION = "POLLED_AFTER_COMPLETION"
    INVALID_LIMIT = "INVALID_LIMIT"
    MEMBER_FAILED = "MEMBER_FAILED"
    UNKNOWN = "UNKNOWN"


# Codes that signal misuse of the API rather than a runtime condition
_FATAL_CODES = frozenset({ErrorCode.POLLED_AFTER_COMPLETION, ErrorCode.INVALID_LIMIT})


class PollError(BaseModel):
    """Structured description of an engine failure.

    Attributes:
        component: Name of the unit or aggregate that failed
        message: Human-readable error message
        code: Machine-readable error code
        recoverable: Whether driving the owner further can still make progress
        details: Optional detailed information (e.g., formatted traceback)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        validate_default=True,
        json_schema_extra={
            "title": "Poll Error",
            "examples": [{
                "component": "TaskSet",
                "message": "member raised ValueError",
                "code": "MEMBER_FAILED",
                "recoverable": True,
            }],
        },
    )

    component: Annotated[str, Field(min_length=1, description="Unit or aggregate that failed")]
    message: Annotated[str, Field(min_length=1, description="Human-readable error message")]
    code: ErrorCode = Field(default=ErrorCode.UNKNOWN, description="Machine-readable error classification")
    recoverable: bool = Field(default=True, description="Whether the owner can keep being polled")
    details: str | None = Field(default=None, description="Optional detailed error info")

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | BaseException) -> str:
        """Accept exception objects and extract message."""
        if isinstance(v, BaseException):
            return str(v) or type(v).__name__
        return v

    @computed_field
    @property
    def is_fatal(self) -> bool:
        """Whether this error reports a programming error (fail fast)."""
        return self.code in _FATAL_CODES

    def render(self) -> str:
        """Format as a single log/display line."""
        return f"[{self.component}] {self.code}: {self.message}"

    @classmethod
    def from_exception(
        cls,
        component: str,
        exc: BaseException,
        *,
        code: ErrorCode = ErrorCode.MEMBER_FAILED,
        include_trace: bool = False,
    ) -> PollError:
        """Build a PollError from a caught exception."""
        details = "".join(traceback.format_exception(exc)) if include_trace else None
        return cls(
            component=component,
            message=f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__,
            code=code,
            recoverable=code not in _FATAL_CODES,
            details=details,
        )


class PollcaseException(Exception):
    """Base exception carrying a structured PollError."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, component: str, message: str) -> None:
        self.error = PollError(
            component=component,
            message=message,
            code=self.code,
            recoverable=self.code not in _FATAL_CODES,
        )
        super().__init__(self.error.render())


class PolledAfterCompletion(PollcaseException, RuntimeError):
    """A non-fused unit was polled after it already reported completion."""

    code = ErrorCode.POLLED_AFTER_COMPLETION

    def __init__(self, component: str) -> None:
        super().__init__(component, f"{component} polled after completion")


class InvalidConcurrencyLimit(PollcaseException, ValueError):
    """A concurrency limit was not a positive int (zero, negative, a bool or a non-integer)."""

    code = ErrorCode.INVALID_LIMIT

    def __init__(self, component: str, limit: object) -> None:
        self.limit = limit
        super().__init__(component, f"concurrency limit must be a positive integer or None, got {limit!r}")
