"""
DriftWatch Errors
-----------------
Structured exceptions raised by the drift engine. Each error carries a
type, a stable code and optional recovery guidance so callers (which own
retry and logging policy) can decide how to react.
"""

from enum import Enum
from typing import Optional


class ErrorType(str, Enum):
    """Broad category of a DriftWatch error."""

    VALIDATION = "VALIDATION"
    SYSTEM = "SYSTEM"


class DriftWatchError(Exception):
    """Base class for all errors raised by DriftWatch."""

    error_type: ErrorType = ErrorType.SYSTEM
    code: str = "DRIFTWATCH_ERROR"
    guidance: Optional[str] = None

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        guidance: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if guidance is not None:
            self.guidance = guidance

    def __str__(self) -> str:
        parts = [f"[{self.error_type.value}:{self.code}]", self.message]
        if self.cause is not None:
            parts.append(f"caused by: {self.cause}")
        return " ".join(parts)


class InvalidResponseError(DriftWatchError, ValueError):
    """A response snapshot required for comparison was missing."""

    error_type = ErrorType.VALIDATION
    code = "INVALID_RESPONSE"
    guidance = "Pass two recorded responses; both previous and current are required"


class ResponseBodyParseError(DriftWatchError, ValueError):
    """A response body could not be parsed as JSON."""

    error_type = ErrorType.VALIDATION
    code = "BODY_PARSE_FAILED"
    guidance = "Check that the endpoint returns a UTF-8 JSON body"

    def __init__(self, side: str, cause: Optional[BaseException] = None):
        super().__init__(f"failed to parse {side} response body", cause=cause)
        self.side = side


class InsufficientHistoryError(DriftWatchError, ValueError):
    """Trend analysis was requested with fewer than two responses."""

    error_type = ErrorType.VALIDATION
    code = "INSUFFICIENT_HISTORY"
    guidance = "Wait until at least two responses have been recorded"

    def __init__(self, count: int):
        super().__init__(f"need at least 2 responses for trend analysis, got {count}")
        self.count = count
