"""Error taxonomy shared by the gateway, normalizer and session machine."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    AUTH = "auth"
    TRANSPORT = "transport"
    MALFORMED_RESPONSE = "malformed_response"
    NORMALIZATION = "normalization"
    PARTIAL_DATA = "partial_data"
    CONFIGURATION_REQUIRED = "configuration_required"
    INVALID_TRANSITION = "invalid_transition"


class NormalizationIssue(str, Enum):
    NOT_AN_ARRAY = "not_an_array"
    NOT_AN_OBJECT = "not_an_object"
    MISSING_FIELD = "missing_field"
    EMPTY_ANALYSIS = "empty_analysis"
    BELOW_THRESHOLD = "below_threshold"


class InterviewError(RuntimeError):  # Base error carrying a kind discriminant
    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def retryable(self) -> bool:
        return False


class AuthError(InterviewError):
    kind = ErrorKind.AUTH

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(InterviewError):
    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, *, status_code: Optional[int] = None, timeout: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.timeout = timeout

    @property
    def retryable(self) -> bool:
        if self.timeout or self.status_code is None:
            return True
        return self.status_code >= 500 or self.status_code == 429


class MalformedResponseError(InterviewError):
    kind = ErrorKind.MALFORMED_RESPONSE


class NormalizationError(InterviewError):
    kind = ErrorKind.NORMALIZATION

    def __init__(self, message: str, *, reason: NormalizationIssue) -> None:
        super().__init__(message)
        self.reason = reason


class PartialDataError(NormalizationError):
    """Fewer usable items survived than the configured minimum."""

    kind = ErrorKind.PARTIAL_DATA

    def __init__(self, message: str, *, recovered: int, required: int) -> None:
        super().__init__(message, reason=NormalizationIssue.BELOW_THRESHOLD)
        self.recovered = recovered
        self.required = required


class InvalidTransitionError(InterviewError):
    kind = ErrorKind.INVALID_TRANSITION


class Failure(BaseModel):  # Typed failure report surfaced to callers
    kind: ErrorKind
    message: str
    status_code: Optional[int] = None

    @classmethod
    def from_error(cls, exc: InterviewError) -> "Failure":
        return cls(kind=exc.kind, message=exc.message, status_code=getattr(exc, "status_code", None))


__all__ = [
    "ErrorKind",
    "NormalizationIssue",
    "InterviewError",
    "AuthError",
    "TransportError",
    "MalformedResponseError",
    "NormalizationError",
    "PartialDataError",
    "InvalidTransitionError",
    "Failure",
]
