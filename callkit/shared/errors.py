"""
Shared error handling for callkit.
"""

from enum import Enum
from typing import Dict, Any, Mapping, Optional
from pydantic import BaseModel


DEFAULT_ERROR_MESSAGE = "An error occurred"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    status_code: Optional[int] = None
    details: Dict[str, Any] = {}


class FailureKind(Enum):
    """Classification of a failed transport attempt."""
    CANCELLED = "cancelled"
    RATE_LIMITED = "rate_limited"
    SERVER_FAULT = "server_fault"
    NETWORK_FAULT = "network_fault"
    CLIENT_FAULT = "client_fault"

    @property
    def retryable(self) -> bool:
        return self in (FailureKind.RATE_LIMITED, FailureKind.SERVER_FAULT, FailureKind.NETWORK_FAULT)


class CallKitException(Exception):
    """Base exception for callkit."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            status_code=getattr(self, "status_code", None),
            details=self.details
        )


class TransportError(CallKitException):
    """Failure reported by a transport.

    ``status_code`` is ``None`` when no response was received at all.
    """

    def __init__(self,
                 message: str = "Network Error",
                 status_code: Optional[int] = None,
                 headers: Optional[Mapping[str, str]] = None,
                 body: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, details)
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.body = body


class RequestCancelledError(CallKitException):
    """The caller withdrew the request; never surfaced as a user-visible error."""

    def __init__(self, reason: str = "Request cancelled", details: Optional[Dict[str, Any]] = None):
        super().__init__("CANCELLED", reason, details)
        self.reason = reason


class InFlightConflictError(CallKitException):
    """A second in-flight registration was attempted for the same key."""

    def __init__(self, key: str):
        super().__init__("IN_FLIGHT_CONFLICT", f"Call already in flight for key '{key}'", {"key": key})
        self.key = key


class CallFailedError(CallKitException):
    """Terminal failure of a call after classification and retries."""

    kind = FailureKind.CLIENT_FAULT
    code = "CALL_FAILED"

    def __init__(self,
                 message: str = DEFAULT_ERROR_MESSAGE,
                 status_code: Optional[int] = None,
                 attempts: int = 1,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(type(self).code, message, details)
        self.status_code = status_code
        self.attempts = attempts


class RateLimitError(CallFailedError):
    """Server signalled capacity exhaustion and the retry budget ran out."""
    kind = FailureKind.RATE_LIMITED
    code = "RATE_LIMITED"


class ServerFaultError(CallFailedError):
    """Server signalled an internal failure and the retry budget ran out."""
    kind = FailureKind.SERVER_FAULT
    code = "SERVER_FAULT"


class NetworkFaultError(CallFailedError):
    """No response was received and the retry budget ran out."""
    kind = FailureKind.NETWORK_FAULT
    code = "NETWORK_FAULT"


class ClientFaultError(CallFailedError):
    """Non-retryable rejection (validation, not found, unauthorized...)."""
    kind = FailureKind.CLIENT_FAULT
    code = "CLIENT_FAULT"


_FAILURE_TYPES = {
    FailureKind.RATE_LIMITED: RateLimitError,
    FailureKind.SERVER_FAULT: ServerFaultError,
    FailureKind.NETWORK_FAULT: NetworkFaultError,
    FailureKind.CLIENT_FAULT: ClientFaultError,
}


def classify_failure(error: BaseException) -> FailureKind:
    """Map a failed attempt onto a FailureKind."""
    if isinstance(error, RequestCancelledError):
        return FailureKind.CANCELLED
    if not isinstance(error, TransportError):
        return FailureKind.CLIENT_FAULT

    status = error.status_code
    if status is None:
        return FailureKind.NETWORK_FAULT
    if status == 429:
        return FailureKind.RATE_LIMITED
    if status >= 500:
        return FailureKind.SERVER_FAULT
    return FailureKind.CLIENT_FAULT


def extract_message(error: BaseException) -> str:
    """Best-effort human readable message for a failed call."""
    body = getattr(error, "body", None)
    if isinstance(body, Mapping):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message

    message = getattr(error, "message", None) or str(error)
    return message or DEFAULT_ERROR_MESSAGE


def failure_from(kind: FailureKind, error: BaseException, attempts: int) -> CallFailedError:
    """Build the terminal error for a classified transport failure."""
    error_type = _FAILURE_TYPES.get(kind, ClientFaultError)
    details: Dict[str, Any] = {}
    if isinstance(error, TransportError) and error.body is not None:
        details["body"] = error.body

    return error_type(
        extract_message(error),
        status_code=getattr(error, "status_code", None),
        attempts=attempts,
        details=details
    )
