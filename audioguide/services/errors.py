"""Error taxonomy shared by the network clients and the selection flow."""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError

from audioguide.domain.models import ErrorInfo, ErrorKind

from .cancellation import OperationCancelled


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.TIMEOUT,
        ErrorKind.SERVER_ERROR,
        ErrorKind.NETWORK,
        ErrorKind.UNKNOWN,
    }
)

_THROTTLING_CODES = frozenset(
    {"ThrottlingException", "TooManyRequestsException", "Throttling", "ThrottledException"}
)
_CREDENTIAL_CODES = frozenset(
    {
        "AccessDeniedException",
        "UnrecognizedClientException",
        "InvalidSignatureException",
        "ExpiredTokenException",
    }
)
_QUOTA_CODES = frozenset({"ServiceQuotaExceededException", "insufficient_quota"})
_VALIDATION_CODES = frozenset(
    {"ValidationException", "TextLengthExceededException", "InvalidSsmlException"}
)
# Codes sent by our own /generate-audio route in its error body.
_BACKEND_CODES = {
    kind.value: kind for kind in ErrorKind if kind not in (ErrorKind.CANCELLED, ErrorKind.UNKNOWN)
}

_USER_MESSAGES = {
    ErrorKind.RATE_LIMITED: "Service is busy. Please wait a moment and try again.",
    ErrorKind.TIMEOUT: "Request timed out. Please try again.",
    ErrorKind.SERVER_ERROR: "Something went wrong. Please try again.",
    ErrorKind.NETWORK: "Unable to reach the service. Check your connection and try again.",
    ErrorKind.INVALID_CREDENTIALS: "Service configuration error. Please check the API credentials.",
    ErrorKind.QUOTA_EXHAUSTED: "API quota exceeded. Please check your account.",
    ErrorKind.VALIDATION: "Content could not be processed.",
    ErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}


class ServiceError(RuntimeError):
    """Failure reported by a remote service, with optional status/code fields."""

    def __init__(
        self,
        message: str,
        *,
        service: str = "unknown",
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.service = service
        self.status_code = status_code
        self.code = code


class AttractionSearchError(ServiceError):
    """Raised when the point-of-interest search fails."""


class RateLimitedError(AttractionSearchError):
    """Search rejected with HTTP 429; eligible for automatic backoff."""


class SearchTimeoutError(AttractionSearchError):
    """Search timed out (HTTP 504 or transport timeout); never retried."""


class ApiError(ServiceError):
    """Raised by the remote generation backend client."""


class GenerationFailed(RuntimeError):
    """Raised by the selection flow when a generation fails for a real reason."""

    def __init__(self, error: ErrorInfo, cause: BaseException | None = None) -> None:
        super().__init__(error.message)
        self.error = error
        self.cause = cause


def kind_for_status(status_code: Optional[int], code: Optional[str] = None) -> ErrorKind:
    """Map an HTTP status (and provider error code) onto an ``ErrorKind``."""

    if code in _BACKEND_CODES:
        return _BACKEND_CODES[code]
    if code in _QUOTA_CODES:
        return ErrorKind.QUOTA_EXHAUSTED
    if code in _THROTTLING_CODES:
        return ErrorKind.RATE_LIMITED
    if code in _CREDENTIAL_CODES:
        return ErrorKind.INVALID_CREDENTIALS
    if code in _VALIDATION_CODES:
        return ErrorKind.VALIDATION
    if status_code is None:
        return ErrorKind.UNKNOWN
    if status_code in (401, 403):
        return ErrorKind.INVALID_CREDENTIALS
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code in (408, 504):
        return ErrorKind.TIMEOUT
    if status_code in (400, 413, 422):
        return ErrorKind.VALIDATION
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN


def classify(exc: BaseException) -> ErrorKind:
    """Return the taxonomy bucket for an exception raised by a collaborator."""

    if isinstance(exc, (OperationCancelled, asyncio.CancelledError)):
        return ErrorKind.CANCELLED
    if isinstance(exc, RateLimitedError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, SearchTimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, ServiceError):
        kind = kind_for_status(exc.status_code, exc.code)
        if kind is ErrorKind.UNKNOWN and exc.__cause__ is not None:
            return classify(exc.__cause__)
        return kind
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return kind_for_status(status, error.get("Code"))
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, (ConnectTimeoutError, ReadTimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError):
        return kind_for_status(exc.response.status_code)
    if isinstance(exc, (httpx.TransportError, BotoCoreError)):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN


def user_message(kind: ErrorKind) -> str:
    return _USER_MESSAGES.get(kind, _USER_MESSAGES[ErrorKind.UNKNOWN])


def normalize_error(exc: BaseException, *, source: str = "generation") -> ErrorInfo:
    """Convert any failure into the ``{kind, message, retryable}`` shape."""

    kind = classify(exc)
    message = str(exc).strip() or user_message(kind)
    if kind in (ErrorKind.INVALID_CREDENTIALS, ErrorKind.QUOTA_EXHAUSTED):
        message = user_message(kind)
    return ErrorInfo(
        kind=kind,
        message=message,
        retryable=kind in _RETRYABLE_KINDS,
        source=source,
    )


__all__ = [
    "ServiceError",
    "AttractionSearchError",
    "RateLimitedError",
    "SearchTimeoutError",
    "ApiError",
    "GenerationFailed",
    "kind_for_status",
    "classify",
    "user_message",
    "normalize_error",
]
