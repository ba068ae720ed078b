"""Error normalization into kind / message / retryable."""

from __future__ import annotations

import asyncio

import httpx
import pytest
from botocore.exceptions import ClientError, ReadTimeoutError

from audioguide.domain.models import ErrorKind
from audioguide.services.cancellation import OperationCancelled
from audioguide.services.errors import (
    RateLimitedError,
    ServiceError,
    kind_for_status,
    normalize_error,
)


def _client_error(code: str, status: int) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": f"{code} happened"}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "Converse",
    )


@pytest.mark.parametrize(
    ("status_code", "kind"),
    [
        (401, ErrorKind.INVALID_CREDENTIALS),
        (403, ErrorKind.INVALID_CREDENTIALS),
        (429, ErrorKind.RATE_LIMITED),
        (408, ErrorKind.TIMEOUT),
        (504, ErrorKind.TIMEOUT),
        (400, ErrorKind.VALIDATION),
        (422, ErrorKind.VALIDATION),
        (500, ErrorKind.SERVER_ERROR),
        (503, ErrorKind.SERVER_ERROR),
        (418, ErrorKind.UNKNOWN),
        (None, ErrorKind.UNKNOWN),
    ],
)
def test_kind_for_status(status_code, kind):
    assert kind_for_status(status_code) is kind


def test_provider_codes_take_precedence_over_status():
    assert kind_for_status(429, "insufficient_quota") is ErrorKind.QUOTA_EXHAUSTED
    assert kind_for_status(400, "ThrottlingException") is ErrorKind.RATE_LIMITED
    assert kind_for_status(400, "AccessDeniedException") is ErrorKind.INVALID_CREDENTIALS


def test_credentials_failure_gets_friendly_message_and_is_permanent():
    info = normalize_error(ServiceError("Invalid API key sk-123", status_code=401))

    assert info.kind is ErrorKind.INVALID_CREDENTIALS
    assert "sk-123" not in info.message
    assert info.retryable is False
    assert info.source == "generation"


def test_quota_is_permanent():
    info = normalize_error(ServiceError("quota", status_code=429, code="insufficient_quota"))

    assert info.kind is ErrorKind.QUOTA_EXHAUSTED
    assert info.retryable is False


def test_boto_client_errors_are_classified():
    assert normalize_error(_client_error("ThrottlingException", 400)).kind is ErrorKind.RATE_LIMITED
    assert normalize_error(_client_error("ValidationException", 400)).kind is ErrorKind.VALIDATION
    assert normalize_error(_client_error("InternalServerException", 500)).kind is ErrorKind.SERVER_ERROR


def test_transport_failures():
    assert normalize_error(httpx.ReadTimeout("slow")).kind is ErrorKind.TIMEOUT
    assert normalize_error(asyncio.TimeoutError()).kind is ErrorKind.TIMEOUT
    assert normalize_error(ReadTimeoutError(endpoint_url="https://bedrock")).kind is ErrorKind.TIMEOUT

    network = normalize_error(httpx.ConnectError("refused"))
    assert network.kind is ErrorKind.NETWORK
    assert network.retryable is True


def test_service_error_without_status_uses_its_cause():
    try:
        try:
            raise httpx.ConnectError("refused")
        except httpx.ConnectError as exc:
            raise ServiceError("Unable to reach backend", service="backend") from exc
    except ServiceError as wrapped:
        info = normalize_error(wrapped)

    assert info.kind is ErrorKind.NETWORK
    assert info.message == "Unable to reach backend"


def test_cancellation_is_its_own_kind():
    info = normalize_error(OperationCancelled("generation"))

    assert info.kind is ErrorKind.CANCELLED
    assert info.retryable is False


def test_load_errors_can_be_tagged_with_their_source():
    info = normalize_error(RateLimitedError("RATE_LIMITED", status_code=429), source="attractions")

    assert info.kind is ErrorKind.RATE_LIMITED
    assert info.source == "attractions"
    assert info.retryable is True


def test_empty_message_falls_back_to_user_message():
    info = normalize_error(RuntimeError())

    assert info.kind is ErrorKind.UNKNOWN
    assert info.message == "An unexpected error occurred. Please try again."
