"""Shared AWS helpers for service clients."""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


def decode_api_key(secret_value: Optional[str]) -> tuple[str, str] | None:
    """Decode a base64 ``ACCESS_KEY:SECRET_KEY`` secret into its two parts."""

    if not secret_value:
        return None

    try:
        decoded_bytes = base64.b64decode(secret_value.strip())
    except ValueError:
        decoded_bytes = secret_value.encode("utf-8", "ignore")

    filtered = "".join(chr(b) for b in decoded_bytes if 31 < b < 127)
    if ":" not in filtered:
        return None
    access_key, secret_key = filtered.split(":", 1)
    return access_key, secret_key


def create_boto3_client(
    service_name: str,
    *,
    region_name: str,
    aws_access_key_id: str | None = None,
    aws_secret_access_key: str | None = None,
    read_timeout: float | None = None,
) -> Any:
    """Instantiate a boto3 client, using explicit credentials when provided."""

    client_kwargs: dict[str, Any] = {"region_name": region_name}
    if aws_access_key_id and aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = aws_access_key_id
        client_kwargs["aws_secret_access_key"] = aws_secret_access_key
    if read_timeout is not None:
        client_kwargs["config"] = Config(
            read_timeout=read_timeout,
            connect_timeout=min(read_timeout, 10.0),
            retries={"max_attempts": 1},
        )
    return boto3.client(service_name, **client_kwargs)


def client_error_details(exc: ClientError) -> tuple[Optional[int], Optional[str], str]:
    """Return (HTTP status, error code, message) from a botocore ClientError."""

    error = exc.response.get("Error", {})
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return status, error.get("Code"), error.get("Message") or str(exc)


__all__ = ["client_error_details", "create_boto3_client", "decode_api_key"]
