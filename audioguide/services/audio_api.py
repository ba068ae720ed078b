"""Client for the remote ``/generate-audio`` backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from audioguide.config.settings import GenerationConfig, settings

from .cancellation import CancellationToken
from .errors import ApiError

logger = logging.getLogger(__name__)

WARNING_HEADER = "X-Location-Warning"


@dataclass(frozen=True)
class RemoteAudio:
    audio_bytes: bytes
    media_type: str
    warning: Optional[str] = None


def _error_body(response: httpx.Response) -> Mapping[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, Mapping) else {}


def _error_message(body: Mapping[str, Any], status_code: int) -> str:
    for key in ("detail", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return f"Backend error: {status_code}"


class AudioApiClient:
    """Request a fully generated narration from the backend in one call."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: GenerationConfig | None = None,
    ) -> None:
        self._config = config or settings.generation
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._config.backend_url,
            timeout=self._config.request_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate_audio(
        self,
        descriptor: Mapping[str, Any],
        language: str,
        token: CancellationToken | None = None,
    ) -> RemoteAudio:
        payload = dict(descriptor)
        payload["language"] = language
        request = self._client.post("/generate-audio", json=payload)
        try:
            response = await (token.guard(request) if token else request)
        except httpx.TimeoutException as exc:
            raise ApiError("Request timed out.", service="backend", status_code=504) from exc
        except httpx.RequestError as exc:
            raise ApiError(f"Unable to reach audio backend: {exc}", service="backend") from exc

        if response.is_error:
            body = _error_body(response)
            code = body.get("code")
            raise ApiError(
                _error_message(body, response.status_code),
                service="backend",
                status_code=response.status_code,
                code=code if isinstance(code, str) else None,
            )

        if not response.content:
            raise ApiError("Backend returned empty audio.", service="backend", status_code=502)

        return RemoteAudio(
            audio_bytes=response.content,
            media_type=response.headers.get("content-type", "audio/mpeg").split(";")[0],
            warning=response.headers.get(WARNING_HEADER) or None,
        )

    async def check_health(self) -> bool:
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError:
            return False
        if response.is_error:
            return False
        try:
            return response.json().get("status") == "healthy"
        except (ValueError, AttributeError):
            return False


__all__ = ["AudioApiClient", "RemoteAudio", "WARNING_HEADER"]
