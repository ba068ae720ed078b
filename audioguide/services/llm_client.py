"""Thin Bedrock client wrapper for the facts and script stages."""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError
from fastapi.concurrency import run_in_threadpool

from audioguide.config.settings import BedrockConfig, settings

from .aws import client_error_details, create_boto3_client, decode_api_key
from .errors import ServiceError

logger = logging.getLogger(__name__)


class LlmInvocationError(ServiceError):
    """Raised when the Bedrock invocation fails or returns no text."""


class BedrockLlmClient:
    """Invoke Amazon Bedrock models with standard configuration."""

    def __init__(self, config: BedrockConfig | None = None, client: Any = None) -> None:
        self._config = config or settings.bedrock
        self._model_id = self._config.model_id
        self._client = client

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        api_key_tuple = None
        if self._config.api_key:
            api_key_tuple = decode_api_key(self._config.api_key.get_secret_value())

        try:
            self._client = create_boto3_client(
                "bedrock-runtime",
                region_name=self._config.region,
                aws_access_key_id=api_key_tuple[0] if api_key_tuple else None,
                aws_secret_access_key=api_key_tuple[1] if api_key_tuple else None,
                read_timeout=settings.generation.request_timeout_seconds,
            )
        except (BotoCoreError, ValueError) as exc:
            raise LlmInvocationError(
                f"Bedrock client could not be initialised: {exc}", service="bedrock"
            ) from exc
        return self._client

    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
        top_p: float | None = None,
        model_id: str | None = None,
    ) -> str:
        """Run a Bedrock ``converse`` call and return the aggregate text output."""

        client = self._get_client()
        target_model_id = model_id or self._model_id
        inference_cfg = {
            "maxTokens": max_tokens,
            "temperature": temperature,
            "topP": top_p if top_p is not None else self._config.top_p,
        }

        def _call() -> str:
            response = client.converse(
                modelId=target_model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
            )
            content_blocks = (
                response.get("output", {})
                .get("message", {})
                .get("content", [])
            )
            texts = [block.get("text", "") for block in content_blocks if block.get("text")]
            return "\n".join(texts).strip()

        try:
            result = await run_in_threadpool(_call)
        except ClientError as exc:
            status, code, message = client_error_details(exc)
            logger.warning("Bedrock converse failed code=%s status=%s", code, status)
            raise LlmInvocationError(
                message, service="bedrock", status_code=status, code=code
            ) from exc
        except (ConnectTimeoutError, ReadTimeoutError) as exc:
            raise LlmInvocationError(
                f"Bedrock request timed out: {exc}", service="bedrock", status_code=504
            ) from exc
        except BotoCoreError as exc:
            raise LlmInvocationError(str(exc), service="bedrock") from exc

        if not result:
            raise LlmInvocationError("No response from the language model.", service="bedrock")
        return result


__all__ = ["BedrockLlmClient", "LlmInvocationError"]
