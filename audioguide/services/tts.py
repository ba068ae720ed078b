"""Amazon Polly narration synthesis."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError
from fastapi.concurrency import run_in_threadpool

from audioguide.config.settings import PollyConfig, settings

from .aws import client_error_details, create_boto3_client
from .errors import ServiceError

logger = logging.getLogger(__name__)

# Neural voices per narration language; unknown languages use the default voice.
_LANGUAGE_VOICES: Mapping[str, str] = {
    "english": "Joanna",
    "polski": "Ola",
    "polish": "Ola",
    "spanish": "Lucia",
    "español": "Lucia",
    "german": "Vicki",
    "deutsch": "Vicki",
    "french": "Lea",
    "français": "Lea",
    "italian": "Bianca",
    "italiano": "Bianca",
}

_MEDIA_TYPES: Mapping[str, str] = {
    "mp3": "audio/mpeg",
    "ogg_vorbis": "audio/ogg",
}


@dataclass(frozen=True)
class SynthesisResult:
    """Synthesised narration audio."""

    audio_bytes: bytes
    media_type: str
    voice_id: str


class SynthesisError(ServiceError):
    """Raised when Polly narration synthesis fails."""


def voice_for_language(language: str, default: str) -> str:
    return _LANGUAGE_VOICES.get((language or "").strip().lower(), default)


class PollyTtsService:
    """Convert a narration script into audio with Amazon Polly."""

    def __init__(self, config: PollyConfig | None = None, client: Any = None) -> None:
        self._config = config or settings.polly
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = create_boto3_client(
                    "polly",
                    region_name=self._config.region,
                    aws_access_key_id=self._config.access_key,
                    aws_secret_access_key=self._config.secret_key,
                    read_timeout=settings.generation.request_timeout_seconds,
                )
            except (BotoCoreError, ValueError) as exc:
                raise SynthesisError(
                    f"Polly client could not be initialised: {exc}", service="polly"
                ) from exc
        return self._client

    async def synthesize(
        self,
        text: str,
        *,
        language: str = "English",
        voice_id: str | None = None,
    ) -> SynthesisResult:
        script = (text or "").strip()
        if not script:
            raise SynthesisError("Narration script was empty.", service="polly", status_code=422)

        client = self._get_client()
        voice = voice_id or voice_for_language(language, self._config.default_voice_id)
        output_format = self._config.output_format

        try:
            response: dict[str, Any] = await run_in_threadpool(
                client.synthesize_speech,
                Text=script,
                VoiceId=voice,
                Engine=self._config.engine,
                OutputFormat=output_format,
            )
        except ClientError as exc:
            status, code, message = client_error_details(exc)
            logger.exception("Polly synth failed for voice '%s'", voice)
            raise SynthesisError(message, service="polly", status_code=status, code=code) from exc
        except (ConnectTimeoutError, ReadTimeoutError) as exc:
            raise SynthesisError(
                f"Polly request timed out: {exc}", service="polly", status_code=504
            ) from exc
        except BotoCoreError as exc:
            raise SynthesisError(f"Failed to synthesize speech: {exc}", service="polly") from exc

        audio_stream = response.get("AudioStream")
        if audio_stream is None:
            raise SynthesisError("Polly returned no audio stream.", service="polly")
        audio_bytes = await run_in_threadpool(audio_stream.read)
        if not audio_bytes:
            raise SynthesisError("Polly returned an empty audio stream.", service="polly")

        return SynthesisResult(
            audio_bytes=audio_bytes,
            media_type=_MEDIA_TYPES.get(output_format, "application/octet-stream"),
            voice_id=voice,
        )


__all__ = ["PollyTtsService", "SynthesisError", "SynthesisResult", "voice_for_language"]
