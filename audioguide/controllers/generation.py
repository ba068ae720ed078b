"""Single-call narration endpoint used by the remote pipeline shape.

The route runs `audioguide.pipelines.generation.flow.StagedGenerationPipeline`
server-side under one deadline:

1. Reverse geocode the coordinates (a failure only adds a warning header).
2. Generate facts, then a TTS-friendly script, in the requested language.
3. Synthesize the script and stream the MP3 bytes back.
"""

import asyncio
import logging
from uuid import uuid4

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import Response

from audioguide.config.settings import settings
from audioguide.controllers.dependencies import GenerationPipelineDep
from audioguide.domain.models import Attraction, ErrorKind
from audioguide.pipelines.generation import StagedGenerationPipeline
from audioguide.services.audio_api import WARNING_HEADER
from audioguide.services.cancellation import CancellationToken
from audioguide.services.errors import normalize_error, user_message
from audioguide.views import ErrorResponse, GenerateAudioRequest

router = APIRouter(tags=["generation"])

logger = logging.getLogger(__name__)

PIPELINE_STAGES = tuple(StagedGenerationPipeline.describe())
"""Ordered pipeline metadata used for quick reference and debugging."""

_STATUS_BY_KIND = {
    ErrorKind.RATE_LIMITED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
}


class GenerationHTTPError(HTTPException):
    """HTTP error whose body also carries the ``ErrorKind`` as ``code``."""

    def __init__(self, status_code: int, kind: ErrorKind) -> None:
        super().__init__(status_code=status_code, detail=user_message(kind))
        self.code = kind.value


def _stage_name(statuses: list[str]) -> str:
    if not statuses:
        return "start"
    for stage in PIPELINE_STAGES:
        if stage.status.value == statuses[-1]:
            return stage.name
    return statuses[-1]


_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


@router.post("/generate-audio", response_class=Response, responses=_ERROR_RESPONSES)
async def generate_audio(
    request: GenerateAudioRequest,
    pipeline: GenerationPipelineDep,
) -> Response:
    """Generate facts, a script and MP3 narration for one attraction."""

    attraction = Attraction(
        id=f"request/{uuid4().hex[:12]}",
        name=request.name,
        category=request.category,
        latitude=request.latitude,
        longitude=request.longitude,
    )
    token = CancellationToken("generate-audio")
    stages: list[str] = []

    logger.info("Generating narration for: %s in %s", request.name, request.language)
    try:
        result = await asyncio.wait_for(
            pipeline.generate(attraction, lambda stage: stages.append(stage.value), token, request.language),
            timeout=settings.generation.request_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        token.cancel()
        logger.error("Narration for %s timed out during %s", request.name, _stage_name(stages))
        raise GenerationHTTPError(status.HTTP_504_GATEWAY_TIMEOUT, ErrorKind.TIMEOUT) from exc
    except Exception as exc:
        info = normalize_error(exc)
        logger.error(
            "Narration for %s failed at %s: %s",
            request.name,
            _stage_name(stages),
            exc,
        )
        raise GenerationHTTPError(
            _STATUS_BY_KIND.get(info.kind, status.HTTP_502_BAD_GATEWAY), info.kind
        ) from exc

    try:
        audio_bytes = result.audio_handle.read_bytes()
        media_type = result.audio_handle.media_type
    finally:
        result.release()

    logger.info("Successfully generated audio for: %s (%d bytes)", request.name, len(audio_bytes))
    headers = {WARNING_HEADER: result.warning} if result.warning else None
    return Response(content=audio_bytes, media_type=media_type, headers=headers)
