"""Generation pipelines: attraction in, playable narration out.

Two interchangeable shapes implement the same ``generate`` contract:

1. ``StagedGenerationPipeline`` – one remote call per stage
   (location context + facts, script, synthesis), checking the
   cancellation token between stages.
2. ``RemoteGenerationPipeline`` – a single call to the ``/generate-audio``
   backend, which runs the staged pipeline server-side.

Neither pipeline reports ``ready``, ``error`` or ``idle``; the caller owns
those transitions. Cancellation always surfaces as ``OperationCancelled``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol

from audioguide.domain.models import Attraction, GenerationStatus
from audioguide.services.audio_api import AudioApiClient
from audioguide.services.audio_storage import store_audio
from audioguide.services.cancellation import CancellationToken

from .context import Geocoder, resolve_location
from .llm import TextGenerator, generate_facts, generate_script
from .synthesis import SpeechSynthesizer, synthesize_narration
from .types import AudioGuideResult, StatusCallback

logger = logging.getLogger("audioguide.pipelines.generation")


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the generation pipeline."""

    order: int
    name: str
    status: GenerationStatus
    module: str
    summary: str


class GenerationPipeline(Protocol):
    name: str

    async def generate(
        self,
        attraction: Attraction,
        on_status: StatusCallback,
        token: CancellationToken,
        language: str = "English",
    ) -> AudioGuideResult:
        ...


class StagedGenerationPipeline:
    """Facts, script and audio as three distinct remote calls."""

    name = "staged"

    _STAGES: List[PipelineStage] = [
        PipelineStage(
            1,
            "Facts",
            GenerationStatus.FETCHING_FACTS,
            "audioguide.pipelines.generation.llm",
            "Reverse geocode the attraction and ask the LLM for little-known facts.",
        ),
        PipelineStage(
            2,
            "Script",
            GenerationStatus.GENERATING_SCRIPT,
            "audioguide.pipelines.generation.llm",
            "Rewrite the facts as a 30-60 second TTS-friendly narration.",
        ),
        PipelineStage(
            3,
            "Audio",
            GenerationStatus.GENERATING_AUDIO,
            "audioguide.pipelines.generation.synthesis",
            "Synthesize the narration with Polly and keep it in transient storage.",
        ),
    ]

    def __init__(
        self,
        llm: TextGenerator,
        tts: SpeechSynthesizer,
        geocoder: Optional[Geocoder] = None,
    ) -> None:
        self._llm = llm
        self._tts = tts
        self._geocoder = geocoder

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        """Expose the ordered list of stages for debugging and documentation."""

        return tuple(cls._STAGES)

    async def generate(
        self,
        attraction: Attraction,
        on_status: StatusCallback,
        token: CancellationToken,
        language: str = "English",
    ) -> AudioGuideResult:
        token.raise_if_cancelled()
        on_status(GenerationStatus.FETCHING_FACTS)
        location, warning = await resolve_location(self._geocoder, attraction, token)
        facts = await generate_facts(self._llm, attraction, language, token, location)

        token.raise_if_cancelled()
        on_status(GenerationStatus.GENERATING_SCRIPT)
        script = await generate_script(self._llm, attraction.name, facts, language, token)

        token.raise_if_cancelled()
        on_status(GenerationStatus.GENERATING_AUDIO)
        handle = await synthesize_narration(self._tts, script, language, token)

        return AudioGuideResult(
            attraction_id=attraction.id,
            attraction_name=attraction.name,
            audio_handle=handle,
            warning=warning,
            facts=facts,
            script=script,
        )


class RemoteGenerationPipeline:
    """Single backend call that performs every stage remotely."""

    name = "remote"

    def __init__(self, api: AudioApiClient) -> None:
        self._api = api

    async def generate(
        self,
        attraction: Attraction,
        on_status: StatusCallback,
        token: CancellationToken,
        language: str = "English",
    ) -> AudioGuideResult:
        token.raise_if_cancelled()
        on_status(GenerationStatus.GENERATING_AUDIO)
        remote = await self._api.generate_audio(attraction.descriptor(), language, token)
        token.raise_if_cancelled()

        handle = store_audio(remote.audio_bytes, media_type=remote.media_type)
        logger.info("Received %d bytes of narration for %s", handle.size, attraction.id)
        return AudioGuideResult(
            attraction_id=attraction.id,
            attraction_name=attraction.name,
            audio_handle=handle,
            warning=remote.warning,
        )


__all__ = [
    "GenerationPipeline",
    "PipelineStage",
    "StagedGenerationPipeline",
    "RemoteGenerationPipeline",
]
