"""TTS synthesis stage: narration script to a playable audio handle."""

from __future__ import annotations

import logging
from typing import Protocol

from audioguide.services.audio_storage import AudioHandle, store_audio
from audioguide.services.cancellation import CancellationToken
from audioguide.services.tts import SynthesisResult

logger = logging.getLogger("audioguide.pipelines.generation")


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str, *, language: str = "English") -> SynthesisResult:
        ...


async def synthesize_narration(
    tts: SpeechSynthesizer,
    script: str,
    language: str,
    token: CancellationToken,
) -> AudioHandle:
    """Synthesize the script and move the audio into transient storage."""

    result = await token.guard(tts.synthesize(script, language=language))
    token.raise_if_cancelled()
    handle = store_audio(result.audio_bytes, media_type=result.media_type)
    logger.info("Synthesized %d bytes with voice %s", handle.size, result.voice_id)
    return handle


__all__ = ["SpeechSynthesizer", "synthesize_narration"]
