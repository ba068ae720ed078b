"""Typed containers shared across the generation pipeline.

These live in their own module so the stage modules (``context``,
``prompts``, ``llm``, ``synthesis``, ``flow``) and the selection controller
can import them without circular dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union

from audioguide.domain.models import AttractionId, ErrorInfo, GenerationStatus
from audioguide.services.audio_storage import AudioHandle

StatusCallback = Callable[[GenerationStatus], None]


@dataclass(frozen=True)
class PromptBundle:
    """System/user prompts plus the sampling parameters for one LLM stage."""

    system_prompt: str
    user_prompt: str
    max_tokens: int
    temperature: float


@dataclass(frozen=True)
class AudioGuideResult:
    """Generated narration for one attraction.

    The caller owns ``audio_handle`` and must call ``release`` exactly once.
    """

    attraction_id: AttractionId
    attraction_name: str
    audio_handle: AudioHandle
    warning: Optional[str] = None
    error: Optional[str] = None
    facts: Optional[str] = None
    script: Optional[str] = None

    def release(self) -> bool:
        return self.audio_handle.release()


@dataclass(frozen=True)
class Completed:
    result: AudioGuideResult


@dataclass(frozen=True)
class Cancelled:
    reason: str = "superseded"


@dataclass(frozen=True)
class Failed:
    error: ErrorInfo
    cause: BaseException


GenerationOutcome = Union[Completed, Cancelled, Failed]


__all__ = [
    "StatusCallback",
    "PromptBundle",
    "AudioGuideResult",
    "Completed",
    "Cancelled",
    "Failed",
    "GenerationOutcome",
]
