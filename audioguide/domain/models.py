"""Domain models shared by the loader, the store and the generation pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

AttractionId = Union[int, str]


class Attraction(BaseModel):
    """Point of interest shown on the map."""

    id: AttractionId
    name: str
    category: str = "attraction"
    latitude: float
    longitude: float
    raw_tags: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def descriptor(self) -> dict[str, object]:
        """Payload sent to remote generation services."""

        return {
            "name": self.name,
            "category": self.category,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


class Bounds(BaseModel):
    """Viewport rectangle used to scope a point-of-interest search."""

    south: float
    west: float
    north: float
    east: float

    model_config = ConfigDict(frozen=True)

    def as_overpass_bbox(self) -> str:
        return f"{self.south},{self.west},{self.north},{self.east}"


class GenerationStatus(str, Enum):
    IDLE = "idle"
    FETCHING_FACTS = "fetching_facts"
    GENERATING_SCRIPT = "generating_script"
    GENERATING_AUDIO = "generating_audio"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"


VALID_TRANSITIONS: Mapping[GenerationStatus, FrozenSet[GenerationStatus]] = {
    GenerationStatus.IDLE: frozenset({GenerationStatus.FETCHING_FACTS}),
    GenerationStatus.FETCHING_FACTS: frozenset(
        {GenerationStatus.GENERATING_SCRIPT, GenerationStatus.ERROR, GenerationStatus.IDLE}
    ),
    GenerationStatus.GENERATING_SCRIPT: frozenset(
        {GenerationStatus.GENERATING_AUDIO, GenerationStatus.ERROR, GenerationStatus.IDLE}
    ),
    GenerationStatus.GENERATING_AUDIO: frozenset(
        {GenerationStatus.READY, GenerationStatus.ERROR, GenerationStatus.IDLE}
    ),
    GenerationStatus.READY: frozenset({GenerationStatus.PLAYING, GenerationStatus.IDLE}),
    GenerationStatus.PLAYING: frozenset(
        {GenerationStatus.PAUSED, GenerationStatus.READY, GenerationStatus.IDLE}
    ),
    GenerationStatus.PAUSED: frozenset(
        {GenerationStatus.PLAYING, GenerationStatus.READY, GenerationStatus.IDLE}
    ),
    GenerationStatus.ERROR: frozenset({GenerationStatus.IDLE, GenerationStatus.FETCHING_FACTS}),
}

GENERATING_STATUSES: FrozenSet[GenerationStatus] = frozenset(
    {
        GenerationStatus.FETCHING_FACTS,
        GenerationStatus.GENERATING_SCRIPT,
        GenerationStatus.GENERATING_AUDIO,
    }
)

AUDIO_READY_STATUSES: FrozenSet[GenerationStatus] = frozenset(
    {GenerationStatus.READY, GenerationStatus.PLAYING, GenerationStatus.PAUSED}
)


def is_valid_transition(current: GenerationStatus, target: GenerationStatus) -> bool:
    """Return True when ``current -> target`` appears in the transition table."""

    if current == target:
        return True
    return target in VALID_TRANSITIONS.get(current, frozenset())


class ErrorKind(str, Enum):
    CANCELLED = "cancelled"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    NETWORK = "network"
    INVALID_CREDENTIALS = "invalid_credentials"
    QUOTA_EXHAUSTED = "quota_exhausted"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorInfo(BaseModel):
    """Structured failure written to the shared state."""

    kind: ErrorKind
    message: str
    retryable: bool
    source: str = "generation"

    model_config = ConfigDict(frozen=True)


__all__ = [
    "AttractionId",
    "Attraction",
    "Bounds",
    "GenerationStatus",
    "VALID_TRANSITIONS",
    "GENERATING_STATUSES",
    "AUDIO_READY_STATUSES",
    "is_valid_transition",
    "ErrorKind",
    "ErrorInfo",
]
