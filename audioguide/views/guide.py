"""Schemas for the guide session routes."""

from __future__ import annotations

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from audioguide.domain.models import Attraction, Bounds, ErrorInfo, GenerationStatus
from audioguide.state.store import AppState


class ViewportRequest(BaseModel):
    south: float = Field(ge=-90, le=90)
    west: float = Field(ge=-180, le=180)
    north: float = Field(ge=-90, le=90)
    east: float = Field(ge=-180, le=180)

    @model_validator(mode="after")
    def _ordered(self) -> "ViewportRequest":
        if self.south > self.north:
            raise ValueError("south must not be greater than north")
        return self

    def to_bounds(self) -> Bounds:
        return Bounds(south=self.south, west=self.west, north=self.north, east=self.east)


class SelectionRequest(BaseModel):
    attraction_id: Union[int, str]


class PlaybackRequest(BaseModel):
    status: Literal["ready", "playing", "paused"]


class LanguageRequest(BaseModel):
    language: str = Field(min_length=1, max_length=50)


class LanguageResponse(BaseModel):
    language: str


class NarrationView(BaseModel):
    attraction_id: Union[int, str]
    attraction_name: str
    media_type: str
    size: int
    warning: Optional[str] = None


class MarkerView(BaseModel):
    id: Union[int, str]
    selected: bool = False
    generating: bool = False


class GuideStateResponse(BaseModel):
    attractions: List[Attraction]
    selected_attraction_id: Optional[Union[int, str]] = None
    audio_status: GenerationStatus
    is_loading_attractions: bool
    selected_language: str
    error: Optional[ErrorInfo] = None
    narration: Optional[NarrationView] = None
    markers: List[MarkerView] = Field(default_factory=list)

    @classmethod
    def from_state(cls, state: AppState, markers: Optional[List[dict[str, Any]]] = None) -> "GuideStateResponse":
        guide = state.current_audio_guide
        narration = None
        if guide is not None and not guide.audio_handle.released:
            narration = NarrationView(
                attraction_id=guide.attraction_id,
                attraction_name=guide.attraction_name,
                media_type=guide.audio_handle.media_type,
                size=guide.audio_handle.size,
                warning=guide.warning,
            )
        return cls(
            attractions=list(state.attractions),
            selected_attraction_id=state.selected_attraction_id,
            audio_status=state.audio_status,
            is_loading_attractions=state.is_loading_attractions,
            selected_language=state.selected_language,
            error=state.error,
            narration=narration,
            markers=[MarkerView(**marker) for marker in markers or []],
        )
