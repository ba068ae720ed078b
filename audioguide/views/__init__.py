"""Pydantic schemas used as views in the MVC architecture."""

from .common import AcceptedResponse, ErrorResponse
from .generation import GenerateAudioRequest
from .guide import (
    GuideStateResponse,
    LanguageRequest,
    LanguageResponse,
    MarkerView,
    NarrationView,
    PlaybackRequest,
    SelectionRequest,
    ViewportRequest,
)

__all__ = [
    "AcceptedResponse",
    "ErrorResponse",
    "GenerateAudioRequest",
    "GuideStateResponse",
    "LanguageRequest",
    "LanguageResponse",
    "MarkerView",
    "NarrationView",
    "PlaybackRequest",
    "SelectionRequest",
    "ViewportRequest",
]
