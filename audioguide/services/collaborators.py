"""Interfaces to the map, notification and playback surfaces.

The orchestration core only talks to these protocols. The in-memory
implementations below back the HTTP surface and the tests; a real client
swaps in map/toast/player adapters with the same methods.
"""

from __future__ import annotations

import io
import logging
import wave
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol

from audioguide.domain.models import Attraction, AttractionId

logger = logging.getLogger(__name__)

MarkerClickHandler = Callable[[Attraction], Any]


class MarkerLayer(Protocol):
    def add_marker(self, attraction: Attraction, on_click: MarkerClickHandler | None) -> None:
        ...

    def remove_marker(self, attraction_id: AttractionId) -> None:
        ...

    def set_selected(self, attraction_id: AttractionId, selected: bool) -> None:
        ...

    def set_generating(self, attraction_id: AttractionId, generating: bool) -> None:
        ...

    def get_map_handle(self) -> Any:
        ...


class UiNotifier(Protocol):
    def show_warning(self, message: str) -> None:
        ...

    def show_timeout_notice(self) -> None:
        ...

    def hide_player(self) -> None:
        ...


class AudioOutput(Protocol):
    async def play_silence(self) -> None:
        ...

    def stop(self) -> None:
        ...


@dataclass
class MarkerState:
    """Visual state tracked for one marker."""

    attraction: Attraction
    on_click: Optional[MarkerClickHandler] = None
    selected: bool = False
    generating: bool = False


class InMemoryMarkerLayer:
    """Marker registry keyed by attraction id."""

    def __init__(self, map_handle: Any = None) -> None:
        self._map_handle = map_handle
        self._markers: Dict[AttractionId, MarkerState] = {}

    def add_marker(self, attraction: Attraction, on_click: MarkerClickHandler | None) -> None:
        self._markers[attraction.id] = MarkerState(attraction=attraction, on_click=on_click)

    def remove_marker(self, attraction_id: AttractionId) -> None:
        self._markers.pop(attraction_id, None)

    def set_selected(self, attraction_id: AttractionId, selected: bool) -> None:
        marker = self._markers.get(attraction_id)
        if marker is not None:
            marker.selected = selected

    def set_generating(self, attraction_id: AttractionId, generating: bool) -> None:
        marker = self._markers.get(attraction_id)
        if marker is not None:
            marker.generating = generating

    def get_map_handle(self) -> Any:
        return self._map_handle

    def get(self, attraction_id: AttractionId) -> Optional[MarkerState]:
        return self._markers.get(attraction_id)

    def click(self, attraction_id: AttractionId) -> Any:
        """Invoke the click handler registered for a marker."""

        marker = self._markers.get(attraction_id)
        if marker is None or marker.on_click is None:
            return None
        return marker.on_click(marker.attraction)

    def __len__(self) -> int:
        return len(self._markers)

    def __contains__(self, attraction_id: object) -> bool:
        return attraction_id in self._markers

    def snapshot(self) -> List[dict[str, Any]]:
        return [
            {
                "id": marker.attraction.id,
                "selected": marker.selected,
                "generating": marker.generating,
            }
            for marker in self._markers.values()
        ]


class LoggingNotifier:
    """Records user-facing notices and logs them."""

    def __init__(self, max_notices: int = 20) -> None:
        self.notices: Deque[dict[str, str]] = deque(maxlen=max_notices)
        self.player_visible = False

    def show_warning(self, message: str) -> None:
        logger.warning("Notice: %s", message)
        self.notices.append({"level": "warning", "message": message})

    def show_timeout_notice(self) -> None:
        message = "This is taking longer than expected..."
        logger.info("Notice: %s", message)
        self.notices.append({"level": "info", "message": message})

    def hide_player(self) -> None:
        self.player_visible = False


def silent_wav(sample_rate: int = 22050, frames: int = 1) -> bytes:
    """Return a tiny mono WAV buffer of silence."""

    with io.BytesIO() as buffer:
        with wave.open(buffer, "wb") as wave_file:
            wave_file.setnchannels(1)
            wave_file.setsampwidth(2)
            wave_file.setframerate(sample_rate)
            wave_file.writeframes(b"\x00\x00" * frames)
        return buffer.getvalue()


class BufferedAudioOutput:
    """Playback stand-in that records the warm-up buffer and stop calls."""

    def __init__(self) -> None:
        self.primed_with: bytes | None = None
        self.stop_count = 0

    async def play_silence(self) -> None:
        self.primed_with = silent_wav()

    def stop(self) -> None:
        self.stop_count += 1


__all__ = [
    "MarkerClickHandler",
    "MarkerLayer",
    "UiNotifier",
    "AudioOutput",
    "MarkerState",
    "InMemoryMarkerLayer",
    "LoggingNotifier",
    "silent_wav",
    "BufferedAudioOutput",
]
