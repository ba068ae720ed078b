"""Transient storage for generated narration audio."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from uuid import uuid4

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/ogg": "ogg",
}


class StorageError(RuntimeError):
    """Raised when narration audio cannot be written to transient storage."""


class AudioHandle:
    """Playable audio backed by a temporary file; release exactly once."""

    def __init__(self, path: Path, media_type: str, size: int) -> None:
        self._path = path
        self.media_type = media_type
        self.size = size
        self._released = False

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<AudioHandle {self._path.name} {self.media_type} {state}>"

    @property
    def path(self) -> Path:
        if self._released:
            raise StorageError("Audio handle has already been released.")
        return self._path

    @property
    def released(self) -> bool:
        return self._released

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def release(self) -> bool:
        """Delete the backing file. Returns False when already released."""

        if self._released:
            logger.warning("Ignoring second release of %r", self)
            return False
        self._released = True
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete audio file %s: %s", self._path, exc)
        return True


def store_audio(audio_bytes: bytes, *, media_type: str = "audio/mpeg") -> AudioHandle:
    """Write audio bytes to a temporary file and return its handle."""

    if not audio_bytes:
        raise StorageError("Audio payload was empty.")

    extension = _EXTENSIONS.get(media_type, "bin")
    directory = Path(tempfile.gettempdir()) / "audioguide"
    path = directory / f"narration-{uuid4().hex}.{extension}"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_bytes(audio_bytes)
    except OSError as exc:
        raise StorageError(f"Failed to store narration audio: {exc}") from exc

    return AudioHandle(path, media_type, len(audio_bytes))


__all__ = ["AudioHandle", "StorageError", "store_audio"]
