"""Client-local durable preferences (only the narration language today)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from audioguide.config.settings import PreferencesConfig, settings

logger = logging.getLogger(__name__)


class LanguagePreferences:
    """Persist the selected narration language under a fixed key."""

    def __init__(self, config: PreferencesConfig | None = None) -> None:
        config = config or settings.preferences
        self._path = Path(config.path)
        self._key = config.language_key
        self._default = config.default_language

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> str:
        """Return the stored language, or the default when absent/unreadable."""

        value = self._read().get(self._key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return self._default

    def save(self, language: str) -> None:
        data = self._read()
        data[self._key] = language
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}


__all__ = ["LanguagePreferences"]
