"""Shared fakes for the orchestration tests."""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Sequence

import pytest

from audioguide.config.settings import LoaderConfig, PreferencesConfig
from audioguide.domain.models import Attraction, GenerationStatus
from audioguide.pipelines.generation.types import AudioGuideResult
from audioguide.services.audio_storage import store_audio
from audioguide.services.cancellation import CancellationToken
from audioguide.services.geocoding import Location
from audioguide.services.tts import SynthesisResult
from audioguide.state.preferences import LanguagePreferences

STAGED_STATUSES = (
    GenerationStatus.FETCHING_FACTS,
    GenerationStatus.GENERATING_SCRIPT,
    GenerationStatus.GENERATING_AUDIO,
)


def make_attraction(identifier: Any, name: Optional[str] = None, **overrides: Any) -> Attraction:
    fields = {
        "id": identifier,
        "name": name or f"Attraction {identifier}",
        "category": "museum",
        "latitude": 52.2297,
        "longitude": 21.0122,
    }
    fields.update(overrides)
    return Attraction(**fields)


def element(identifier: int, name: str = "", **extra: Any) -> dict[str, Any]:
    """Raw Overpass node with a name tag and direct coordinates."""

    payload: dict[str, Any] = {
        "type": "node",
        "id": identifier,
        "lat": 52.0 + identifier / 1000,
        "lon": 21.0 + identifier / 1000,
        "tags": {"name": name or f"Place {identifier}", "tourism": "museum"},
    }
    payload.update(extra)
    return payload


async def settle(rounds: int = 5) -> None:
    """Let scheduled callbacks and tasks run up to their next real suspension."""

    for _ in range(rounds):
        await asyncio.sleep(0)


class RecordingSleep:
    """Backoff sleep that returns immediately and remembers the delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeSearch:
    """Attraction search replaying scripted responses; the last one repeats."""

    def __init__(self, *responses: Any, gate: Optional[asyncio.Event] = None) -> None:
        self.responses = list(responses)
        self.calls: List[Any] = []
        self.gate = gate

    async def search_attractions(self, bounds, token: CancellationToken | None = None):
        self.calls.append(bounds)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if self.gate is not None and len(self.calls) == 1:
            waiting = self.gate.wait()
            await (token.guard(waiting) if token else waiting)
        if isinstance(response, BaseException):
            raise response
        return list(response)


class FakePipeline:
    """Generation pipeline that reports the staged statuses and stores fake audio."""

    name = "fake"

    def __init__(
        self,
        *,
        gate: Optional[asyncio.Event] = None,
        error: Optional[BaseException] = None,
        warning: Optional[str] = None,
        statuses: Sequence[GenerationStatus] = STAGED_STATUSES,
    ) -> None:
        self.gate = gate
        self.error = error
        self.warning = warning
        self.statuses = tuple(statuses)
        self.calls: List[tuple] = []
        self.results: List[AudioGuideResult] = []
        self.overlaps = 0
        self._live: List[CancellationToken] = []

    async def generate(self, attraction, on_status, token, language="English"):
        self.calls.append((attraction.id, language))
        self.overlaps += sum(1 for live in self._live if not live.cancelled)
        self._live.append(token)
        try:
            for status in self.statuses:
                token.raise_if_cancelled()
                on_status(status)
            if self.gate is not None:
                await token.guard(self.gate.wait())
            token.raise_if_cancelled()
            if self.error is not None:
                raise self.error
            result = AudioGuideResult(
                attraction_id=attraction.id,
                attraction_name=attraction.name,
                audio_handle=store_audio(b"ID3fake-" + str(attraction.id).encode()),
                warning=self.warning,
            )
            self.results.append(result)
            return result
        finally:
            self._live.remove(token)


@pytest.fixture
def loader_config() -> LoaderConfig:
    return LoaderConfig(
        debounce_seconds=0.05,
        max_retries=3,
        backoff_base_seconds=1.0,
        max_attractions=100,
    )


@pytest.fixture
def preferences(tmp_path) -> LanguagePreferences:
    return LanguagePreferences(PreferencesConfig(path=str(tmp_path / "preferences.json")))


class FakeLlm:
    """Conversational model replaying scripted replies (or raising ``error``)."""

    def __init__(self, *replies: str, error: Optional[BaseException] = None, delay: float = 0) -> None:
        self.replies = list(replies)
        self.error = error
        self.delay = delay
        self.prompts: List[dict] = []

    async def invoke(self, *, system_prompt, user_prompt, max_tokens, temperature):
        self.prompts.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0)


class FakeTts:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    async def synthesize(self, text, *, language="English"):
        self.calls.append((text, language))
        return SynthesisResult(audio_bytes=b"ID3narration", media_type="audio/mpeg", voice_id="Ola")


class FakeGeocoder:
    def __init__(self, location: Location) -> None:
        self.location = location

    async def reverse(self, latitude, longitude, token=None):
        return self.location
