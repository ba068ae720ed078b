"""Staged and remote generation pipelines."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from audioguide.config.settings import GenerationConfig
from audioguide.domain.models import ErrorKind, GenerationStatus
from audioguide.pipelines.generation import (
    RemoteGenerationPipeline,
    StagedGenerationPipeline,
    build_facts_prompt,
)
from audioguide.services.audio_api import AudioApiClient
from audioguide.services.cancellation import CancellationToken, OperationCancelled
from audioguide.services.errors import ApiError, normalize_error
from audioguide.services.geocoding import LOCATION_WARNING, Location
from audioguide.services.tts import SynthesisResult

from conftest import STAGED_STATUSES, FakeGeocoder, FakeLlm, FakeTts, make_attraction, settle

WARSAW = Location(country="Poland", city="Warsaw", street="Plac Zamkowy", valid=True)


def _run_staged(pipeline, attraction, language="English", on_status=None):
    statuses: list[GenerationStatus] = []
    token = CancellationToken("generation")

    def record(status):
        statuses.append(status)
        if on_status is not None:
            on_status(status, token)

    result = asyncio.run(pipeline.generate(attraction, record, token, language))
    return result, statuses


def test_staged_pipeline_runs_stages_in_order():
    llm = FakeLlm("1. Fact one.\n2. Fact two.", "Welcome to the Royal Castle!")
    tts = FakeTts()
    pipeline = StagedGenerationPipeline(llm, tts, FakeGeocoder(WARSAW))
    attraction = make_attraction("node/1", "Royal Castle")

    result, statuses = _run_staged(pipeline, attraction, language="Polski")

    assert statuses == list(STAGED_STATUSES)
    assert result.facts.startswith("1. Fact one.")
    assert result.script == "Welcome to the Royal Castle!"
    assert result.warning is None
    assert result.audio_handle.read_bytes() == b"ID3narration"
    assert "Location: Plac Zamkowy, Warsaw, Poland" in llm.prompts[0]["user"]
    assert "Write your response entirely in Polski." in llm.prompts[0]["system"]
    assert (llm.prompts[0]["max_tokens"], llm.prompts[0]["temperature"]) == (500, 0.7)
    assert "Fact two." in llm.prompts[1]["user"]
    assert (llm.prompts[1]["max_tokens"], llm.prompts[1]["temperature"]) == (300, 0.8)
    assert tts.calls == [("Welcome to the Royal Castle!", "Polski")]
    assert result.release() is True


def test_unresolved_location_adds_warning_and_uses_coordinates():
    llm = FakeLlm("facts", "script")
    pipeline = StagedGenerationPipeline(llm, FakeTts(), FakeGeocoder(Location()))

    result, _ = _run_staged(pipeline, make_attraction(1, latitude=0.0, longitude=0.0))

    assert result.warning == LOCATION_WARNING
    assert "Coordinates: 0.000000, 0.000000" in llm.prompts[0]["user"]
    result.release()


def test_cancellation_between_stages_stops_the_pipeline():
    llm = FakeLlm("facts", "script")
    tts = FakeTts()
    pipeline = StagedGenerationPipeline(llm, tts)

    def cancel_on_script(status, token):
        if status is GenerationStatus.GENERATING_SCRIPT:
            token.cancel()

    with pytest.raises(OperationCancelled):
        _run_staged(pipeline, make_attraction(1), on_status=cancel_on_script)

    assert len(llm.prompts) == 1
    assert tts.calls == []


class BlockingTts:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.aborted = False

    async def synthesize(self, text, *, language="English"):
        self.started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.aborted = True
            raise
        return SynthesisResult(audio_bytes=b"ID3late", media_type="audio/mpeg", voice_id="Joanna")


def test_cancellation_during_synthesis_aborts_and_stores_nothing(monkeypatch):
    stored = []

    def record_store(audio_bytes, *, media_type="audio/mpeg"):
        stored.append(audio_bytes)
        raise AssertionError("audio stored after cancellation")

    monkeypatch.setattr("audioguide.pipelines.generation.synthesis.store_audio", record_store)

    async def scenario():
        tts = BlockingTts()
        pipeline = StagedGenerationPipeline(FakeLlm("facts", "script"), tts)
        token = CancellationToken("generation")
        task = asyncio.ensure_future(pipeline.generate(make_attraction(1), lambda status: None, token))
        await tts.started.wait()
        token.cancel()
        with pytest.raises(OperationCancelled):
            await task
        await settle()
        return tts

    tts = asyncio.run(scenario())

    assert tts.aborted is True
    assert stored == []

def test_facts_prompt_without_location_falls_back_to_coordinates():
    bundle = build_facts_prompt(make_attraction(1, "Old Town", latitude=52.25, longitude=21.0), "English")

    assert '"Old Town" (museum)' in bundle.user_prompt
    assert "Coordinates: 52.250000, 21.000000" in bundle.user_prompt


def _remote(handler):
    client = httpx.AsyncClient(
        base_url="http://backend.test", transport=httpx.MockTransport(handler)
    )
    return RemoteGenerationPipeline(AudioApiClient(client=client, config=GenerationConfig()))


def test_remote_pipeline_reports_only_audio_stage_and_carries_warning():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["json"] = request.read().decode()
        return httpx.Response(
            200,
            content=b"ID3remote",
            headers={"Content-Type": "audio/mpeg", "X-Location-Warning": LOCATION_WARNING},
        )

    statuses: list[GenerationStatus] = []
    pipeline = _remote(handler)
    result = asyncio.run(
        pipeline.generate(make_attraction(1, "Barbican"), statuses.append, CancellationToken(), "German")
    )

    assert statuses == [GenerationStatus.GENERATING_AUDIO]
    assert captured["path"] == "/generate-audio"
    assert '"language":"German"' in captured["json"].replace(" ", "")
    assert result.audio_handle.read_bytes() == b"ID3remote"
    assert result.warning == LOCATION_WARNING
    result.release()


@pytest.mark.parametrize(
    ("status_code", "kind"),
    [
        (429, ErrorKind.RATE_LIMITED),
        (504, ErrorKind.TIMEOUT),
        (400, ErrorKind.VALIDATION),
        (502, ErrorKind.SERVER_ERROR),
    ],
)
def test_remote_pipeline_errors_carry_status(status_code, kind):
    pipeline = _remote(lambda request: httpx.Response(status_code, json={"detail": "nope"}))

    with pytest.raises(ApiError) as excinfo:
        asyncio.run(
            pipeline.generate(make_attraction(1), lambda status: None, CancellationToken(), "English")
        )

    assert excinfo.value.status_code == status_code
    assert excinfo.value.message == "nope"
    assert normalize_error(excinfo.value).kind is kind


def test_describe_lists_stages_in_order():
    stages = StagedGenerationPipeline.describe()

    assert [stage.status for stage in stages] == list(STAGED_STATUSES)
    assert [stage.order for stage in stages] == [1, 2, 3]


@pytest.mark.parametrize(
    ("response", "healthy"),
    [
        (httpx.Response(200, json={"status": "healthy"}), True),
        (httpx.Response(200, json={"status": "degraded"}), False),
        (httpx.Response(503, json={"detail": "down"}), False),
        (httpx.Response(200, content=b"not json"), False),
    ],
)
def test_backend_health_check(response, healthy):
    client = httpx.AsyncClient(
        base_url="http://backend.test", transport=httpx.MockTransport(lambda request: response)
    )
    api = AudioApiClient(client=client, config=GenerationConfig())

    assert asyncio.run(api.check_health()) is healthy
