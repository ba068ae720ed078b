"""Selection flow: single-flight generation, reuse, cancellation and failures."""

from __future__ import annotations

import asyncio

import pytest

from audioguide.domain.models import ErrorKind, GenerationStatus
from audioguide.pipelines.generation.types import AudioGuideResult
from audioguide.services.audio_storage import store_audio
from audioguide.services.collaborators import (
    BufferedAudioOutput,
    InMemoryMarkerLayer,
    LoggingNotifier,
)
from audioguide.services.errors import GenerationFailed, ServiceError
from audioguide.services.geocoding import LOCATION_WARNING
from audioguide.services.selection import PlaybackError, SelectionController
from audioguide.state.store import StateStore

from conftest import FakePipeline, make_attraction, settle


def _controller(pipeline, *, soft_timeout=30.0):
    store = StateStore()
    markers = InMemoryMarkerLayer()
    notifier = LoggingNotifier()
    output = BufferedAudioOutput()
    controller = SelectionController(
        store,
        pipeline,
        markers,
        notifier=notifier,
        audio_output=output,
        soft_timeout=soft_timeout,
    )
    attractions = [make_attraction(1), make_attraction(2), make_attraction(3)]
    controller.update_attractions(attractions)
    return controller, store, markers, notifier, output, attractions


def test_successful_selection_reports_statuses_and_stores_result():
    pipeline = FakePipeline()
    controller, store, markers, _, _, attractions = _controller(pipeline)
    statuses = []
    store.subscribe(lambda state: statuses.append(state.audio_status))

    result = asyncio.run(controller.select_attraction(attractions[0]))

    state = store.get_state()
    assert state.current_audio_guide is result
    assert state.audio_status is GenerationStatus.READY
    assert state.selected_attraction_id == 1
    assert result.audio_handle.read_bytes() == b"ID3fake-1"
    assert [s for i, s in enumerate(statuses) if i == 0 or statuses[i - 1] is not s] == [
        GenerationStatus.IDLE,
        GenerationStatus.FETCHING_FACTS,
        GenerationStatus.GENERATING_SCRIPT,
        GenerationStatus.GENERATING_AUDIO,
        GenerationStatus.READY,
    ]
    assert markers.get(1).selected is True
    assert markers.get(1).generating is False


def test_new_selection_supersedes_in_flight_generation():
    async def scenario():
        gate = asyncio.Event()
        pipeline = FakePipeline(gate=gate)
        controller, store, markers, _, _, attractions = _controller(pipeline)

        first = asyncio.ensure_future(controller.select_attraction(attractions[0]))
        await settle()
        assert markers.get(1).generating is True

        second = asyncio.ensure_future(controller.select_attraction(attractions[1]))
        await settle()
        assert markers.get(1).generating is False
        assert markers.get(1).selected is False
        assert markers.get(2).generating is True

        gate.set()
        return pipeline, store, await first, await second

    pipeline, store, first_result, second_result = asyncio.run(scenario())

    assert pipeline.overlaps == 0
    assert first_result is None
    assert second_result is not None and second_result.attraction_id == 2
    assert store.get_state().selected_attraction_id == 2
    assert store.get_state().audio_status is GenerationStatus.READY
    assert len(pipeline.results) == 1


def test_rapid_selections_never_overlap():
    async def scenario():
        gate = asyncio.Event()
        pipeline = FakePipeline(gate=gate)
        controller, store, _, _, _, attractions = _controller(pipeline)
        tasks = []
        for attraction in attractions * 3:
            tasks.append(asyncio.ensure_future(controller.select_attraction(attraction)))
            await asyncio.sleep(0)
        await settle()
        gate.set()
        results = await asyncio.gather(*tasks)
        return pipeline, store, results

    pipeline, store, results = asyncio.run(scenario())

    assert pipeline.overlaps == 0
    assert [r for r in results if r is not None] == [results[-1]]
    assert store.get_state().selected_attraction_id == 3


def test_reselecting_ready_attraction_reuses_result_without_generation():
    pipeline = FakePipeline()
    controller, store, _, _, _, attractions = _controller(pipeline)

    async def scenario():
        first = await controller.select_attraction(attractions[0])
        again = await controller.select_attraction(attractions[0])
        controller.set_playback(GenerationStatus.PLAYING)
        while_playing = await controller.select_attraction(attractions[0])
        return first, again, while_playing

    first, again, while_playing = asyncio.run(scenario())

    assert again is first and while_playing is first
    assert len(pipeline.calls) == 1
    assert store.get_state().audio_status is GenerationStatus.PLAYING


def test_switching_attractions_releases_previous_narration():
    pipeline = FakePipeline()
    controller, _, _, _, output, attractions = _controller(pipeline)

    async def scenario():
        first = await controller.select_attraction(attractions[0])
        second = await controller.select_attraction(attractions[1])
        return first, second

    first, second = asyncio.run(scenario())

    assert first.audio_handle.released is True
    assert second.audio_handle.released is False
    assert output.stop_count >= 2


def test_cancel_mid_generation_ends_idle_not_error():
    async def scenario():
        gate = asyncio.Event()
        pipeline = FakePipeline(gate=gate)
        controller, store, markers, notifier, _, attractions = _controller(pipeline)
        statuses = []
        store.subscribe(lambda state: statuses.append(state.audio_status))

        task = asyncio.ensure_future(controller.select_attraction(attractions[0]))
        await settle()
        controller.cancel_selection()
        result = await task
        return result, store, markers, notifier, statuses

    result, store, markers, notifier, statuses = asyncio.run(scenario())

    state = store.get_state()
    assert result is None
    assert state.audio_status is GenerationStatus.IDLE
    assert state.error is None
    assert state.selected_attraction_id is None
    assert GenerationStatus.ERROR not in statuses
    assert markers.get(1).generating is False and markers.get(1).selected is False
    assert notifier.player_visible is False


def test_failure_is_stored_and_raised():
    cause = ServiceError("upstream exploded", service="bedrock", status_code=500)
    pipeline = FakePipeline(error=cause)
    controller, store, markers, _, _, attractions = _controller(pipeline)

    with pytest.raises(GenerationFailed) as excinfo:
        asyncio.run(controller.select_attraction(attractions[0]))

    state = store.get_state()
    assert excinfo.value.cause is cause
    assert excinfo.value.error.kind is ErrorKind.SERVER_ERROR
    assert excinfo.value.error.retryable is True
    assert state.audio_status is GenerationStatus.ERROR
    assert state.error.source == "generation"
    assert markers.get(1).generating is False


def test_retry_after_error_starts_a_new_generation():
    pipeline = FakePipeline(error=ServiceError("rejected", status_code=401))
    controller, store, _, _, _, attractions = _controller(pipeline)

    with pytest.raises(GenerationFailed) as excinfo:
        asyncio.run(controller.select_attraction(attractions[0]))
    assert excinfo.value.error.kind is ErrorKind.INVALID_CREDENTIALS

    pipeline.error = None
    result = asyncio.run(controller.select_attraction(attractions[0]))

    assert result is not None
    assert store.get_state().error is None
    assert len(pipeline.calls) == 2


def test_warning_is_surfaced_through_notifier():
    pipeline = FakePipeline(warning=LOCATION_WARNING)
    controller, _, _, notifier, _, attractions = _controller(pipeline)

    result = asyncio.run(controller.select_attraction(attractions[0]))

    assert result.warning == LOCATION_WARNING
    assert {"level": "warning", "message": LOCATION_WARNING} in list(notifier.notices)


def test_soft_timeout_shows_notice_without_cancelling():
    async def scenario():
        gate = asyncio.Event()
        pipeline = FakePipeline(gate=gate)
        controller, _, _, notifier, _, attractions = _controller(pipeline, soft_timeout=0.01)
        task = asyncio.ensure_future(controller.select_attraction(attractions[0]))
        await asyncio.sleep(0.05)
        gate.set()
        return notifier, await task

    notifier, result = asyncio.run(scenario())

    assert result is not None
    assert [n["message"] for n in notifier.notices] == ["This is taking longer than expected..."]


def test_soft_timeout_is_cleared_when_generation_settles():
    async def scenario():
        pipeline = FakePipeline()
        controller, _, _, notifier, _, attractions = _controller(pipeline, soft_timeout=0.02)
        await controller.select_attraction(attractions[0])
        await asyncio.sleep(0.05)
        return notifier

    notifier = asyncio.run(scenario())

    assert list(notifier.notices) == []


def test_selection_triggers_audio_unlock_once():
    pipeline = FakePipeline()
    controller, _, _, _, output, attractions = _controller(pipeline)

    async def scenario():
        await controller.select_attraction(attractions[0])
        await controller.select_attraction(attractions[1])
        await settle()

    asyncio.run(scenario())

    assert controller.unlock_gate.outcome is True
    assert output.primed_with is not None


def test_update_attractions_keeps_selection_across_viewport_changes():
    pipeline = FakePipeline()
    controller, store, markers, _, _, attractions = _controller(pipeline)
    asyncio.run(controller.select_attraction(attractions[1]))

    result = controller.update_attractions([attractions[1], attractions[2], make_attraction(4)])

    assert result.removed == (1,) and result.added == (4,)
    assert markers.get(2).selected is True
    assert [a.id for a in store.get_state().attractions] == [2, 3, 4]
    assert store.get_state().audio_status is GenerationStatus.READY


def test_playback_transitions_require_narration():
    pipeline = FakePipeline()
    controller, store, _, _, output, attractions = _controller(pipeline)

    with pytest.raises(PlaybackError):
        controller.set_playback(GenerationStatus.PLAYING)
    with pytest.raises(ValueError):
        controller.set_playback(GenerationStatus.FETCHING_FACTS)

    asyncio.run(controller.select_attraction(attractions[0]))
    controller.set_playback(GenerationStatus.PLAYING)
    controller.set_playback(GenerationStatus.PAUSED)
    stops_before = output.stop_count
    controller.set_playback(GenerationStatus.READY)

    assert store.get_state().audio_status is GenerationStatus.READY
    assert output.stop_count == stops_before + 1


def test_close_releases_everything():
    pipeline = FakePipeline()
    controller, store, _, _, _, attractions = _controller(pipeline)
    result = asyncio.run(controller.select_attraction(attractions[0]))

    controller.close()

    assert result.audio_handle.released is True
    assert store.get_state().current_audio_guide is None
    assert store.get_state().selected_attraction_id is None


def test_generation_continues_while_attraction_scrolls_out_and_back():
    async def scenario():
        gate = asyncio.Event()
        pipeline = FakePipeline(gate=gate)
        controller, store, markers, _, _, attractions = _controller(pipeline)

        task = asyncio.ensure_future(controller.select_attraction(attractions[0]))
        await settle()

        scrolled_out = controller.update_attractions(attractions[1:])
        assert scrolled_out.removed == (1,)
        assert 1 not in markers
        assert store.get_state().audio_status is GenerationStatus.GENERATING_AUDIO
        assert store.get_state().selected_attraction_id == 1

        scrolled_back = controller.update_attractions(attractions)
        assert scrolled_back.added == (1,)
        assert markers.get(1).selected is True
        assert markers.get(1).generating is True

        gate.set()
        return store, markers, await task

    store, markers, result = asyncio.run(scenario())

    assert result is not None and result.attraction_id == 1
    assert markers.get(1).generating is False
    assert store.get_state().audio_status is GenerationStatus.READY
    assert store.get_state().current_audio_guide is result


class UncooperativePipeline:
    """Ignores its token and hands back narration after being cancelled."""

    name = "uncooperative"

    def __init__(self, gate: asyncio.Event) -> None:
        self.gate = gate
        self.results: list[AudioGuideResult] = []

    async def generate(self, attraction, on_status, token, language="English"):
        on_status(GenerationStatus.FETCHING_FACTS)
        await self.gate.wait()
        result = AudioGuideResult(
            attraction_id=attraction.id,
            attraction_name=attraction.name,
            audio_handle=store_audio(b"ID3late"),
        )
        self.results.append(result)
        return result


def test_result_returned_after_cancellation_is_released():
    async def scenario():
        gate = asyncio.Event()
        pipeline = UncooperativePipeline(gate)
        controller, store, markers, _, _, attractions = _controller(pipeline)

        task = asyncio.ensure_future(controller.select_attraction(attractions[0]))
        await settle()
        controller.cancel_selection()
        gate.set()
        return pipeline, store, markers, await task

    pipeline, store, markers, returned = asyncio.run(scenario())

    assert returned is None
    assert len(pipeline.results) == 1
    assert pipeline.results[0].audio_handle.released is True
    state = store.get_state()
    assert state.audio_status is GenerationStatus.IDLE
    assert state.current_audio_guide is None
    assert state.selected_attraction_id is None
    assert state.error is None
    assert markers.get(1).generating is False
