"""Attraction selection: single-flight generation with idempotent re-selection."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Iterable, Optional

from audioguide.config.settings import settings
from audioguide.domain.models import (
    AUDIO_READY_STATUSES,
    Attraction,
    GenerationStatus,
)
from audioguide.pipelines.generation.flow import GenerationPipeline
from audioguide.pipelines.generation.types import (
    AudioGuideResult,
    Cancelled,
    Completed,
    Failed,
    GenerationOutcome,
)
from audioguide.state.store import AppState, StateStore
from audioguide.telemetry import record_generation

from .audio_unlock import AudioUnlockGate
from .cancellation import CancellationScope, CancellationToken, OperationCancelled
from .collaborators import AudioOutput, MarkerClickHandler, MarkerLayer, UiNotifier
from .errors import GenerationFailed, normalize_error
from .markers import MarkerReconciler, ReconcileResult

logger = logging.getLogger(__name__)

_PLAYBACK_STATUSES = frozenset(
    {GenerationStatus.READY, GenerationStatus.PLAYING, GenerationStatus.PAUSED}
)


class PlaybackError(RuntimeError):
    """Raised when a playback transition is requested without narration."""


class SelectionController:
    """Owns the selected attraction, its generation and the resulting narration.

    Preparing a new selection (cancelling the previous generation, releasing
    its audio, resetting status) and starting the pipeline happen without an
    intermediate ``await``, so at most one pipeline is ever active.
    """

    def __init__(
        self,
        store: StateStore,
        pipeline: GenerationPipeline,
        markers: MarkerLayer,
        *,
        notifier: UiNotifier,
        audio_output: AudioOutput,
        unlock_gate: AudioUnlockGate | None = None,
        soft_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._pipeline_name = getattr(pipeline, "name", type(pipeline).__name__)
        self._markers = markers
        self._reconciler = MarkerReconciler(markers)
        self._notifier = notifier
        self._audio_output = audio_output
        self._unlock_gate = unlock_gate or AudioUnlockGate(audio_output.play_silence)
        self._soft_timeout = (
            settings.generation.soft_timeout_seconds if soft_timeout is None else soft_timeout
        )
        self._scope = CancellationScope("generation")
        self._soft_timer: Optional[asyncio.TimerHandle] = None

    @property
    def unlock_gate(self) -> AudioUnlockGate:
        return self._unlock_gate

    @property
    def in_flight(self) -> bool:
        return self._scope.current is not None and not self._scope.current.cancelled

    # Selection ------------------------------------------------------------

    async def select_attraction(self, attraction: Attraction) -> Optional[AudioGuideResult]:
        """Select ``attraction`` and generate its narration.

        Returns the narration, the existing one when the attraction is already
        ready/playing/paused, or ``None`` when the generation was superseded or
        cancelled. Real failures are written to the store and re-raised as
        ``GenerationFailed``.
        """

        self._unlock_gate.trigger()

        state = self._store.get_state()
        existing = state.current_audio_guide
        if (
            state.selected_attraction_id == attraction.id
            and existing is not None
            and state.audio_status in AUDIO_READY_STATUSES
        ):
            logger.debug("Attraction %s already has narration; reusing it", attraction.id)
            return existing

        self._drop_current(state, selected_attraction_id=attraction.id)
        token = self._scope.issue()
        self._markers.set_selected(attraction.id, True)
        self._markers.set_generating(attraction.id, True)
        self._arm_soft_timeout(token)

        language = self._store.get_state().selected_language
        logger.info(
            "Generating narration for %s (%s) in %s", attraction.name, attraction.id, language
        )
        try:
            outcome = await self._run_pipeline(attraction, token, language)
        finally:
            if self._scope.is_current(token):
                self._scope.release(token)
                self._disarm_soft_timeout()
                self._markers.set_generating(attraction.id, False)

        if isinstance(outcome, Completed):
            result = outcome.result
            self._store.set_audio_status(
                GenerationStatus.READY, current_audio_guide=result, error=None
            )
            if result.warning:
                self._notifier.show_warning(result.warning)
            return result

        if isinstance(outcome, Failed):
            logger.error(
                "Narration failed for %s: %s (%s)",
                attraction.id,
                outcome.error.message,
                outcome.error.kind.value,
            )
            self._store.set_audio_status(GenerationStatus.ERROR, error=outcome.error)
            raise GenerationFailed(outcome.error, outcome.cause) from outcome.cause

        logger.debug("Narration for %s cancelled (%s)", attraction.id, outcome.reason)
        return None

    def cancel_selection(self) -> None:
        """Abort any generation, release narration and clear the selection."""

        if self._scope.cancel():
            logger.info("Cancelled in-flight narration")
        self._drop_current(self._store.get_state(), selected_attraction_id=None)
        self._notifier.hide_player()

    async def _run_pipeline(
        self, attraction: Attraction, token: CancellationToken, language: str
    ) -> GenerationOutcome:
        started = time.perf_counter()

        def on_status(status: GenerationStatus) -> None:
            if self._scope.is_current(token):
                self._store.set_audio_status(status)

        outcome: GenerationOutcome
        try:
            result = await self._pipeline.generate(attraction, on_status, token, language)
        except OperationCancelled:
            outcome = Cancelled()
        except Exception as exc:
            if token.cancelled:
                outcome = Cancelled()
            else:
                outcome = Failed(normalize_error(exc), exc)
        else:
            if token.cancelled:
                result.release()
                outcome = Cancelled()
            else:
                outcome = Completed(result)

        duration = time.perf_counter() - started if isinstance(outcome, Completed) else None
        record_generation(self._pipeline_name, type(outcome).__name__.lower(), duration)
        return outcome

    def _drop_current(self, state: AppState, **changes: Any) -> None:
        previous_id = state.selected_attraction_id
        if previous_id is not None:
            self._markers.set_selected(previous_id, False)
            self._markers.set_generating(previous_id, False)
        self._scope.cancel()
        self._disarm_soft_timeout()
        self._audio_output.stop()

        guide = state.current_audio_guide
        if guide is not None:
            guide.release()

        error = state.error
        if error is not None and error.source == "generation":
            error = None
        self._store.set_audio_status(
            GenerationStatus.IDLE, current_audio_guide=None, error=error, **changes
        )

    # Soft timeout ---------------------------------------------------------

    def _arm_soft_timeout(self, token: CancellationToken) -> None:
        self._disarm_soft_timeout()
        if self._soft_timeout <= 0:
            return
        loop = asyncio.get_running_loop()
        self._soft_timer = loop.call_later(self._soft_timeout, self._on_soft_timeout, token)

    def _disarm_soft_timeout(self) -> None:
        if self._soft_timer is not None:
            self._soft_timer.cancel()
            self._soft_timer = None

    def _on_soft_timeout(self, token: CancellationToken) -> None:
        self._soft_timer = None
        if self._scope.is_current(token):
            self._notifier.show_timeout_notice()

    # Attractions ----------------------------------------------------------

    def update_attractions(
        self,
        attractions: Iterable[Attraction],
        on_click: MarkerClickHandler | None = None,
    ) -> ReconcileResult:
        """Reconcile markers against ``attractions`` and store the new list."""

        attractions = list(attractions)
        state = self._store.get_state()
        selected_id = state.selected_attraction_id
        result = self._reconciler.reconcile(
            state.attractions,
            attractions,
            selected_id=selected_id,
            on_click=on_click,
        )
        if selected_id in result.added and self.in_flight:
            self._markers.set_generating(selected_id, True)
        self._store.set_state(attractions=attractions)
        return result

    def set_attractions_loading(self, loading: bool) -> None:
        self._store.set_state(is_loading_attractions=loading)

    # Playback -------------------------------------------------------------

    def set_playback(self, status: GenerationStatus) -> AppState:
        """Move between ready, playing and paused for the current narration."""

        if status not in _PLAYBACK_STATUSES:
            raise ValueError(f"{status.value} is not a playback status")
        state = self._store.get_state()
        if state.current_audio_guide is None or state.audio_status not in AUDIO_READY_STATUSES:
            raise PlaybackError("No narration is ready for playback")
        if status is GenerationStatus.READY:
            self._audio_output.stop()
        return self._store.set_audio_status(status)

    def close(self) -> None:
        """Cancel and release everything held by the controller."""

        self._scope.cancel()
        self._drop_current(self._store.get_state(), selected_attraction_id=None)


__all__ = ["PlaybackError", "SelectionController"]
