"""Mutable application snapshot with synchronous subscriber notification."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from audioguide.domain.models import (
    AUDIO_READY_STATUSES,
    GENERATING_STATUSES,
    Attraction,
    AttractionId,
    ErrorInfo,
    GenerationStatus,
    is_valid_transition,
)
from audioguide.telemetry import record_status_anomaly

if TYPE_CHECKING:
    from audioguide.pipelines.generation.types import AudioGuideResult

logger = logging.getLogger(__name__)

Listener = Callable[["AppState"], None]


@dataclass(frozen=True)
class AppState:
    """Immutable snapshot handed to subscribers and returned by ``get_state``."""

    attractions: Tuple[Attraction, ...] = ()
    selected_attraction_id: Optional[AttractionId] = None
    current_audio_guide: Optional["AudioGuideResult"] = None
    audio_status: GenerationStatus = GenerationStatus.IDLE
    is_loading_attractions: bool = False
    error: Optional[ErrorInfo] = None
    selected_language: str = "English"


@dataclass
class _Subscription:
    listener: Listener
    active: bool = field(default=True)


class StateStore:
    """Single mutation entry point for the shared ``AppState``.

    ``set_state`` notifies every subscriber before it returns, in
    registration order. Listeners added while a notification pass is running
    only see the next pass; listeners removed mid-pass are skipped for the
    rest of it.
    """

    def __init__(self, initial: AppState | None = None) -> None:
        self._state = initial or AppState()
        self._subscriptions: List[_Subscription] = []

    def get_state(self) -> AppState:
        return self._state

    def set_state(self, **changes: Any) -> AppState:
        if "attractions" in changes:
            changes["attractions"] = tuple(changes["attractions"])
        self._state = replace(self._state, **changes)
        self._notify(self._state)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        subscription = _Subscription(listener)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    def _notify(self, snapshot: AppState) -> None:
        for subscription in tuple(self._subscriptions):
            if subscription.active:
                subscription.listener(snapshot)

    # Audio status helpers -------------------------------------------------

    def set_audio_status(self, status: GenerationStatus, **changes: Any) -> AppState:
        """Write a new status (plus any other fields), logging transitions missing from the table."""

        current = self._state.audio_status
        if not is_valid_transition(current, status):
            logger.warning(
                "Invalid status transition: %s -> %s", current.value, status.value
            )
            record_status_anomaly(current.value, status.value)
        return self.set_state(audio_status=status, **changes)

    def reset_audio_state(self) -> AppState:
        return self.set_state(
            current_audio_guide=None,
            audio_status=GenerationStatus.IDLE,
            error=None,
        )

    def is_generating(self) -> bool:
        return self._state.audio_status in GENERATING_STATUSES

    def is_audio_ready(self) -> bool:
        return self._state.audio_status in AUDIO_READY_STATUSES

    def get_selected_attraction(self) -> Optional[Attraction]:
        selected_id = self._state.selected_attraction_id
        if selected_id is None:
            return None
        for attraction in self._state.attractions:
            if attraction.id == selected_id:
                return attraction
        return None


__all__ = ["AppState", "Listener", "StateStore"]
