"""Per-user guide session: the surface the map UI (and the HTTP routes) talk to."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, List, Optional, Set

from audioguide.config.settings import Settings, settings as default_settings
from audioguide.domain.models import Attraction, Bounds, GenerationStatus
from audioguide.pipelines.generation.flow import (
    GenerationPipeline,
    RemoteGenerationPipeline,
    StagedGenerationPipeline,
)
from audioguide.pipelines.generation.types import AudioGuideResult
from audioguide.state.preferences import LanguagePreferences
from audioguide.state.store import AppState, Listener, StateStore

from .attractions import AttractionLoader, AttractionSearch, Debouncer
from .audio_api import AudioApiClient
from .collaborators import (
    AudioOutput,
    BufferedAudioOutput,
    InMemoryMarkerLayer,
    LoggingNotifier,
    MarkerLayer,
    UiNotifier,
)
from .errors import GenerationFailed, normalize_error
from .geocoding import NominatimGeocoder
from .llm_client import BedrockLlmClient
from .markers import ReconcileResult
from .overpass import OverpassClient
from .selection import SelectionController
from .tts import PollyTtsService

logger = logging.getLogger(__name__)


class GuideSession:
    """Wire the store, loader and selection controller into one facade."""

    def __init__(
        self,
        search: AttractionSearch,
        pipeline: GenerationPipeline,
        *,
        markers: MarkerLayer | None = None,
        notifier: UiNotifier | None = None,
        audio_output: AudioOutput | None = None,
        preferences: LanguagePreferences | None = None,
        config: Settings | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        resources: Iterable[Any] = (),
        backend: AudioApiClient | None = None,
    ) -> None:
        config = config or default_settings
        self.markers = markers or InMemoryMarkerLayer()
        self.notifier = notifier or LoggingNotifier()
        self.audio_output = audio_output or BufferedAudioOutput()
        self._preferences = preferences or LanguagePreferences(config.preferences)
        self._max_attractions = config.loader.max_attractions

        self.store = StateStore(AppState(selected_language=self._preferences.load()))
        self.loader = AttractionLoader(search, config=config.loader, sleep=sleep)
        self.controller = SelectionController(
            self.store,
            pipeline,
            self.markers,
            notifier=self.notifier,
            audio_output=self.audio_output,
            soft_timeout=config.generation.soft_timeout_seconds,
        )
        self._debounced_load = Debouncer(self.load_viewport, config.loader.debounce_seconds)
        self._resources = list(resources)
        self._backend = backend
        self._tasks: Set["asyncio.Task[Any]"] = set()

    @classmethod
    def create_default(cls, config: Settings | None = None) -> "GuideSession":
        """Build a session backed by the real Overpass and generation services."""

        config = config or default_settings
        search = OverpassClient(config=config.overpass)
        resources: List[Any] = [search]
        backend: AudioApiClient | None = None
        pipeline: GenerationPipeline
        if config.generation.mode == "remote":
            backend = AudioApiClient(config=config.generation)
            resources.append(backend)
            pipeline = RemoteGenerationPipeline(backend)
        else:
            geocoder = NominatimGeocoder(config=config.nominatim)
            resources.append(geocoder)
            pipeline = StagedGenerationPipeline(
                BedrockLlmClient(config.bedrock),
                PollyTtsService(config.polly),
                geocoder,
            )
        logger.info("Guide session using %s generation", pipeline.name)
        return cls(search, pipeline, config=config, resources=resources, backend=backend)

    # State ----------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def get_state(self) -> AppState:
        return self.store.get_state()

    def is_generating(self) -> bool:
        return self.store.is_generating()

    def is_audio_ready(self) -> bool:
        return self.store.is_audio_ready()

    def get_selected_attraction(self) -> Optional[Attraction]:
        return self.store.get_selected_attraction()

    def find_attraction(self, attraction_id: Any) -> Optional[Attraction]:
        for attraction in self.store.get_state().attractions:
            if attraction.id == attraction_id or str(attraction.id) == str(attraction_id):
                return attraction
        return None

    async def check_backend(self) -> Optional[bool]:
        """Ping the generation backend; ``None`` when generation runs locally."""

        if self._backend is None:
            return None
        return await self._backend.check_health()

    # Selection ------------------------------------------------------------

    async def select_attraction(self, attraction: Attraction) -> Optional[AudioGuideResult]:
        return await self.controller.select_attraction(attraction)

    def start_selection(self, attraction: Attraction) -> "asyncio.Task[Optional[AudioGuideResult]]":
        """Run ``select_attraction`` in the background, as a marker click does."""

        task = asyncio.ensure_future(self._select_in_background(attraction))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _select_in_background(self, attraction: Attraction) -> Optional[AudioGuideResult]:
        try:
            return await self.controller.select_attraction(attraction)
        except GenerationFailed as exc:
            # Already recorded in AppState.error for subscribers.
            logger.debug("Background selection of %s failed: %s", attraction.id, exc)
            return None

    def cancel_selection(self) -> None:
        self.controller.cancel_selection()

    def set_playback(self, status: GenerationStatus) -> AppState:
        return self.controller.set_playback(status)

    # Attractions ----------------------------------------------------------

    def update_attractions(
        self,
        attractions: Iterable[Attraction],
        on_click: Callable[[Attraction], Any] | None = None,
    ) -> ReconcileResult:
        return self.controller.update_attractions(attractions, on_click or self.start_selection)

    def set_attractions_loading(self, loading: bool) -> None:
        self.controller.set_attractions_loading(loading)

    def request_viewport(self, bounds: Bounds) -> None:
        """Debounced viewport load; only the last bounds in a burst are fetched."""

        self._debounced_load(bounds)

    async def load_viewport(self, bounds: Bounds) -> None:
        await self.loader.load(
            bounds,
            on_start=lambda: self.set_attractions_loading(True),
            on_loaded=self._handle_loaded,
            on_error=self._handle_load_error,
        )

    def _handle_loaded(self, attractions: List[Attraction]) -> None:
        capped = attractions[: self._max_attractions]
        if len(attractions) > len(capped):
            logger.info("Showing first %d of %d attractions", len(capped), len(attractions))
        self.update_attractions(capped)
        changes: dict[str, Any] = {"is_loading_attractions": False}
        error = self.store.get_state().error
        if error is not None and error.source == "attractions":
            changes["error"] = None
        self.store.set_state(**changes)

    def _handle_load_error(self, exc: Exception) -> None:
        info = normalize_error(exc, source="attractions")
        logger.warning("Attraction load failed (%s): %s", info.kind.value, info.message)
        self.store.set_state(is_loading_attractions=False, error=info)

    # Language -------------------------------------------------------------

    def get_selected_language(self) -> str:
        return self.store.get_state().selected_language

    def set_selected_language(self, language: str) -> str:
        language = language.strip()
        if not language:
            raise ValueError("Language must not be empty")
        self._preferences.save(language)
        self.store.set_state(selected_language=language)
        return language

    # Teardown -------------------------------------------------------------

    async def aclose(self) -> None:
        self._debounced_load.cancel()
        self.loader.cancel()
        self.controller.close()
        for task in tuple(self._tasks):
            task.cancel()
        await self._debounced_load.drain()
        if self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)
        for resource in self._resources:
            await resource.aclose()
        logger.info("Guide session closed")


__all__ = ["GuideSession"]
