"""Service layer helpers for external integrations and client orchestration."""

from .attractions import AttractionLoader, Debouncer
from .audio_api import AudioApiClient, RemoteAudio
from .audio_storage import AudioHandle, StorageError, store_audio
from .audio_unlock import AudioUnlockGate
from .cancellation import CancellationScope, CancellationToken, OperationCancelled
from .collaborators import (
    BufferedAudioOutput,
    InMemoryMarkerLayer,
    LoggingNotifier,
)
from .errors import (
    ApiError,
    AttractionSearchError,
    GenerationFailed,
    RateLimitedError,
    SearchTimeoutError,
    ServiceError,
    normalize_error,
)
from .geocoding import Location, NominatimGeocoder
from .llm_client import BedrockLlmClient, LlmInvocationError
from .markers import MarkerReconciler, ReconcileResult
from .overpass import OverpassClient
from .tts import PollyTtsService, SynthesisError, SynthesisResult

__all__ = [
    "ApiError",
    "AttractionLoader",
    "AttractionSearchError",
    "AudioApiClient",
    "AudioHandle",
    "AudioUnlockGate",
    "BedrockLlmClient",
    "BufferedAudioOutput",
    "CancellationScope",
    "CancellationToken",
    "Debouncer",
    "GenerationFailed",
    "InMemoryMarkerLayer",
    "LlmInvocationError",
    "Location",
    "LoggingNotifier",
    "MarkerReconciler",
    "NominatimGeocoder",
    "OperationCancelled",
    "OverpassClient",
    "PollyTtsService",
    "RateLimitedError",
    "ReconcileResult",
    "RemoteAudio",
    "SearchTimeoutError",
    "ServiceError",
    "StorageError",
    "SynthesisError",
    "SynthesisResult",
    "normalize_error",
    "store_audio",
]
