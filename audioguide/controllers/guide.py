"""Guide session endpoints: viewport loading, selection, playback and language."""

import asyncio
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import Response, StreamingResponse

from audioguide.controllers.dependencies import GuideSessionDep
from audioguide.domain.models import GenerationStatus
from audioguide.services.audio_storage import StorageError
from audioguide.services.selection import PlaybackError
from audioguide.services.session import GuideSession
from audioguide.state.store import AppState
from audioguide.views import (
    AcceptedResponse,
    GuideStateResponse,
    LanguageRequest,
    LanguageResponse,
    PlaybackRequest,
    SelectionRequest,
    ViewportRequest,
)

router = APIRouter(prefix="/guide", tags=["guide"])

logger = logging.getLogger(__name__)

KEEP_ALIVE_SECONDS = 15.0


def _state_view(session: GuideSession, state: Optional[AppState] = None) -> GuideStateResponse:
    snapshot = getattr(session.markers, "snapshot", None)
    markers = snapshot() if snapshot is not None else None
    return GuideStateResponse.from_state(state or session.get_state(), markers)


@router.get("/state", response_model=GuideStateResponse)
async def get_state(session: GuideSessionDep) -> GuideStateResponse:
    return _state_view(session)


@router.post("/viewport", response_model=AcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def request_viewport(body: ViewportRequest, session: GuideSessionDep) -> AcceptedResponse:
    """Schedule a debounced attraction load for the viewport."""

    session.request_viewport(body.to_bounds())
    return AcceptedResponse(message="Viewport load scheduled")


@router.post("/viewport/load", response_model=GuideStateResponse)
async def load_viewport(body: ViewportRequest, session: GuideSessionDep) -> GuideStateResponse:
    """Load attractions for the viewport immediately and return the new state."""

    await session.load_viewport(body.to_bounds())
    return _state_view(session)


@router.post("/selection", response_model=AcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def select_attraction(body: SelectionRequest, session: GuideSessionDep) -> AcceptedResponse:
    """Start generating narration for a loaded attraction."""

    attraction = session.find_attraction(body.attraction_id)
    if attraction is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Attraction {body.attraction_id} is not loaded",
        )
    session.start_selection(attraction)
    return AcceptedResponse(message=f"Selected {attraction.name}")


@router.delete("/selection", response_model=GuideStateResponse)
async def cancel_selection(session: GuideSessionDep) -> GuideStateResponse:
    session.cancel_selection()
    return _state_view(session)


@router.put("/playback", response_model=GuideStateResponse)
async def set_playback(body: PlaybackRequest, session: GuideSessionDep) -> GuideStateResponse:
    try:
        state = session.set_playback(GenerationStatus(body.status))
    except PlaybackError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _state_view(session, state)


@router.get("/audio", response_class=Response)
async def get_audio(session: GuideSessionDep) -> Response:
    """Return the current narration bytes."""

    guide = session.get_state().current_audio_guide
    if guide is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No narration available")
    try:
        audio_bytes = guide.audio_handle.read_bytes()
    except (StorageError, OSError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Narration is no longer available"
        ) from exc
    return Response(content=audio_bytes, media_type=guide.audio_handle.media_type)


@router.get("/language", response_model=LanguageResponse)
async def get_language(session: GuideSessionDep) -> LanguageResponse:
    return LanguageResponse(language=session.get_selected_language())


@router.put("/language", response_model=LanguageResponse)
async def set_language(body: LanguageRequest, session: GuideSessionDep) -> LanguageResponse:
    try:
        language = session.set_selected_language(body.language)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return LanguageResponse(language=language)


@router.get("/events")
async def stream_events(
    request: Request,
    session: GuideSessionDep,
    limit: Optional[int] = Query(default=None, ge=1),
) -> StreamingResponse:
    """Server-sent state snapshots, starting with the current one."""

    async def event_stream() -> AsyncIterator[str]:
        queue: "asyncio.Queue[AppState]" = asyncio.Queue()
        unsubscribe = session.subscribe(queue.put_nowait)
        sent = 0
        try:
            state: Optional[AppState] = session.get_state()
            while limit is None or sent < limit:
                if state is not None:
                    payload = _state_view(session, state).model_dump_json()
                    yield f"event: state\ndata: {payload}\n\n"
                    sent += 1
                    state = None
                    continue
                if await request.is_disconnected():
                    break
                try:
                    state = await asyncio.wait_for(queue.get(), timeout=KEEP_ALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
        finally:
            unsubscribe()
            logger.debug("State stream closed after %d events", sent)

    return StreamingResponse(event_stream(), media_type="text/event-stream")
