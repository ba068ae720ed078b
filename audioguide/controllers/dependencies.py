"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from audioguide.pipelines.generation.flow import GenerationPipeline
from audioguide.services.session import GuideSession


def get_guide_session(request: Request) -> GuideSession:
    """Return the guide session created at application startup."""

    session = getattr(request.app.state, "guide_session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Guide session is not ready",
        )
    return session


def get_generation_pipeline(request: Request) -> GenerationPipeline:
    """Return the server-side pipeline behind ``/generate-audio``."""

    pipeline = getattr(request.app.state, "generation_pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Generation service is not ready",
        )
    return pipeline


GuideSessionDep = Annotated[GuideSession, Depends(get_guide_session)]
GenerationPipelineDep = Annotated[GenerationPipeline, Depends(get_generation_pipeline)]


__all__ = [
    "get_guide_session",
    "get_generation_pipeline",
    "GuideSessionDep",
    "GenerationPipelineDep",
]
