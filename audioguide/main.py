"""Application entry point and FastAPI app factory."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from audioguide.config.settings import settings
from audioguide.controllers import generation, guide
from audioguide.middleware import StructuredLoggingMiddleware, TelemetryMiddleware
from audioguide.pipelines.generation import StagedGenerationPipeline
from audioguide.services.geocoding import NominatimGeocoder
from audioguide.services.llm_client import BedrockLlmClient
from audioguide.services.session import GuideSession
from audioguide.services.tts import PollyTtsService

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Stream application logs to stdout and a rotating file."""

    logging.getLogger().handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )

    log_path = Path(settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=1_000_000,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    middleware_logger = logging.getLogger("audioguide.middleware.structured")
    middleware_logger.handlers.clear()
    middleware_stdout = logging.StreamHandler(sys.stdout)
    middleware_stdout.setFormatter(logging.Formatter("%(message)s"))
    middleware_logger.addHandler(middleware_stdout)
    middleware_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    middleware_logger.propagate = False

    pipeline_log_path = Path(settings.pipeline_log_file)
    pipeline_log_path.parent.mkdir(parents=True, exist_ok=True)
    pipeline_handler = RotatingFileHandler(
        pipeline_log_path,
        maxBytes=500_000,
        backupCount=5,
        encoding="utf-8",
    )
    pipeline_handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    )
    pipeline_logger = logging.getLogger("audioguide.pipelines.generation")
    pipeline_logger.handlers.clear()
    pipeline_logger.addHandler(pipeline_handler)
    pipeline_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    noisy_loggers = [
        "botocore",
        "boto3",
        "urllib3",
        "httpx",
        "httpcore",
    ]
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        description="Map-based audio guide: attraction discovery and narrated tours",
    )

    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        expose_headers=["X-Location-Warning"],
    )

    app.include_router(guide.router)
    app.include_router(generation.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Root endpoint."""

        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "status": "operational",
        }

    @app.get("/health", include_in_schema=False)
    async def health_check() -> dict[str, str]:
        """Health check endpoint; includes the generation backend in remote mode."""

        payload = {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }
        session = getattr(app.state, "guide_session", None)
        if session is not None:
            backend_ok = await session.check_backend()
            if backend_ok is not None:
                payload["backend"] = "healthy" if backend_ok else "unreachable"
        return payload

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose application metrics for Prometheus scraping."""

        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        content = {"detail": exc.detail}
        code = getattr(exc, "code", None)
        if code:
            content["code"] = code
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
        return JSONResponse(
            status_code=400,
            content={"detail": "; ".join(messages) or "Invalid request"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    @app.on_event("startup")
    async def startup_event() -> None:
        if getattr(app.state, "guide_session", None) is None:
            app.state.guide_session = GuideSession.create_default(settings)
        if getattr(app.state, "generation_pipeline", None) is None:
            geocoder = NominatimGeocoder(config=settings.nominatim)
            app.state.generation_geocoder = geocoder
            app.state.generation_pipeline = StagedGenerationPipeline(
                BedrockLlmClient(settings.bedrock),
                PollyTtsService(settings.polly),
                geocoder,
            )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        session = getattr(app.state, "guide_session", None)
        if session is not None:
            await session.aclose()
            app.state.guide_session = None
        geocoder = getattr(app.state, "generation_geocoder", None)
        if geocoder is not None:
            await geocoder.aclose()
            app.state.generation_geocoder = None

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "audioguide.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
