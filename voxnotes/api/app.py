"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, and the health endpoint. The module-level ``app`` instance
allows ``uvicorn voxnotes.api.app:app --reload``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voxnotes.api.middleware.error_handler import register_error_handlers
from voxnotes.api.routes import annotations, capture, session
from voxnotes.core.config import Settings, get_settings
from voxnotes.core.logging import setup_logging
from voxnotes.core.models import HealthResponse
from voxnotes.services.audio.backends import CaptureBackend, create_backend
from voxnotes.services.audio.capture import AudioCaptureSession
from voxnotes.services.coordinator import SessionCoordinator
from voxnotes.services.storage.medium import create_medium
from voxnotes.services.storage.store import AnnotationStore

logger = logging.getLogger(__name__)


def build_services(
    settings: Settings,
    backend: CaptureBackend | None = None,
) -> tuple[SessionCoordinator, AudioCaptureSession]:
    """Wire store, coordinator and capture session from *settings*.

    Finished recordings flow to the coordinator; a coordinator reset drops
    the capture session's last recording.
    """
    medium = create_medium(
        settings.storage_backend,
        directory=settings.storage_dir,
        url=settings.database_url,
    )
    store = AnnotationStore(medium, key=settings.storage_key)

    capture_session: AudioCaptureSession | None = None

    def _discard_recording() -> None:
        if capture_session is not None:
            capture_session.discard()

    coordinator = SessionCoordinator(store, on_reset=_discard_recording)
    if backend is None:
        backend = create_backend(
            settings.capture_backend,
            sample_rate=settings.capture_sample_rate,
            channels=settings.capture_channels,
            device_name=settings.capture_device or None,
        )
    capture_session = AudioCaptureSession(
        backend,
        on_complete=coordinator.on_recording_complete,
        mime_candidates=settings.capture_mime_types,
    )
    return coordinator, capture_session


def create_app(
    settings: Settings | None = None,
    backend: CaptureBackend | None = None,
) -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Args:
        settings: Optional settings override (defaults to ``get_settings()``).
        backend: Optional capture backend override (used in tests).
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    coordinator, capture_session = build_services(settings, backend)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        # Never leave the input device open after shutdown
        capture_session.close()
        logger.info("Capture session closed")

    app = FastAPI(
        title="VoxNotes",
        description="Record audio, keep time-aligned transcripts, "
        "and save them as annotated contact notes.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.coordinator = coordinator
    app.state.capture = capture_session

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(timestamp=datetime.now(UTC))

    # -- REST routes --
    app.include_router(annotations.router, prefix="/api/v1")
    app.include_router(session.router, prefix="/api/v1")
    app.include_router(capture.router, prefix="/api/v1")

    return app


app = create_app()
