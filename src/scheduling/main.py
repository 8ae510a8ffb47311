"""FastAPI application factory.

Creates the app with logging and metrics middleware, lifespan wiring of
the scheduling services onto ``app.state``, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.responses import Response

from src.scheduling.config import Settings, get_settings
from src.scheduling.core.database import close_db, get_session, init_db
from src.scheduling.core.monitoring import MetricsMiddleware, get_metrics_response
from src.scheduling.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.scheduling.api.v1.router import router as v1_router
from src.scheduling.meetings.clock import TimeZoneClock
from src.scheduling.meetings.conflicts import ConflictDetector
from src.scheduling.meetings.coordinator import MeetingSyncCoordinator
from src.scheduling.meetings.editor import SchedulingService
from src.scheduling.meetings.participants import RecordDirectory
from src.scheduling.meetings.provider import HttpMeetingProvider, MeetingProvider
from src.scheduling.meetings.repository import MeetingRepository, MeetingStore
from src.scheduling.meetings.slots import SlotCatalog


def build_scheduling_service(
    settings: Settings,
    store: MeetingStore,
    provider: MeetingProvider,
    clock: TimeZoneClock | None = None,
    directory: RecordDirectory | None = None,
) -> SchedulingService:
    """Wire clock, slot catalog, conflict detector, and coordinator together."""
    clock = clock or TimeZoneClock(settings.DEFAULT_TIMEZONE)
    return SchedulingService(
        clock=clock,
        slots=SlotCatalog(clock, settings.SLOT_GRANULARITY_MINUTES),
        detector=ConflictDetector(store),
        coordinator=MeetingSyncCoordinator(store, provider, clock, directory),
        default_duration_minutes=settings.DEFAULT_DURATION_MINUTES,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB and scheduling services, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    store = MeetingRepository(session_factory=get_session)
    provider = HttpMeetingProvider(
        base_url=settings.MEETING_PROVIDER_URL,
        token=settings.MEETING_PROVIDER_TOKEN,
        timeout=settings.MEETING_PROVIDER_TIMEOUT,
    )
    if not settings.provider_configured:
        log.warning("scheduling.provider_not_configured")

    app.state.meeting_store = store
    app.state.scheduling_service = build_scheduling_service(settings, store, provider)
    log.info(
        "scheduling.initialized",
        default_timezone=settings.DEFAULT_TIMEZONE,
        environment=settings.ENVIRONMENT.value,
    )

    yield

    app.state.scheduling_service = None
    app.state.meeting_store = None
    await close_db()
    log.info("scheduling.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Meeting Scheduling API",
        version="0.1.0",
        description="Meeting time resolution, conflict checks, and provider sync",
        lifespan=lifespan,
    )

    # Last added is outermost: metrics wrap the request logger
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.include_router(v1_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
