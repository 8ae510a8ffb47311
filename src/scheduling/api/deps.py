"""FastAPI dependency injection for the acting user and scheduling services.

Services are built once in the application lifespan and stored on
``app.state``; these helpers fetch them per request.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from src.scheduling.meetings.editor import SchedulingService
from src.scheduling.meetings.repository import MeetingStore


async def get_acting_user(x_user_id: str | None = Header(default=None)) -> str:
    """Id of the user the request acts for, from the ``X-User-ID`` header.

    Raises:
        HTTPException(401): If the header is missing or blank.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-ID header",
        )
    return x_user_id.strip()


def get_scheduling_service(request: Request) -> SchedulingService:
    """Retrieve SchedulingService from app.state, 503 if not available."""
    service = getattr(request.app.state, "scheduling_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduling service not initialized",
        )
    return service


def get_meeting_store(request: Request) -> MeetingStore:
    """Retrieve the MeetingStore from app.state, 503 if not available."""
    store = getattr(request.app.state, "meeting_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Meeting store not initialized",
        )
    return store
