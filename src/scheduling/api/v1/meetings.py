"""REST endpoints for meeting scheduling.

Exposes the scheduling operations to the CRM frontend: timezone and slot
catalogs, start/end/duration reconciliation, instant resolution, advisory
conflict checks, and provider-synced save and cancel.

The acting user comes from the ``X-User-ID`` header. Scheduling errors map
to HTTP statuses in ``_to_http_exception``.
"""

from __future__ import annotations

from datetime import date, datetime, time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.scheduling.api.deps import (
    get_acting_user,
    get_meeting_store,
    get_scheduling_service,
)
from src.scheduling.meetings.clock import TIMEZONES, TimeZoneClock
from src.scheduling.meetings.editor import SchedulingService
from src.scheduling.meetings.errors import (
    DraftValidationError,
    MeetingNotFoundError,
    PartiallySyncedError,
    ProviderError,
    SaveInProgressError,
    SchedulingError,
)
from src.scheduling.meetings.repository import MeetingStore
from src.scheduling.meetings.schemas import (
    DurationMode,
    MEETING_OUTCOMES,
    Meeting,
    MeetingDraft,
    ReconciledTimes,
    RelatedTo,
    TimeEdit,
)
from src.scheduling.meetings.slots import DURATION_OPTIONS, format_slot
from src.scheduling.meetings.status import meeting_status

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/meetings", tags=["meetings"])


# ── Request Schemas ──────────────────────────────────────────────────────────


class ReconcileRequest(BaseModel):
    """Current time fields plus the single edit to apply."""

    times: ReconciledTimes
    edit: TimeEdit


class ResolveRequest(BaseModel):
    """Wall-clock selections to canonicalize."""

    day: date
    start_time: time
    end_time: time
    timezone: str | None = None


class ConflictRequest(ResolveRequest):
    """Proposed interval to check, excluding the meeting being edited."""

    exclude_meeting_id: str | None = None


class SaveRequest(BaseModel):
    """Editor draft submitted for save; the owner is the acting user."""

    session_id: str | None = None
    meeting_id: str | None = None
    subject: str = ""
    description: str | None = None
    day: date | None = None
    start_time: time
    end_time: time
    duration_minutes: int = Field(gt=0, le=1440)
    mode: DurationMode = DurationMode.DURATION
    timezone: str | None = None
    related_to: RelatedTo | None = None
    external_emails: list[str] = Field(default_factory=list)
    outcome: str | None = None
    notes: str | None = None

    def to_draft(self, owner_id: str, clock: TimeZoneClock) -> MeetingDraft:
        data = self.model_dump(exclude_none=True, exclude={"related_to", "timezone"})
        return MeetingDraft(
            owner_id=owner_id,
            related_to=self.related_to,
            timezone=clock.resolve_name(self.timezone),
            **data,
        )


# ── Response Schemas ─────────────────────────────────────────────────────────


class MeetingResponse(BaseModel):
    """Meeting data with the effective status at response time."""

    id: str
    owner_id: str
    subject: str
    description: str | None = None
    start_instant: str
    end_instant: str
    timezone: str
    join_url: str | None = None
    status: str
    related_to: dict | None = None
    participants: list[dict] = Field(default_factory=list)
    outcome: str | None = None
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class ResolveResponse(BaseModel):
    start_instant: str
    end_instant: str
    duration_minutes: int


class ConflictResponse(BaseModel):
    has_conflicts: bool
    summary: str
    conflicts: list[MeetingResponse] = Field(default_factory=list)


class SaveResponse(BaseModel):
    meeting: MeetingResponse
    action: str
    session_id: str


# ── Conversion Helpers ───────────────────────────────────────────────────────


def _meeting_to_response(m: Meeting, now: datetime) -> MeetingResponse:
    """Convert Meeting schema to MeetingResponse."""
    return MeetingResponse(
        id=str(m.id),
        owner_id=m.owner_id,
        subject=m.subject,
        description=m.description,
        start_instant=m.start_instant.isoformat(),
        end_instant=m.end_instant.isoformat(),
        timezone=m.timezone,
        join_url=m.join_url,
        status=meeting_status(m, now).value,
        related_to=m.related_to.model_dump(mode="json") if m.related_to else None,
        participants=[p.model_dump(mode="json") for p in m.participants],
        outcome=m.outcome,
        notes=m.notes,
        created_at=m.created_at.isoformat() if m.created_at else None,
        updated_at=m.updated_at.isoformat() if m.updated_at else None,
    )


def _to_http_exception(exc: SchedulingError) -> HTTPException:
    """Map a scheduling error to the HTTP status the frontend expects."""
    if isinstance(exc, DraftValidationError):
        return HTTPException(
            status_code=422,
            detail={"error": "validation_error", "message": str(exc), "field": exc.field},
        )
    if isinstance(exc, MeetingNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, SaveInProgressError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ProviderError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "provider_error", "operation": exc.operation, "message": str(exc)},
        )
    if isinstance(exc, PartiallySyncedError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "partially_synced",
                "message": str(exc),
                "join_url": exc.join_url,
                "meeting_id": exc.meeting.id,
            },
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "repository_error", "message": str(exc)},
    )


# ── Catalog Endpoints ────────────────────────────────────────────────────────


@router.get("/timezones")
async def list_timezones(
    service: SchedulingService = Depends(get_scheduling_service),
) -> dict:
    """Selectable timezones plus the fallback default."""
    return {
        "default": service.clock.default_timezone,
        "timezones": [
            {"value": tz.value, "label": tz.label, "short": tz.short} for tz in TIMEZONES
        ],
        "durations": list(DURATION_OPTIONS),
        "outcomes": list(MEETING_OUTCOMES),
    }


@router.get("/slots")
async def list_slots(
    day: date | None = Query(default=None, description="Meeting date (YYYY-MM-DD)"),
    tz: str | None = Query(default=None, description="IANA timezone identifier"),
    service: SchedulingService = Depends(get_scheduling_service),
) -> dict:
    """Start times still offerable on ``day`` in ``tz``; all slots when no day."""
    zone = service.clock.resolve_name(tz)
    slots = service.available_slots(day, zone) if day else service.slots.all_slots()
    return {
        "day": day.isoformat() if day else None,
        "timezone": zone,
        "slots": [format_slot(s) for s in slots],
    }


# ── Time Endpoints ───────────────────────────────────────────────────────────


@router.post("/reconcile", response_model=ReconciledTimes)
async def reconcile_times(
    body: ReconcileRequest,
    service: SchedulingService = Depends(get_scheduling_service),
) -> ReconciledTimes:
    """Apply one start/end/duration edit and return the re-derived fields."""
    return service.reconcile(body.times, body.edit)


@router.post("/resolve", response_model=ResolveResponse)
async def resolve_times(
    body: ResolveRequest,
    service: SchedulingService = Depends(get_scheduling_service),
) -> ResolveResponse:
    """Canonical UTC instants for wall-clock selections."""
    instants = service.resolve_instants(body.day, body.start_time, body.end_time, body.timezone)
    return ResolveResponse(
        start_instant=instants.start_instant.isoformat(),
        end_instant=instants.end_instant.isoformat(),
        duration_minutes=instants.duration_minutes,
    )


@router.post("/conflicts", response_model=ConflictResponse)
async def check_conflicts(
    body: ConflictRequest,
    user_id: str = Depends(get_acting_user),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ConflictResponse:
    """Advisory overlap check against the acting user's meetings."""
    instants = service.resolve_instants(body.day, body.start_time, body.end_time, body.timezone)
    try:
        warning = await service.detect_conflicts(
            user_id,
            instants.start_instant,
            instants.end_instant,
            body.exclude_meeting_id,
        )
    except SchedulingError as exc:
        raise _to_http_exception(exc) from exc

    now = service.clock.utcnow()
    return ConflictResponse(
        has_conflicts=warning.has_conflicts,
        summary=warning.summary(),
        conflicts=[_meeting_to_response(m, now) for m in warning.conflicts],
    )


# ── Sync Endpoints ───────────────────────────────────────────────────────────


@router.post("/save", response_model=SaveResponse)
async def save_meeting(
    body: SaveRequest,
    user_id: str = Depends(get_acting_user),
    service: SchedulingService = Depends(get_scheduling_service),
) -> SaveResponse:
    """Validate, sync with the meeting provider, and persist a draft."""
    draft = body.to_draft(user_id, service.clock)
    try:
        result = await service.save(draft)
    except SchedulingError as exc:
        logger.warning(
            "meetings_api.save_failed",
            session_id=draft.session_id,
            meeting_id=draft.meeting_id,
            error=type(exc).__name__,
        )
        raise _to_http_exception(exc) from exc

    return SaveResponse(
        meeting=_meeting_to_response(result.meeting, service.clock.utcnow()),
        action=result.action.value,
        session_id=draft.session_id,
    )


@router.post("/{meeting_id}/cancel", response_model=MeetingResponse)
async def cancel_meeting(
    meeting_id: str,
    user_id: str = Depends(get_acting_user),
    service: SchedulingService = Depends(get_scheduling_service),
    store: MeetingStore = Depends(get_meeting_store),
) -> MeetingResponse:
    """Cancel the provider meeting, then mark the record cancelled."""
    try:
        existing = await store.find_by_id(meeting_id)
        if existing is None or existing.owner_id != user_id:
            raise MeetingNotFoundError(meeting_id)
        meeting = await service.cancel(meeting_id)
    except SchedulingError as exc:
        raise _to_http_exception(exc) from exc
    return _meeting_to_response(meeting, service.clock.utcnow())


@router.get("/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(
    meeting_id: str,
    user_id: str = Depends(get_acting_user),
    service: SchedulingService = Depends(get_scheduling_service),
    store: MeetingStore = Depends(get_meeting_store),
) -> MeetingResponse:
    """Get meeting details by ID."""
    try:
        meeting = await store.find_by_id(meeting_id)
    except SchedulingError as exc:
        raise _to_http_exception(exc) from exc
    if meeting is None or meeting.owner_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Meeting not found: {meeting_id}",
        )
    return _meeting_to_response(meeting, service.clock.utcnow())
