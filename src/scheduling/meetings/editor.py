"""Scheduling service and per-session meeting editor.

SchedulingService bundles the stateless operations the UI layer calls
(resolve instants, reconcile, available slots, conflict detection, save,
cancel). MeetingEditor wraps one editing session around a MeetingDraft
value: every edit replaces the draft with a new one instead of mutating it.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any

import structlog

from src.scheduling.meetings.clock import TimeZoneClock
from src.scheduling.meetings.conflicts import ConflictDetector
from src.scheduling.meetings.coordinator import MeetingSyncCoordinator
from src.scheduling.meetings.errors import DraftValidationError, SaveInProgressError
from src.scheduling.meetings.reconciler import (
    apply_timezone_change,
    end_time_from_duration,
    reconcile,
    resolve_draft,
    resolve_instants,
)
from src.scheduling.meetings.schemas import (
    ConflictWarning,
    DurationMode,
    Meeting,
    MeetingDraft,
    ReconciledTimes,
    ResolvedInstants,
    SaveResult,
    TimeEdit,
)
from src.scheduling.meetings.slots import DEFAULT_DURATION_MINUTES, SlotCatalog

logger = structlog.get_logger(__name__)

_EDITABLE_FIELDS = frozenset(
    {"subject", "description", "day", "related_to", "external_emails", "outcome", "notes"}
)


class SchedulingService:
    """Entry point for meeting time resolution, conflicts, and sync.

    Args:
        clock: TimeZoneClock shared by every component.
        slots: SlotCatalog for start-time choices.
        detector: ConflictDetector over the meeting store.
        coordinator: MeetingSyncCoordinator for save/cancel.
        default_duration_minutes: Length of a fresh draft.
    """

    def __init__(
        self,
        clock: TimeZoneClock,
        slots: SlotCatalog,
        detector: ConflictDetector,
        coordinator: MeetingSyncCoordinator,
        default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
    ) -> None:
        self.clock = clock
        self.slots = slots
        self.detector = detector
        self.coordinator = coordinator
        self.default_duration_minutes = default_duration_minutes

    def resolve_instants(
        self, day: date, start_time: time, end_time: time, tz: str | None
    ) -> ResolvedInstants:
        return resolve_instants(day, start_time, end_time, tz, self.clock)

    def reconcile(self, times: ReconciledTimes, edit: TimeEdit) -> ReconciledTimes:
        return reconcile(times, edit)

    def available_slots(self, day: date, tz: str | None) -> tuple[time, ...]:
        return self.slots.available_slots(day, tz)

    async def detect_conflicts(
        self,
        user_id: str,
        candidate_start: datetime,
        candidate_end: datetime,
        exclude_meeting_id: str | None = None,
    ) -> ConflictWarning:
        return await self.detector.detect_conflicts(
            user_id, candidate_start, candidate_end, exclude_meeting_id
        )

    async def save(self, draft: MeetingDraft) -> SaveResult:
        return await self.coordinator.save(draft)

    async def cancel(self, meeting_id: str) -> Meeting:
        return await self.coordinator.cancel(meeting_id)

    # ── Drafts ───────────────────────────────────────────────────────────

    def new_draft(
        self,
        owner_id: str,
        tz: str | None = None,
        duration_minutes: int | None = None,
    ) -> MeetingDraft:
        """Blank draft starting at the next half-hour boundary in ``tz``."""
        duration_minutes = duration_minutes or self.default_duration_minutes
        zone = self.clock.default_timezone_for(tz)
        day, start_time = self.slots.default_start(zone)
        return MeetingDraft(
            owner_id=owner_id,
            day=day,
            start_time=start_time,
            end_time=end_time_from_duration(start_time, duration_minutes),
            duration_minutes=duration_minutes,
            mode=DurationMode.DURATION,
            timezone=zone,
        )

    def draft_from_meeting(self, meeting: Meeting, tz: str | None = None) -> MeetingDraft:
        """Load a stored meeting into wall-clock draft fields.

        Rendered in ``tz`` when given, otherwise in the meeting's own zone.
        """
        zone = self.clock.resolve_name(tz or meeting.timezone)
        start = self.clock.to_wall_clock(meeting.start_instant, zone)
        end = self.clock.to_wall_clock(meeting.end_instant, zone)
        minutes = int((meeting.end_instant - meeting.start_instant).total_seconds() // 60)
        return MeetingDraft(
            meeting_id=meeting.id,
            owner_id=meeting.owner_id,
            subject=meeting.subject,
            description=meeting.description,
            day=start.date(),
            start_time=time(start.hour, start.minute),
            end_time=time(end.hour, end.minute),
            duration_minutes=max(1, min(minutes, 1440)),
            mode=DurationMode.DURATION,
            timezone=zone,
            related_to=meeting.related_to,
            external_emails=[
                p.email for p in meeting.participants if p.email != _linked_email(meeting)
            ],
            join_url=meeting.join_url,
            outcome=meeting.outcome,
            notes=meeting.notes,
        )

    def open_editor(self, draft: MeetingDraft) -> MeetingEditor:
        return MeetingEditor(self, draft)


def _linked_email(meeting: Meeting) -> str | None:
    # The linked lead/contact is always the first participant when present
    if meeting.related_to is not None and meeting.participants:
        return meeting.participants[0].email
    return None


class MeetingEditor:
    """One meeting-editing session.

    Args:
        service: SchedulingService providing the operations.
        draft: Initial draft for this session.
    """

    def __init__(self, service: SchedulingService, draft: MeetingDraft) -> None:
        self._service = service
        self._draft = draft

    @classmethod
    def new(
        cls,
        service: SchedulingService,
        owner_id: str,
        tz: str | None = None,
        duration_minutes: int | None = None,
    ) -> MeetingEditor:
        return cls(service, service.new_draft(owner_id, tz, duration_minutes))

    @classmethod
    def from_meeting(
        cls, service: SchedulingService, meeting: Meeting, tz: str | None = None
    ) -> MeetingEditor:
        return cls(service, service.draft_from_meeting(meeting, tz))

    @property
    def draft(self) -> MeetingDraft:
        return self._draft

    @property
    def saving(self) -> bool:
        """True while a save for this session is in flight."""
        return self._service.coordinator.is_busy(self._draft.session_id)

    def update(self, **fields: Any) -> MeetingDraft:
        """Replace non-time fields (subject, description, day, participants...)."""
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not editable through update(): {sorted(unknown)}")
        data = self._draft.model_dump()
        data.update(fields)
        self._draft = MeetingDraft.model_validate(data)
        return self._draft

    def reconcile(self, edit: TimeEdit | dict) -> ReconciledTimes:
        if isinstance(edit, dict):
            edit = TimeEdit.model_validate(edit)
        times = reconcile(self._draft.times, edit)
        self._draft = self._draft.with_times(times)
        return times

    def resolve_instants(self) -> ResolvedInstants:
        return resolve_draft(self._draft, self._service.clock)

    def available_slots(self, day: date | None = None) -> tuple[time, ...]:
        target = day or self._draft.day
        if target is None:
            return self._service.slots.all_slots()
        return self._service.available_slots(target, self._draft.timezone)

    def change_timezone(self, tz: str) -> MeetingDraft:
        self._draft = apply_timezone_change(self._draft, tz, self._service.clock)
        return self._draft

    async def detect_conflicts(self) -> ConflictWarning:
        """Re-run on every time change; results are never cached."""
        if self._draft.day is None:
            return ConflictWarning()
        instants = self.resolve_instants()
        return await self._service.detect_conflicts(
            self._draft.owner_id,
            instants.start_instant,
            instants.end_instant,
            self._draft.meeting_id,
        )

    async def save(self) -> SaveResult:
        result = await self._service.save(self._draft)
        self._draft = self._draft.model_copy(
            update={"meeting_id": result.meeting.id, "join_url": result.meeting.join_url}
        )
        logger.debug(
            "meeting_editor.saved",
            session_id=self._draft.session_id,
            meeting_id=result.meeting.id,
        )
        return result

    async def cancel(self) -> Meeting:
        if not self._draft.meeting_id:
            raise DraftValidationError("Only saved meetings can be cancelled", field="meeting_id")
        if self.saving:
            raise SaveInProgressError(f"Meeting {self._draft.meeting_id} is still being saved")
        return await self._service.cancel(self._draft.meeting_id)
