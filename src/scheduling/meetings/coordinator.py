"""MeetingSyncCoordinator -- provider/repository state machine for save and cancel.

The provider action for a save is chosen once, before any write, from the
stored record's link and effective status:

    effective status   | link | action
    -------------------+------+-----------------------------------------------
    completed          | any  | LOCAL_ONLY: persist local fields, no provider
    cancelled          | any  | RECREATE: new provider meeting + forced insert
    scheduled/ongoing  | no   | CREATE: new provider meeting, insert or update
    scheduled/ongoing  | yes  | UPDATE: push edits to provider, then update

The provider call always completes before the repository write starts. A
provider failure aborts the save with nothing written; a repository failure
after a successful provider call raises PartiallySyncedError so the caller
can retry the write alone. Nothing is retried automatically.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog

from src.scheduling.core.monitoring import track_provider_call, track_save
from src.scheduling.meetings.clock import TimeZoneClock
from src.scheduling.meetings.errors import (
    DraftValidationError,
    MeetingNotFoundError,
    PartiallySyncedError,
    SaveInProgressError,
)
from src.scheduling.meetings.participants import RecordDirectory, build_participants
from src.scheduling.meetings.provider import MeetingProvider
from src.scheduling.meetings.reconciler import resolve_draft
from src.scheduling.meetings.repository import MeetingStore
from src.scheduling.meetings.schemas import (
    Meeting,
    MeetingDraft,
    MeetingStatus,
    SaveResult,
    SyncAction,
)
from src.scheduling.meetings.status import is_active, meeting_status

logger = structlog.get_logger(__name__)


def plan_save(has_link: bool, status: MeetingStatus) -> SyncAction:
    """Pick the provider action for a save from the transition table."""
    if status == MeetingStatus.COMPLETED:
        return SyncAction.LOCAL_ONLY
    if status == MeetingStatus.CANCELLED:
        return SyncAction.RECREATE
    if not has_link:
        return SyncAction.CREATE
    return SyncAction.UPDATE


def validate_draft(draft: MeetingDraft) -> None:
    """Guard run before any transition fires.

    Raises:
        DraftValidationError: Missing subject, missing date, or neither a
            linked lead/contact nor external participants.
    """
    if not draft.subject.strip():
        raise DraftValidationError("Please fill in the meeting subject", field="subject")
    if draft.day is None:
        raise DraftValidationError("Please select a meeting date", field="day")
    has_external = any(email.strip() for email in draft.external_emails)
    if draft.related_to is None and not has_external:
        raise DraftValidationError(
            "Please select a Lead/Contact or add external participants",
            field="participants",
        )


class MeetingSyncCoordinator:
    """Executes saves and cancellations against the provider and the store.

    Args:
        store: MeetingStore for persisted meeting records.
        provider: MeetingProvider that owns join links.
        clock: TimeZoneClock for instant resolution and "now".
        directory: Optional RecordDirectory resolving linked leads/contacts.
    """

    def __init__(
        self,
        store: MeetingStore,
        provider: MeetingProvider,
        clock: TimeZoneClock,
        directory: RecordDirectory | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._clock = clock
        self._directory = directory
        self._in_flight: set[str] = set()

    @asynccontextmanager
    async def _exclusive(self, *keys: str | None) -> AsyncGenerator[None, None]:
        """Hold every key (editing session and/or meeting id) or none of them."""
        held = {key for key in keys if key}
        busy = held & self._in_flight
        if busy:
            raise SaveInProgressError(
                f"An operation is already in progress for {sorted(busy)[0]}"
            )
        self._in_flight |= held
        try:
            yield
        finally:
            self._in_flight -= held

    def is_busy(self, key: str) -> bool:
        return key in self._in_flight

    # ── Save ─────────────────────────────────────────────────────────────

    async def _load_existing(self, draft: MeetingDraft) -> Meeting | None:
        if not draft.is_persisted:
            return None
        existing = await self._store.find_by_id(draft.meeting_id)
        if existing is None or existing.owner_id != draft.owner_id:
            raise MeetingNotFoundError(draft.meeting_id)
        return existing

    async def describe_save(self, draft: MeetingDraft) -> tuple[SyncAction, MeetingStatus]:
        """Action a save would take right now, without writing anything."""
        existing = await self._load_existing(draft)
        return self._plan(existing)

    def _plan(self, existing: Meeting | None) -> tuple[SyncAction, MeetingStatus]:
        if existing is None:
            status = MeetingStatus.SCHEDULED
            has_link = False
        else:
            status = meeting_status(existing, self._clock.utcnow())
            has_link = existing.has_link
        return plan_save(has_link, status), status

    async def save(self, draft: MeetingDraft) -> SaveResult:
        """Validate, sync with the provider as planned, then persist.

        Raises:
            DraftValidationError: Before any I/O for invalid drafts.
            SaveInProgressError: If this draft's session is already saving, or
                its meeting is being saved or cancelled elsewhere.
            MeetingNotFoundError: If the draft references an unknown meeting
                or one owned by another user.
            ProviderError: Provider create/update failed; nothing was written.
            PartiallySyncedError: Provider succeeded but the write failed.
            RepositoryError: Local-only write failed.
        """
        meeting_key = draft.meeting_id if draft.is_persisted else None
        async with self._exclusive(draft.session_id, meeting_key):
            validate_draft(draft)
            instants = resolve_draft(draft, self._clock)
            existing = await self._load_existing(draft)
            action, status = self._plan(existing)
            participants = await build_participants(
                draft.related_to, draft.external_emails, self._directory
            )

            meeting = Meeting(
                id=draft.meeting_id if existing is not None else None,
                owner_id=existing.owner_id if existing is not None else draft.owner_id,
                subject=draft.subject.strip(),
                description=draft.description or None,
                start_instant=instants.start_instant,
                end_instant=instants.end_instant,
                timezone=self._clock.resolve_name(draft.timezone),
                join_url=existing.join_url if existing is not None else None,
                related_to=draft.related_to,
                participants=participants,
                cancelled=False,
                outcome=draft.outcome or None,
                notes=draft.notes or None,
                created_at=existing.created_at if existing is not None else None,
            )

            log = logger.bind(
                meeting_id=draft.meeting_id,
                session_id=draft.session_id,
                action=action.value,
                status=status.value,
            )
            log.info("meeting_sync.save_planned")

            with track_save(action.value):
                persisted = await self._execute(action, meeting, existing)
            log.info("meeting_sync.saved", persisted_id=persisted.id, join_url=persisted.join_url)
            return SaveResult(meeting=persisted, action=action)

    async def _execute(
        self, action: SyncAction, meeting: Meeting, existing: Meeting | None
    ) -> Meeting:
        if action == SyncAction.LOCAL_ONLY:
            return await self._persist(meeting, insert=existing is None)

        if action == SyncAction.UPDATE:
            async with track_provider_call("update"):
                await self._provider.update(
                    meeting.id,
                    meeting.join_url,
                    meeting.subject,
                    meeting.participants,
                    meeting.start_instant,
                    meeting.end_instant,
                    meeting.timezone,
                    meeting.description,
                )
            return await self._persist_synced(meeting, insert=False)

        # CREATE and RECREATE both book a fresh provider meeting
        async with track_provider_call("create"):
            created = await self._provider.create(
                meeting.subject,
                meeting.participants,
                meeting.start_instant,
                meeting.end_instant,
                meeting.timezone,
                meeting.description,
            )

        if action == SyncAction.RECREATE:
            # The cancelled record stays as history; the booking becomes a new record
            fresh = meeting.model_copy(
                update={"id": None, "join_url": created.join_url, "created_at": None}
            )
            return await self._persist_synced(fresh, insert=True)

        linked = meeting.model_copy(update={"join_url": created.join_url})
        return await self._persist_synced(linked, insert=existing is None)

    async def _persist(self, meeting: Meeting, insert: bool) -> Meeting:
        if insert:
            new_id = await self._store.insert(meeting)
            return meeting.model_copy(update={"id": new_id})
        await self._store.update(meeting.id, meeting)
        return meeting

    async def _persist_synced(self, meeting: Meeting, insert: bool) -> Meeting:
        """Persist after a successful provider call."""
        try:
            return await self._persist(meeting, insert)
        except Exception as exc:
            logger.error(
                "meeting_sync.partially_synced",
                meeting_id=meeting.id,
                join_url=meeting.join_url,
                insert=insert,
                error=str(exc),
            )
            raise PartiallySyncedError(meeting, insert=insert, cause=exc) from exc

    async def retry_persist(self, error: PartiallySyncedError) -> Meeting:
        """Retry only the repository write of a partially synced save or cancel."""
        key = error.meeting.id or error.join_url or "retry"
        async with self._exclusive(key):
            meeting = await self._persist_synced(error.meeting, error.insert)
            logger.info("meeting_sync.retry_persisted", meeting_id=meeting.id)
            return meeting

    # ── Cancel ───────────────────────────────────────────────────────────

    async def cancel(self, meeting_id: str) -> Meeting:
        """Cancel the provider meeting, then mark the record cancelled.

        Raises:
            MeetingNotFoundError: Unknown meeting id.
            DraftValidationError: No join link, or the meeting is no longer
                scheduled/ongoing.
            ProviderError: Provider refused; the record is left active.
            PartiallySyncedError: Provider cancelled but the write failed.
        """
        async with self._exclusive(meeting_id):
            existing = await self._store.find_by_id(meeting_id)
            if existing is None:
                raise MeetingNotFoundError(meeting_id)
            if not existing.join_url:
                raise DraftValidationError(
                    "No meeting link found for this meeting", field="join_url"
                )
            status = meeting_status(existing, self._clock.utcnow())
            if not is_active(status):
                raise DraftValidationError(
                    f"Cannot cancel a {status.value} meeting", field="status"
                )

            async with track_provider_call("cancel"):
                await self._provider.cancel(meeting_id, existing.join_url)

            cancelled = existing.model_copy(update={"cancelled": True})
            persisted = await self._persist_synced(cancelled, insert=False)
            logger.info("meeting_sync.cancelled", meeting_id=meeting_id)
            return persisted
