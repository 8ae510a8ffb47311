"""Meeting repository -- storage interface and async SQLAlchemy implementation.

MeetingStore is the collaborator contract the scheduling core consumes.
MeetingRepository implements it with the session_factory callable pattern;
Meeting schemas are converted to and from MeetingModel rows here, with
participants and the related-record reference stored as JSON.

Every storage failure is re-raised as RepositoryError.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import structlog
from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.scheduling.meetings.errors import MeetingNotFoundError, RepositoryError
from src.scheduling.meetings.models import MeetingModel
from src.scheduling.meetings.schemas import Meeting, Participant, RelatedTo

logger = structlog.get_logger(__name__)

_related_adapter: TypeAdapter = TypeAdapter(RelatedTo)

STATUS_SCHEDULED = "scheduled"
STATUS_CANCELLED = "cancelled"


# ── Interface ───────────────────────────────────────────────────────────────


class MeetingStore(ABC):
    """Abstract persistence contract for meeting records."""

    @abstractmethod
    async def insert(self, meeting: Meeting) -> str:
        """Persist a new meeting, return its id."""
        ...

    @abstractmethod
    async def update(self, meeting_id: str, meeting: Meeting) -> None:
        """Overwrite the stored fields of an existing meeting."""
        ...

    @abstractmethod
    async def find_by_time_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Meeting]:
        """Meetings of ``user_id`` whose interval intersects ``[start, end)``."""
        ...

    @abstractmethod
    async def find_by_id(self, meeting_id: str) -> Meeting | None:
        """Fetch a meeting by id."""
        ...


# ── Serialization Helpers ───────────────────────────────────────────────────


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _model_to_meeting(model: MeetingModel) -> Meeting:
    """Convert MeetingModel to Meeting schema."""
    related = (
        _related_adapter.validate_python(model.related_data)
        if model.related_data
        else None
    )
    return Meeting(
        id=str(model.id),
        owner_id=model.owner_id,
        subject=model.subject,
        description=model.description,
        start_instant=_as_utc(model.start_time),
        end_instant=_as_utc(model.end_time),
        timezone=model.timezone,
        join_url=model.join_url,
        related_to=related,
        participants=[
            Participant.model_validate(p) for p in (model.participants_data or [])
        ],
        cancelled=model.status == STATUS_CANCELLED,
        outcome=model.outcome,
        notes=model.notes,
        created_at=_as_utc(model.created_at) if model.created_at else None,
        updated_at=_as_utc(model.updated_at) if model.updated_at else None,
    )


def _apply_meeting(model: MeetingModel, meeting: Meeting) -> None:
    """Copy Meeting schema fields onto a MeetingModel row."""
    model.owner_id = meeting.owner_id
    model.subject = meeting.subject
    model.description = meeting.description
    model.start_time = _as_utc(meeting.start_instant)
    model.end_time = _as_utc(meeting.end_instant)
    model.timezone = meeting.timezone
    model.join_url = meeting.join_url
    model.related_data = (
        meeting.related_to.model_dump(mode="json") if meeting.related_to else None
    )
    model.participants_data = [p.model_dump(mode="json") for p in meeting.participants]
    model.status = STATUS_CANCELLED if meeting.cancelled else STATUS_SCHEDULED
    model.outcome = meeting.outcome
    model.notes = meeting.notes


def _parse_id(meeting_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(meeting_id)
    except (TypeError, ValueError):
        raise MeetingNotFoundError(meeting_id)


# ── Repository ──────────────────────────────────────────────────────────────


class MeetingRepository(MeetingStore):
    """Async CRUD for meeting records.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def insert(self, meeting: Meeting) -> str:
        """Insert a meeting and return the generated id.

        Args:
            meeting: Meeting to persist; any ``id`` it carries is ignored.

        Returns:
            New meeting id as a string.

        Raises:
            RepositoryError: If the write fails.
        """
        try:
            async for session in self._session_factory():
                model = MeetingModel(id=uuid.uuid4())
                _apply_meeting(model, meeting)
                session.add(model)
                await session.commit()
                logger.info(
                    "meeting_repository.inserted",
                    meeting_id=str(model.id),
                    owner_id=meeting.owner_id,
                )
                return str(model.id)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Failed to insert meeting: {exc}") from exc
        raise RepositoryError("Session factory yielded no session")

    async def update(self, meeting_id: str, meeting: Meeting) -> None:
        """Overwrite an existing meeting's fields.

        Raises:
            MeetingNotFoundError: If no meeting has this id.
            RepositoryError: If the write fails.
        """
        pk = _parse_id(meeting_id)
        try:
            async for session in self._session_factory():
                model = await session.get(MeetingModel, pk)
                if model is None:
                    raise MeetingNotFoundError(meeting_id)
                _apply_meeting(model, meeting)
                await session.commit()
                logger.info("meeting_repository.updated", meeting_id=meeting_id)
                return
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Failed to update meeting {meeting_id}: {exc}") from exc

    async def find_by_time_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Meeting]:
        """Meetings owned by ``user_id`` overlapping ``[start, end)``, ordered by start."""
        try:
            async for session in self._session_factory():
                stmt = (
                    select(MeetingModel)
                    .where(
                        MeetingModel.owner_id == user_id,
                        MeetingModel.start_time < _as_utc(end),
                        MeetingModel.end_time > _as_utc(start),
                    )
                    .order_by(MeetingModel.start_time)
                )
                result = await session.execute(stmt)
                return [_model_to_meeting(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Failed to query meetings: {exc}") from exc
        return []

    async def find_by_id(self, meeting_id: str) -> Meeting | None:
        try:
            pk = _parse_id(meeting_id)
        except MeetingNotFoundError:
            return None
        try:
            async for session in self._session_factory():
                model = await session.get(MeetingModel, pk)
                if model is None:
                    return None
                return _model_to_meeting(model)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Failed to load meeting {meeting_id}: {exc}") from exc
        return None
