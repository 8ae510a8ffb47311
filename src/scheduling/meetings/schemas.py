"""Pydantic v2 schemas for the meeting scheduling domain.

Defines the data contracts shared by the scheduling components: the
persisted Meeting, the serializable MeetingDraft held by an editing
session, participants and the related-record variant, reconciled
time-of-day fields, resolved instants, and the save/conflict results.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.scheduling.meetings.clock import DEFAULT_TIMEZONE


# ── Enums ────────────────────────────────────────────────────────────────────


class MeetingStatus(str, Enum):
    """Effective status of a meeting, derived from its instants and cancel flag."""

    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DurationMode(str, Enum):
    """Which of duration / end time the user edited last."""

    DURATION = "duration"
    END_TIME = "end_time"


class EditField(str, Enum):
    """Time field targeted by a reconcile edit."""

    START = "start"
    END = "end"
    DURATION = "duration"


class SyncAction(str, Enum):
    """Provider action chosen for a save, one per row of the transition table."""

    LOCAL_ONLY = "local_only"
    RECREATE = "recreate"
    CREATE = "create"
    UPDATE = "update"


MEETING_OUTCOMES = (
    "successful",
    "follow_up_needed",
    "no_show",
    "rescheduled",
    "cancelled_by_client",
    "not_interested",
)


# ── Participants & Related Records ───────────────────────────────────────────


class Participant(BaseModel):
    """A meeting attendee, unique by email within a meeting."""

    email: str
    display_name: str


class LeadRef(BaseModel):
    """Meeting linked to a lead."""

    kind: Literal["lead"] = "lead"
    id: str


class ContactRef(BaseModel):
    """Meeting linked to a contact."""

    kind: Literal["contact"] = "contact"
    id: str


RelatedTo = Annotated[LeadRef | ContactRef, Field(discriminator="kind")]


class RelatedRecord(BaseModel):
    """Lead or contact details resolved from the CRM directory."""

    id: str
    name: str
    email: str | None = None


# ── Meeting ──────────────────────────────────────────────────────────────────


class Meeting(BaseModel):
    """A meeting record as persisted by the repository.

    Status is never stored directly: only the explicit ``cancelled`` flag is.
    Use ``src.scheduling.meetings.status.meeting_status`` for the effective
    status at a given instant.
    """

    id: str | None = None
    owner_id: str
    subject: str
    description: str | None = None
    start_instant: datetime
    end_instant: datetime
    timezone: str = DEFAULT_TIMEZONE
    join_url: str | None = None
    related_to: RelatedTo | None = None
    participants: list[Participant] = Field(default_factory=list)
    cancelled: bool = False
    outcome: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> Meeting:
        if self.end_instant <= self.start_instant:
            raise ValueError("end_instant must be later than start_instant")
        return self

    @property
    def has_link(self) -> bool:
        return bool(self.join_url)


# ── Time Fields ──────────────────────────────────────────────────────────────


class ReconciledTimes(BaseModel):
    """The three mutually derived time fields plus the active mode."""

    model_config = ConfigDict(frozen=True)

    start_time: time
    end_time: time
    duration_minutes: int = Field(gt=0, le=1440)
    mode: DurationMode = DurationMode.DURATION


class TimeEdit(BaseModel):
    """A single user edit to one of the time fields.

    ``value`` is a time-of-day for start/end edits and a minute count for
    duration edits. Strings such as ``"09:30"`` or ``"90"`` are accepted.
    """

    field: EditField
    value: int | time

    @model_validator(mode="before")
    @classmethod
    def _coerce_value(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "value" not in data:
            return data
        field = data.get("field")
        value = data["value"]
        if field in (EditField.DURATION, EditField.DURATION.value):
            if isinstance(value, bool):
                raise ValueError("duration must be a whole number of minutes")
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ValueError(f"invalid duration: {value!r}")
        elif isinstance(value, str):
            value = time.fromisoformat(value)
        return {**data, "value": value}

    @model_validator(mode="after")
    def _check_value(self) -> TimeEdit:
        if self.field == EditField.DURATION:
            if not isinstance(self.value, int) or not 0 < self.value <= 1440:
                raise ValueError("duration must be between 1 and 1440 minutes")
        elif isinstance(self.value, time):
            self.value = self.value.replace(second=0, microsecond=0, tzinfo=None)
        else:
            raise ValueError(f"{self.field.value} edit requires a time of day")
        return self


class ResolvedInstants(BaseModel):
    """Canonical UTC instants resolved from wall-clock selections."""

    start_instant: datetime
    end_instant: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end_instant - self.start_instant).total_seconds() // 60)


# ── Draft ────────────────────────────────────────────────────────────────────


class MeetingDraft(BaseModel):
    """Serializable editor state for a meeting being created or edited.

    Every editing operation returns a new draft rather than mutating this one.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    meeting_id: str | None = None
    owner_id: str
    subject: str = ""
    description: str | None = None
    day: date | None = None
    start_time: time = time(9, 0)
    end_time: time = time(10, 0)
    duration_minutes: int = Field(default=60, gt=0, le=1440)
    mode: DurationMode = DurationMode.DURATION
    timezone: str | None = None  # None resolves to the clock's default zone
    related_to: RelatedTo | None = None
    external_emails: list[str] = Field(default_factory=list)
    join_url: str | None = None  # display only; sync decisions read the stored record
    outcome: str | None = None
    notes: str | None = None

    @property
    def is_persisted(self) -> bool:
        return bool(self.meeting_id and self.meeting_id.strip())

    @property
    def times(self) -> ReconciledTimes:
        return ReconciledTimes(
            start_time=self.start_time,
            end_time=self.end_time,
            duration_minutes=self.duration_minutes,
            mode=self.mode,
        )

    def with_times(self, times: ReconciledTimes) -> MeetingDraft:
        """Return a copy carrying the given reconciled time fields."""
        return self.model_copy(
            update={
                "start_time": times.start_time,
                "end_time": times.end_time,
                "duration_minutes": times.duration_minutes,
                "mode": times.mode,
            }
        )


# ── Results ──────────────────────────────────────────────────────────────────


class ProviderMeeting(BaseModel):
    """Result of a successful provider create."""

    join_url: str
    provider_id: str | None = None


class ConflictWarning(BaseModel):
    """Advisory list of meetings overlapping a proposed interval."""

    conflicts: list[Meeting] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def summary(self, limit: int = 3) -> str:
        """Human-readable one-paragraph summary, listing at most ``limit`` meetings."""
        if not self.conflicts:
            return ""
        count = len(self.conflicts)
        plural = "s" if count > 1 else ""
        lines = [f"This meeting overlaps with {count} existing meeting{plural}:"]
        for meeting in self.conflicts[:limit]:
            lines.append(
                f"- {meeting.subject} "
                f"({meeting.start_instant:%d/%m, %H:%M} - {meeting.end_instant:%H:%M} UTC)"
            )
        if count > limit:
            lines.append(f"...and {count - limit} more")
        return "\n".join(lines)


class SaveResult(BaseModel):
    """Outcome of a successful save."""

    meeting: Meeting
    action: SyncAction
