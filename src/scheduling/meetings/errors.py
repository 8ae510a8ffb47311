"""Error taxonomy for meeting scheduling and provider sync.

Validation failures are raised before any I/O. Provider and repository
failures wrap the collaborator exception (``raise ... from exc``) and leave
local state exactly as it was before the attempt, except for
PartiallySyncedError, which reports a provider booking the local store
does not know about yet.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.scheduling.meetings.schemas import Meeting


class SchedulingError(Exception):
    """Base class for all scheduling errors."""


class DraftValidationError(SchedulingError):
    """Draft is missing a subject, a date, or its participants."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class MeetingNotFoundError(SchedulingError):
    """No meeting exists with the given id."""

    def __init__(self, meeting_id: str) -> None:
        super().__init__(f"Meeting not found: {meeting_id}")
        self.meeting_id = meeting_id


class SaveInProgressError(SchedulingError):
    """A save or cancel is already in flight for this editing session."""


class ProviderError(SchedulingError):
    """The meeting-link provider rejected or failed a create/update/cancel."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation


class RepositoryError(SchedulingError):
    """The meeting store failed to read or write a record."""


class PartiallySyncedError(RepositoryError):
    """Provider call succeeded but the local write failed.

    Carries the meeting as it should have been persisted (including the
    provider ``join_url``) so the caller can retry the repository write
    alone instead of booking a duplicate with the provider.
    """

    def __init__(self, meeting: Meeting, insert: bool, cause: Exception) -> None:
        super().__init__(
            f"Meeting link {meeting.join_url} was synced with the provider "
            f"but could not be saved locally: {cause}"
        )
        self.meeting = meeting
        self.insert = insert
        self.join_url = meeting.join_url
