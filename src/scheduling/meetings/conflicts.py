"""ConflictDetector -- advisory double-booking check.

Intervals are half-open: ``[s1, e1)`` and ``[s2, e2)`` overlap iff
``s1 < e2 and s2 < e1``, so back-to-back meetings never conflict. The
meeting being edited is excluded by id, and cancelled meetings never
conflict. The result is a warning only; nothing here blocks a save.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import structlog

from src.scheduling.meetings.repository import MeetingStore
from src.scheduling.meetings.schemas import ConflictWarning, Meeting

logger = structlog.get_logger(__name__)


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def find_conflicts(
    candidate_start: datetime,
    candidate_end: datetime,
    exclude_meeting_id: str | None,
    existing_meetings: Iterable[Meeting],
) -> list[Meeting]:
    """Existing meetings overlapping the candidate interval, ordered by start."""
    conflicts = [
        meeting
        for meeting in existing_meetings
        if not meeting.cancelled
        and not (exclude_meeting_id and meeting.id == exclude_meeting_id)
        and overlaps(candidate_start, candidate_end, meeting.start_instant, meeting.end_instant)
    ]
    return sorted(conflicts, key=lambda m: m.start_instant)


class ConflictDetector:
    """Runs the overlap check against a user's stored meetings.

    Results are never cached: callers re-run the check after every change
    to the proposed time.

    Args:
        store: MeetingStore used for the time-range query.
    """

    def __init__(self, store: MeetingStore) -> None:
        self._store = store

    async def detect_conflicts(
        self,
        user_id: str,
        candidate_start: datetime,
        candidate_end: datetime,
        exclude_meeting_id: str | None = None,
    ) -> ConflictWarning:
        existing = await self._store.find_by_time_range(user_id, candidate_start, candidate_end)
        conflicts = find_conflicts(candidate_start, candidate_end, exclude_meeting_id, existing)
        if conflicts:
            logger.info(
                "conflicts.detected",
                user_id=user_id,
                count=len(conflicts),
                meeting_ids=[m.id for m in conflicts],
            )
        return ConflictWarning(conflicts=conflicts)
