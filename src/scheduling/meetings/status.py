"""Effective meeting status, derived rather than stored."""

from __future__ import annotations

from datetime import datetime

from src.scheduling.meetings.schemas import Meeting, MeetingStatus


def effective_status(
    start_instant: datetime,
    end_instant: datetime,
    cancelled: bool,
    now: datetime,
) -> MeetingStatus:
    """Status at ``now``: cancelled wins, then completed, ongoing, scheduled."""
    if cancelled:
        return MeetingStatus.CANCELLED
    if now >= end_instant:
        return MeetingStatus.COMPLETED
    if start_instant <= now:
        return MeetingStatus.ONGOING
    return MeetingStatus.SCHEDULED


def meeting_status(meeting: Meeting, now: datetime) -> MeetingStatus:
    return effective_status(meeting.start_instant, meeting.end_instant, meeting.cancelled, now)


def is_active(status: MeetingStatus) -> bool:
    """Scheduled or ongoing meetings are still actionable with the provider."""
    return status in (MeetingStatus.SCHEDULED, MeetingStatus.ONGOING)
