"""DurationReconciler -- keeps start time, end time, and duration consistent.

Pure functions over time-of-day values. The reconciler knows nothing about
timezones until ``resolve_instants`` turns a calendar day plus the reconciled
wall-clock fields into UTC instants through a TimeZoneClock.

Midnight rule: an end time numerically at or before the start time always
means "ends on the following day", never a validation error. An end equal to
the start is therefore a full 24-hour meeting (1440 minutes).
"""

from __future__ import annotations

from datetime import date, time, timedelta

from src.scheduling.meetings.clock import TimeZoneClock
from src.scheduling.meetings.errors import DraftValidationError
from src.scheduling.meetings.schemas import (
    DurationMode,
    EditField,
    MeetingDraft,
    ReconciledTimes,
    ResolvedInstants,
    TimeEdit,
)
from src.scheduling.meetings.slots import MINUTES_PER_DAY, add_minutes, minutes_of_day


def end_time_from_duration(start_time: time, duration_minutes: int) -> time:
    """End time of day for a meeting of ``duration_minutes`` starting at ``start_time``."""
    return add_minutes(start_time, duration_minutes)


def duration_between(start_time: time, end_time: time) -> int:
    """Minutes from start to end, crossing midnight when end <= start."""
    raw = minutes_of_day(end_time) - minutes_of_day(start_time)
    if raw <= 0:
        raw += MINUTES_PER_DAY
    return raw


def crosses_midnight(start_time: time, end_time: time) -> bool:
    return minutes_of_day(end_time) <= minutes_of_day(start_time)


def reconcile(times: ReconciledTimes, edit: TimeEdit) -> ReconciledTimes:
    """Apply one user edit and re-derive the dependent fields.

    - start: end is re-derived from the current duration; mode becomes duration.
    - duration: end is re-derived; mode becomes duration.
    - end: duration is re-derived; mode becomes end_time.
    """
    if edit.field == EditField.START:
        return ReconciledTimes(
            start_time=edit.value,
            end_time=end_time_from_duration(edit.value, times.duration_minutes),
            duration_minutes=times.duration_minutes,
            mode=DurationMode.DURATION,
        )

    if edit.field == EditField.DURATION:
        return ReconciledTimes(
            start_time=times.start_time,
            end_time=end_time_from_duration(times.start_time, edit.value),
            duration_minutes=edit.value,
            mode=DurationMode.DURATION,
        )

    return ReconciledTimes(
        start_time=times.start_time,
        end_time=edit.value,
        duration_minutes=duration_between(times.start_time, edit.value),
        mode=DurationMode.END_TIME,
    )


def end_day_for(day: date, start_time: time, end_time: time) -> date:
    """Calendar day on which the meeting ends."""
    if crosses_midnight(start_time, end_time):
        return day + timedelta(days=1)
    return day


def resolve_instants(
    day: date,
    start_time: time,
    end_time: time,
    tz: str | None,
    clock: TimeZoneClock,
) -> ResolvedInstants:
    """Canonical UTC ``[start, end)`` for wall-clock selections on ``day`` in ``tz``."""
    start_instant = clock.to_instant(day, start_time, tz)
    end_instant = clock.to_instant(end_day_for(day, start_time, end_time), end_time, tz)
    if end_instant <= start_instant:
        # DST fold can collapse a short interval; keep the wall-clock length
        end_instant = start_instant + timedelta(minutes=duration_between(start_time, end_time))
    return ResolvedInstants(start_instant=start_instant, end_instant=end_instant)


def resolve_draft(draft: MeetingDraft, clock: TimeZoneClock) -> ResolvedInstants:
    """Resolve a draft's selections, which requires a chosen day."""
    if draft.day is None:
        raise DraftValidationError("Please select a meeting date", field="day")
    return resolve_instants(draft.day, draft.start_time, draft.end_time, draft.timezone, clock)


def reconcile_draft(draft: MeetingDraft, edit: TimeEdit) -> MeetingDraft:
    return draft.with_times(reconcile(draft.times, edit))


def apply_timezone_change(draft: MeetingDraft, new_timezone: str, clock: TimeZoneClock) -> MeetingDraft:
    """Switch the draft's zone, keeping the already chosen instant.

    The start instant implied by the old zone is re-rendered as wall-clock
    in the new zone, and the end is re-derived from the duration.
    """
    target = clock.resolve_name(new_timezone)
    if draft.day is None:
        return draft.model_copy(update={"timezone": target})

    instant = clock.to_instant(draft.day, draft.start_time, draft.timezone)
    wall = clock.reproject(instant, draft.timezone, target)
    start_time = time(wall.hour, wall.minute)
    return draft.model_copy(
        update={
            "timezone": target,
            "day": wall.date(),
            "start_time": start_time,
            "end_time": end_time_from_duration(start_time, draft.duration_minutes),
        }
    )
