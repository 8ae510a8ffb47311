"""SlotCatalog -- offerable start times for the meeting editor.

The full catalog is a fixed day of 15-minute slots (96 values), independent
of timezone. Availability only trims it for "today" in the chosen zone,
where slots at or before the current wall-clock minute are never offered.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from functools import lru_cache

from src.scheduling.meetings.clock import TimeZoneClock

SLOT_GRANULARITY_MINUTES = 15
MINUTES_PER_DAY = 24 * 60

DURATION_OPTIONS: tuple[int, ...] = (15, 30, 45, 60, 90, 120, 180, 240)
DEFAULT_DURATION_MINUTES = 30


@lru_cache
def all_slots(granularity_minutes: int = SLOT_GRANULARITY_MINUTES) -> tuple[time, ...]:
    """Every time of day on the slot grid, from 00:00 up to the last slot before 24:00."""
    if granularity_minutes <= 0 or MINUTES_PER_DAY % granularity_minutes:
        raise ValueError(f"granularity must divide a day evenly: {granularity_minutes}")
    return tuple(
        time(minute // 60, minute % 60)
        for minute in range(0, MINUTES_PER_DAY, granularity_minutes)
    )


def format_slot(slot: time) -> str:
    return slot.strftime("%H:%M")


class SlotCatalog:
    """Filters the slot grid against "now" in a timezone.

    Args:
        clock: TimeZoneClock providing the current wall-clock time per zone.
        granularity_minutes: Slot spacing; 15 minutes gives 96 slots per day.
    """

    def __init__(
        self,
        clock: TimeZoneClock,
        granularity_minutes: int = SLOT_GRANULARITY_MINUTES,
    ) -> None:
        self._clock = clock
        self._granularity = granularity_minutes

    def all_slots(self) -> tuple[time, ...]:
        return all_slots(self._granularity)

    def available_slots(self, day: date, tz: str | None) -> tuple[time, ...]:
        """Slots still selectable on ``day`` in ``tz``.

        Future days get the whole grid, today only slots strictly later than
        the current minute, past days nothing.
        """
        now = self._clock.now(tz)
        today = now.date()
        if day > today:
            return self.all_slots()
        if day < today:
            return ()
        current = time(now.hour, now.minute)
        return tuple(slot for slot in self.all_slots() if slot > current)

    def is_available(self, day: date, slot: time, tz: str | None) -> bool:
        return slot in self.available_slots(day, tz)

    def default_start(self, tz: str | None) -> tuple[date, time]:
        """Next half-hour boundary after now in ``tz``: ``:30`` or the next ``:00``."""
        now = self._clock.now(tz).replace(second=0, microsecond=0, tzinfo=None)
        if now.minute < 30:
            start = now.replace(minute=30)
        else:
            start = now.replace(minute=0) + timedelta(hours=1)
        return start.date(), start.time()


def add_minutes(slot: time, minutes: int) -> time:
    """Time of day ``minutes`` after ``slot``, wrapping past midnight."""
    total = (slot.hour * 60 + slot.minute + minutes) % MINUTES_PER_DAY
    return time(total // 60, total % 60)


def minutes_of_day(value: time | datetime) -> int:
    return value.hour * 60 + value.minute
