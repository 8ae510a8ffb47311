"""TimeZoneClock -- current instant and wall-clock/instant conversion per zone.

Wall-clock values are aware datetimes in the named zone; instants are aware
datetimes in UTC. Unknown zone identifiers never fail: they fall back to the
configured default zone (Asia/Kolkata unless overridden).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TIMEZONE = "Asia/Kolkata"


@dataclass(frozen=True)
class TimezoneOption:
    """One entry of the timezone selector."""

    value: str
    label: str
    short: str


# Ordered by GMT offset (standard time)
TIMEZONES: tuple[TimezoneOption, ...] = (
    TimezoneOption("Pacific/Midway", "(GMT-11:00) Midway Island, Samoa", "GMT-11"),
    TimezoneOption("Pacific/Honolulu", "(GMT-10:00) Hawaii", "GMT-10"),
    TimezoneOption("America/Anchorage", "(GMT-09:00) Alaska", "GMT-9"),
    TimezoneOption("America/Los_Angeles", "(GMT-08:00) Los Angeles, San Francisco", "GMT-8"),
    TimezoneOption("America/Tijuana", "(GMT-08:00) Tijuana, Baja California", "GMT-8"),
    TimezoneOption("America/Denver", "(GMT-07:00) Denver, Phoenix", "GMT-7"),
    TimezoneOption("America/Phoenix", "(GMT-07:00) Arizona", "GMT-7"),
    TimezoneOption("America/Chicago", "(GMT-06:00) Chicago, Dallas", "GMT-6"),
    TimezoneOption("America/Mexico_City", "(GMT-06:00) Mexico City", "GMT-6"),
    TimezoneOption("America/New_York", "(GMT-05:00) New York, Washington", "GMT-5"),
    TimezoneOption("America/Bogota", "(GMT-05:00) Bogota, Lima", "GMT-5"),
    TimezoneOption("America/Caracas", "(GMT-04:00) Caracas, La Paz", "GMT-4"),
    TimezoneOption("America/Santiago", "(GMT-04:00) Santiago", "GMT-4"),
    TimezoneOption("America/Halifax", "(GMT-04:00) Atlantic Time", "GMT-4"),
    TimezoneOption("America/Sao_Paulo", "(GMT-03:00) Brasilia, Sao Paulo", "GMT-3"),
    TimezoneOption("America/Buenos_Aires", "(GMT-03:00) Buenos Aires", "GMT-3"),
    TimezoneOption("Atlantic/South_Georgia", "(GMT-02:00) Mid-Atlantic", "GMT-2"),
    TimezoneOption("Atlantic/Azores", "(GMT-01:00) Azores", "GMT-1"),
    TimezoneOption("Atlantic/Cape_Verde", "(GMT-01:00) Cape Verde", "GMT-1"),
    TimezoneOption("UTC", "(GMT+00:00) UTC", "UTC"),
    TimezoneOption("Europe/London", "(GMT+00:00) London, Dublin", "GMT+0"),
    TimezoneOption("Africa/Casablanca", "(GMT+00:00) Casablanca", "GMT+0"),
    TimezoneOption("Europe/Berlin", "(GMT+01:00) Berlin, Vienna, Rome", "GMT+1"),
    TimezoneOption("Europe/Paris", "(GMT+01:00) Paris, Brussels, Madrid", "GMT+1"),
    TimezoneOption("Africa/Lagos", "(GMT+01:00) West Central Africa", "GMT+1"),
    TimezoneOption("Europe/Athens", "(GMT+02:00) Athens, Bucharest", "GMT+2"),
    TimezoneOption("Africa/Cairo", "(GMT+02:00) Cairo", "GMT+2"),
    TimezoneOption("Africa/Johannesburg", "(GMT+02:00) Johannesburg", "GMT+2"),
    TimezoneOption("Europe/Moscow", "(GMT+03:00) Moscow, St. Petersburg", "GMT+3"),
    TimezoneOption("Asia/Kuwait", "(GMT+03:00) Kuwait, Riyadh, Baghdad", "GMT+3"),
    TimezoneOption("Africa/Nairobi", "(GMT+03:00) Nairobi", "GMT+3"),
    TimezoneOption("Asia/Tehran", "(GMT+03:30) Tehran", "GMT+3:30"),
    TimezoneOption("Asia/Dubai", "(GMT+04:00) Dubai, Abu Dhabi", "GMT+4"),
    TimezoneOption("Asia/Kabul", "(GMT+04:30) Kabul", "GMT+4:30"),
    TimezoneOption("Asia/Karachi", "(GMT+05:00) Islamabad, Karachi", "GMT+5"),
    TimezoneOption("Asia/Kolkata", "(GMT+05:30) Chennai, Kolkata, Mumbai", "GMT+5:30"),
    TimezoneOption("Asia/Kathmandu", "(GMT+05:45) Kathmandu", "GMT+5:45"),
    TimezoneOption("Asia/Dhaka", "(GMT+06:00) Dhaka, Almaty", "GMT+6"),
    TimezoneOption("Asia/Yangon", "(GMT+06:30) Yangon", "GMT+6:30"),
    TimezoneOption("Asia/Bangkok", "(GMT+07:00) Bangkok, Hanoi", "GMT+7"),
    TimezoneOption("Asia/Singapore", "(GMT+08:00) Singapore, Kuala Lumpur", "GMT+8"),
    TimezoneOption("Asia/Hong_Kong", "(GMT+08:00) Hong Kong, Beijing", "GMT+8"),
    TimezoneOption("Asia/Tokyo", "(GMT+09:00) Tokyo, Seoul", "GMT+9"),
    TimezoneOption("Australia/Darwin", "(GMT+09:30) Darwin, Adelaide", "GMT+9:30"),
    TimezoneOption("Australia/Sydney", "(GMT+10:00) Sydney, Melbourne", "GMT+10"),
    TimezoneOption("Pacific/Guam", "(GMT+10:00) Guam, Port Moresby", "GMT+10"),
    TimezoneOption("Pacific/Noumea", "(GMT+11:00) Magadan, Solomon Islands", "GMT+11"),
    TimezoneOption("Pacific/Auckland", "(GMT+12:00) Auckland, Wellington", "GMT+12"),
    TimezoneOption("Pacific/Fiji", "(GMT+12:00) Fiji, Marshall Islands", "GMT+12"),
    TimezoneOption("Pacific/Tongatapu", "(GMT+13:00) Nuku'alofa", "GMT+13"),
)

_TIMEZONE_VALUES = frozenset(tz.value for tz in TIMEZONES)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimeZoneClock:
    """Current instant plus conversion between zone wall-clock and UTC.

    Args:
        default_timezone: Zone used when an identifier is unknown.
        now_fn: Callable returning the current aware UTC instant.
            Injectable so tests can pin "now".
    """

    def __init__(
        self,
        default_timezone: str = DEFAULT_TIMEZONE,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._default = ZoneInfo(default_timezone)
        self._now_fn = now_fn or _utcnow

    @property
    def default_timezone(self) -> str:
        return self._default.key

    def zone(self, name: str | None) -> ZoneInfo:
        """Resolve a zone identifier, falling back to the default zone."""
        if not name:
            return self._default
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            logger.warning(
                "timezone.unknown_fallback",
                timezone=name,
                fallback=self._default.key,
            )
            return self._default

    def resolve_name(self, name: str | None) -> str:
        """Canonical identifier for ``name`` after fallback."""
        return self.zone(name).key

    def utcnow(self) -> datetime:
        return self._now_fn().astimezone(timezone.utc)

    def now(self, tz: str | None) -> datetime:
        """Current instant projected onto the zone's calendar and time of day."""
        return self.utcnow().astimezone(self.zone(tz))

    def today(self, tz: str | None) -> date:
        return self.now(tz).date()

    def to_instant(self, day: date, time_of_day: time, tz: str | None) -> datetime:
        """Canonicalize a date + time of day in ``tz`` into a UTC instant.

        Nonexistent local times (DST gap) resolve with the pre-transition
        offset and ambiguous ones to the first occurrence (fold=0).
        """
        local = datetime.combine(day, time_of_day.replace(tzinfo=None), tzinfo=self.zone(tz))
        return local.astimezone(timezone.utc)

    def to_wall_clock(self, instant: datetime, tz: str | None) -> datetime:
        """Render a UTC instant as wall-clock time in ``tz``."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.zone(tz))

    def reproject(self, instant: datetime, from_zone: str | None, to_zone: str | None) -> datetime:
        """Re-render the instant chosen in ``from_zone`` as wall-clock in ``to_zone``.

        The absolute instant is preserved; only its local rendering changes.
        """
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.zone(from_zone))
        return instant.astimezone(self.zone(to_zone))

    def default_timezone_for(self, candidate: str | None) -> str:
        """Return ``candidate`` if it is a selectable zone, else the default."""
        if candidate in _TIMEZONE_VALUES:
            return candidate
        return self._default.key
