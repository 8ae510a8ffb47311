"""Unit tests for TimeZoneClock: zone fallback, instant conversion, reprojection."""

from __future__ import annotations

from datetime import date, datetime, time, timezone

import pytest

from src.scheduling.meetings.clock import DEFAULT_TIMEZONE, TIMEZONES, TimeZoneClock


class TestZoneResolution:
    def test_known_zone(self, clock: TimeZoneClock):
        assert clock.zone("Europe/London").key == "Europe/London"

    @pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "America", "Europe/", "../etc/passwd"])
    def test_unknown_zone_falls_back_to_default(self, clock: TimeZoneClock, name: str):
        assert clock.resolve_name(name) == "Asia/Kolkata"

    def test_blank_zone_falls_back_to_default(self, clock: TimeZoneClock):
        assert clock.resolve_name(None) == "Asia/Kolkata"
        assert clock.resolve_name("") == "Asia/Kolkata"

    def test_default_constant_is_india(self):
        assert DEFAULT_TIMEZONE == "Asia/Kolkata"
        assert TimeZoneClock().default_timezone == "Asia/Kolkata"

    def test_default_timezone_for_catalog_zone(self, clock: TimeZoneClock):
        assert clock.default_timezone_for("America/New_York") == "America/New_York"

    def test_default_timezone_for_unlisted_zone(self, clock: TimeZoneClock):
        # Valid IANA id but not offered in the selector
        assert clock.default_timezone_for("America/Boise") == "Asia/Kolkata"

    def test_catalog_values_are_unique_and_resolvable(self, clock: TimeZoneClock):
        values = [tz.value for tz in TIMEZONES]
        assert len(values) == len(set(values))
        for value in values:
            assert clock.zone(value).key == value


class TestNow:
    def test_utcnow_uses_injected_clock(self, clock: TimeZoneClock, now: datetime):
        assert clock.utcnow() == now

    def test_now_projects_onto_zone(self, clock: TimeZoneClock):
        local = clock.now("Asia/Kolkata")
        assert (local.hour, local.minute) == (10, 0)

    def test_today_differs_across_date_line(self):
        late = datetime(2025, 3, 10, 20, 0, tzinfo=timezone.utc)
        clock = TimeZoneClock(now_fn=lambda: late)
        assert clock.today("America/Los_Angeles") == date(2025, 3, 10)
        assert clock.today("Pacific/Auckland") == date(2025, 3, 11)


class TestInstantConversion:
    def test_to_instant_returns_utc(self, clock: TimeZoneClock):
        instant = clock.to_instant(date(2025, 3, 11), time(9, 0), "Asia/Kolkata")
        assert instant == datetime(2025, 3, 11, 3, 30, tzinfo=timezone.utc)
        assert instant.tzinfo == timezone.utc

    def test_to_instant_unknown_zone_uses_default(self, clock: TimeZoneClock):
        fallback = clock.to_instant(date(2025, 3, 11), time(9, 0), "Nowhere/Land")
        assert fallback == clock.to_instant(date(2025, 3, 11), time(9, 0), "Asia/Kolkata")

    def test_to_wall_clock(self, clock: TimeZoneClock):
        wall = clock.to_wall_clock(datetime(2025, 3, 11, 14, 0, tzinfo=timezone.utc), "Europe/Paris")
        assert (wall.date(), wall.hour, wall.minute) == (date(2025, 3, 11), 15, 0)

    def test_reproject_preserves_instant(self, clock: TimeZoneClock):
        instant = clock.to_instant(date(2025, 3, 11), time(9, 0), "Asia/Kolkata")
        wall = clock.reproject(instant, "Asia/Kolkata", "America/New_York")
        assert wall == instant
        assert (wall.date(), wall.hour, wall.minute) == (date(2025, 3, 10), 23, 30)

    def test_reproject_naive_wall_clock(self, clock: TimeZoneClock):
        naive = datetime(2025, 3, 11, 9, 0)
        wall = clock.reproject(naive, "Asia/Kolkata", "UTC")
        assert (wall.hour, wall.minute) == (3, 30)
