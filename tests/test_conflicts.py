"""Unit tests for the advisory ConflictDetector and its overlap rule."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.scheduling.meetings.conflicts import ConflictDetector, find_conflicts, overlaps
from src.scheduling.meetings.errors import RepositoryError
from src.scheduling.meetings.repository import MeetingStore
from src.scheduling.meetings.schemas import ConflictWarning, Meeting

DAY = datetime(2025, 3, 11, tzinfo=timezone.utc)


def _at(hour: int, minute: int = 0) -> datetime:
    return DAY + timedelta(hours=hour, minutes=minute)


def _make_meeting(meeting_id: str, start: datetime, end: datetime, **overrides) -> Meeting:
    defaults = {
        "id": meeting_id,
        "owner_id": "user-1",
        "subject": f"Meeting {meeting_id}",
        "start_instant": start,
        "end_instant": end,
    }
    defaults.update(overrides)
    return Meeting(**defaults)


# ── Overlap Rule ─────────────────────────────────────────────────────────────


class TestFindConflicts:
    def test_partial_overlap(self):
        x = _make_meeting("x", _at(10), _at(11))
        assert find_conflicts(_at(10, 30), _at(11, 30), None, [x]) == [x]

    def test_back_to_back_is_not_a_conflict(self):
        x = _make_meeting("x", _at(10), _at(11))
        assert find_conflicts(_at(11), _at(12), None, [x]) == []
        assert find_conflicts(_at(9), _at(10), None, [x]) == []

    def test_containment_both_ways(self):
        x = _make_meeting("x", _at(10), _at(11))
        assert find_conflicts(_at(10, 15), _at(10, 45), None, [x]) == [x]
        assert find_conflicts(_at(9), _at(12), None, [x]) == [x]

    def test_excludes_meeting_being_edited(self):
        x = _make_meeting("x", _at(10), _at(11))
        assert find_conflicts(_at(10), _at(11), "x", [x]) == []

    def test_cancelled_meetings_never_conflict(self):
        x = _make_meeting("x", _at(10), _at(11), cancelled=True)
        assert find_conflicts(_at(10), _at(11), None, [x]) == []

    def test_ordered_by_start(self):
        late = _make_meeting("late", _at(11), _at(12))
        early = _make_meeting("early", _at(9), _at(10, 30))
        result = find_conflicts(_at(10), _at(11, 30), None, [late, early])
        assert [m.id for m in result] == ["early", "late"]

    def test_overlap_is_symmetric(self):
        pairs = [
            (_at(10), _at(11), _at(10, 30), _at(11, 30)),
            (_at(10), _at(11), _at(11), _at(12)),
            (_at(10), _at(12), _at(10, 30), _at(11)),
        ]
        for s1, e1, s2, e2 in pairs:
            assert overlaps(s1, e1, s2, e2) == overlaps(s2, e2, s1, e1)


# ── Detector ─────────────────────────────────────────────────────────────────


class TestConflictDetector:
    async def test_uses_store_time_range(self, store):
        x = _make_meeting("x", _at(10), _at(11))
        store.meetings["x"] = x
        detector = ConflictDetector(store)

        warning = await detector.detect_conflicts("user-1", _at(10, 30), _at(11, 30))
        assert warning.has_conflicts
        assert [m.id for m in warning.conflicts] == ["x"]

        clear = await detector.detect_conflicts("user-1", _at(11), _at(12))
        assert not clear.has_conflicts

    async def test_other_users_meetings_ignored(self, store):
        store.meetings["y"] = _make_meeting("y", _at(10), _at(11), owner_id="user-2")
        warning = await ConflictDetector(store).detect_conflicts("user-1", _at(10), _at(11))
        assert warning.conflicts == []

    async def test_excludes_edited_meeting(self, store):
        store.meetings["x"] = _make_meeting("x", _at(10), _at(11))
        warning = await ConflictDetector(store).detect_conflicts("user-1", _at(10), _at(11), "x")
        assert not warning.has_conflicts

    async def test_queries_candidate_window(self):
        store = AsyncMock(spec=MeetingStore)
        store.find_by_time_range.return_value = []

        await ConflictDetector(store).detect_conflicts("user-1", _at(10), _at(11))
        store.find_by_time_range.assert_awaited_once_with("user-1", _at(10), _at(11))

    async def test_store_errors_propagate(self):
        store = AsyncMock(spec=MeetingStore)
        store.find_by_time_range.side_effect = RepositoryError("database unavailable")

        with pytest.raises(RepositoryError):
            await ConflictDetector(store).detect_conflicts("user-1", _at(10), _at(11))


class TestConflictWarningSummary:
    def test_empty(self):
        assert ConflictWarning().summary() == ""

    def test_lists_first_three_then_count(self):
        meetings = [_make_meeting(str(i), _at(9 + i), _at(10 + i)) for i in range(5)]
        summary = ConflictWarning(conflicts=meetings).summary()
        assert summary.startswith("This meeting overlaps with 5 existing meetings:")
        assert "Meeting 2" in summary
        assert "Meeting 3" not in summary
        assert summary.endswith("...and 2 more")

    def test_singular(self):
        summary = ConflictWarning(conflicts=[_make_meeting("x", _at(10), _at(11))]).summary()
        assert "1 existing meeting:" in summary
