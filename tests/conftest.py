"""Test fixtures for the meeting scheduling engine.

Provides:
- A TimeZoneClock pinned to a fixed "now"
- InMemoryMeetingStore, FakeMeetingProvider, and FakeRecordDirectory doubles
- A wired SchedulingService and MeetingSyncCoordinator
- make_meeting() factory for seeding stored meetings
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from src.scheduling.config import Settings
from src.scheduling.main import build_scheduling_service
from src.scheduling.meetings.clock import TimeZoneClock
from src.scheduling.meetings.errors import MeetingNotFoundError, ProviderError, RepositoryError
from src.scheduling.meetings.participants import RecordDirectory
from src.scheduling.meetings.provider import MeetingProvider
from src.scheduling.meetings.repository import MeetingStore
from src.scheduling.meetings.schemas import (
    Meeting,
    Participant,
    ProviderMeeting,
    RelatedRecord,
)

# 2025-03-10 10:00 in Asia/Kolkata
NOW = datetime(2025, 3, 10, 4, 30, tzinfo=timezone.utc)
USER_ID = "user-1"


# ── InMemoryMeetingStore ─────────────────────────────────────────────────────


class InMemoryMeetingStore(MeetingStore):
    """In-memory test double for MeetingRepository.

    Mirrors the MeetingStore interface using a dict for storage. Set
    ``fail_writes`` to make insert/update raise RepositoryError.
    """

    def __init__(self) -> None:
        self.meetings: dict[str, Meeting] = {}
        self.fail_writes = False
        self.inserted: list[str] = []
        self.updated: list[str] = []

    async def insert(self, meeting: Meeting) -> str:
        if self.fail_writes:
            raise RepositoryError("database unavailable")
        meeting_id = str(uuid.uuid4())
        self.meetings[meeting_id] = meeting.model_copy(update={"id": meeting_id})
        self.inserted.append(meeting_id)
        return meeting_id

    async def update(self, meeting_id: str, meeting: Meeting) -> None:
        if self.fail_writes:
            raise RepositoryError("database unavailable")
        if meeting_id not in self.meetings:
            raise MeetingNotFoundError(meeting_id)
        self.meetings[meeting_id] = meeting.model_copy(update={"id": meeting_id})
        self.updated.append(meeting_id)

    async def find_by_time_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Meeting]:
        return sorted(
            (
                m
                for m in self.meetings.values()
                if m.owner_id == user_id and m.start_instant < end and m.end_instant > start
            ),
            key=lambda m: m.start_instant,
        )

    async def find_by_id(self, meeting_id: str) -> Meeting | None:
        return self.meetings.get(meeting_id)


# ── FakeMeetingProvider ──────────────────────────────────────────────────────


class FakeMeetingProvider(MeetingProvider):
    """Records provider calls; operations listed in ``fail_on`` raise ProviderError."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.fail_on: set[str] = set()
        self._created = 0

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    async def create(self, subject, attendees, start_instant, end_instant, timezone, description):
        self.calls.append(
            (
                "create",
                {
                    "subject": subject,
                    "attendees": attendees,
                    "start_instant": start_instant,
                    "end_instant": end_instant,
                    "timezone": timezone,
                },
            )
        )
        if "create" in self.fail_on:
            raise ProviderError("create", "Graph API error")
        self._created += 1
        return ProviderMeeting(join_url=f"https://teams.example.com/l/meetup/{self._created}")

    async def update(
        self, meeting_id, join_url, subject, attendees, start_instant, end_instant, timezone, description
    ):
        self.calls.append(
            ("update", {"meeting_id": meeting_id, "join_url": join_url, "timezone": timezone})
        )
        if "update" in self.fail_on:
            raise ProviderError("update", "Graph API error")

    async def cancel(self, meeting_id, join_url):
        self.calls.append(("cancel", {"meeting_id": meeting_id, "join_url": join_url}))
        if "cancel" in self.fail_on:
            raise ProviderError("cancel", "Graph API error")


class BlockingProvider(FakeMeetingProvider):
    """Provider whose create and update wait until the test releases them."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def _hold(self) -> None:
        self.entered.set()
        await self.release.wait()

    async def create(self, *args, **kwargs):
        await self._hold()
        return await super().create(*args, **kwargs)

    async def update(self, *args, **kwargs):
        await self._hold()
        return await super().update(*args, **kwargs)


# ── FakeRecordDirectory ──────────────────────────────────────────────────────


class FakeRecordDirectory(RecordDirectory):
    def __init__(self) -> None:
        self.leads = {
            "lead-1": RelatedRecord(id="lead-1", name="Priya Shah", email="priya@acme.example"),
        }
        self.contacts = {
            "contact-1": RelatedRecord(id="contact-1", name="Tom Lee", email="Tom@Globex.example"),
            "contact-2": RelatedRecord(id="contact-2", name="No Email"),
        }

    async def get_lead(self, lead_id: str) -> RelatedRecord | None:
        return self.leads.get(lead_id)

    async def get_contact(self, contact_id: str) -> RelatedRecord | None:
        return self.contacts.get(contact_id)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> TimeZoneClock:
    return TimeZoneClock("Asia/Kolkata", now_fn=lambda: NOW)


@pytest.fixture
def store() -> InMemoryMeetingStore:
    return InMemoryMeetingStore()


@pytest.fixture
def provider() -> FakeMeetingProvider:
    return FakeMeetingProvider()


@pytest.fixture
def blocking_provider() -> BlockingProvider:
    return BlockingProvider()


@pytest.fixture
def directory() -> FakeRecordDirectory:
    return FakeRecordDirectory()


@pytest.fixture
def service(clock, store, provider, directory):
    return build_scheduling_service(Settings(), store, provider, clock, directory)


@pytest.fixture
def coordinator(service):
    return service.coordinator


@pytest.fixture
def make_meeting(store):
    """Factory that seeds a meeting into the store and returns it with its id."""

    def _make_meeting(
        start_offset: timedelta = timedelta(days=1),
        duration: timedelta = timedelta(hours=1),
        **overrides,
    ) -> Meeting:
        meeting_id = overrides.pop("id", None) or str(uuid.uuid4())
        defaults = {
            "id": meeting_id,
            "owner_id": USER_ID,
            "subject": "Quarterly review",
            "start_instant": NOW + start_offset,
            "end_instant": NOW + start_offset + duration,
            "timezone": "Asia/Kolkata",
            "participants": [Participant(email="guest@example.com", display_name="guest")],
        }
        defaults.update(overrides)
        meeting = Meeting(**defaults)
        store.meetings[meeting_id] = meeting
        return meeting

    return _make_meeting
