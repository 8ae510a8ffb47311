"""Unit tests for HttpMeetingProvider against an httpx.MockTransport."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from src.scheduling.meetings.errors import ProviderError
from src.scheduling.meetings.provider import HttpMeetingProvider, format_instant
from src.scheduling.meetings.schemas import Participant

BASE_URL = "https://project.supabase.co/functions/v1"
START = datetime(2025, 3, 11, 3, 30, tzinfo=timezone.utc)
END = datetime(2025, 3, 11, 4, 30, tzinfo=timezone.utc)
ATTENDEES = [Participant(email="guest@example.com", display_name="guest")]


def _make_provider(handler) -> tuple[HttpMeetingProvider, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    provider = HttpMeetingProvider(
        BASE_URL, token="user-token", transport=httpx.MockTransport(_record)
    )
    return provider, requests


class TestFormatInstant:
    def test_millisecond_zulu(self):
        assert format_instant(START) == "2025-03-11T03:30:00.000Z"

    def test_converts_offset(self):
        value = datetime.fromisoformat("2025-03-11T09:00:00.250+05:30")
        assert format_instant(value) == "2025-03-11T03:30:00.250Z"


class TestCreate:
    async def test_posts_payload_and_returns_join_url(self):
        provider, requests = _make_provider(
            lambda r: httpx.Response(
                200, json={"meeting": {"id": "m-1", "joinUrl": "https://teams.example.com/join/1"}}
            )
        )
        result = await provider.create("Discovery", ATTENDEES, START, END, "Asia/Kolkata", None)

        assert result.join_url == "https://teams.example.com/join/1"
        assert result.provider_id == "m-1"
        request = requests[0]
        assert str(request.url) == f"{BASE_URL}/create-teams-meeting"
        assert request.headers["Authorization"] == "Bearer user-token"
        body = json.loads(request.content)
        assert body == {
            "subject": "Discovery",
            "attendees": [{"email": "guest@example.com", "name": "guest"}],
            "startTime": "2025-03-11T03:30:00.000Z",
            "endTime": "2025-03-11T04:30:00.000Z",
            "timezone": "Asia/Kolkata",
            "description": "",
        }

    async def test_missing_join_url(self):
        provider, _ = _make_provider(lambda r: httpx.Response(200, json={"meeting": {}}))
        with pytest.raises(ProviderError) as exc_info:
            await provider.create("Discovery", ATTENDEES, START, END, "UTC", None)
        assert exc_info.value.operation == "create"

    async def test_error_status_carries_message(self):
        provider, _ = _make_provider(
            lambda r: httpx.Response(500, json={"error": "Graph API error", "details": "quota"})
        )
        with pytest.raises(ProviderError) as exc_info:
            await provider.create("Discovery", ATTENDEES, START, END, "UTC", None)
        assert str(exc_info.value) == "Graph API error: quota"

    async def test_error_in_success_body(self):
        provider, _ = _make_provider(lambda r: httpx.Response(200, json={"error": "Token expired"}))
        with pytest.raises(ProviderError, match="Token expired"):
            await provider.create("Discovery", ATTENDEES, START, END, "UTC", None)

    async def test_transport_failure(self):
        def _fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider, _ = _make_provider(_fail)
        with pytest.raises(ProviderError) as exc_info:
            await provider.create("Discovery", ATTENDEES, START, END, "UTC", None)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_no_retry(self):
        provider, requests = _make_provider(lambda r: httpx.Response(503, text="unavailable"))
        with pytest.raises(ProviderError):
            await provider.create("Discovery", ATTENDEES, START, END, "UTC", None)
        assert len(requests) == 1


class TestUpdateAndCancel:
    async def test_update_payload(self):
        provider, requests = _make_provider(lambda r: httpx.Response(200, json={"success": True}))
        await provider.update(
            "meeting-1", "https://teams.example.com/join/1", "Renamed", ATTENDEES, START, END, "UTC", "Agenda"
        )
        body = json.loads(requests[0].content)
        assert str(requests[0].url).endswith("/update-teams-meeting")
        assert body["meetingId"] == "meeting-1"
        assert body["joinUrl"] == "https://teams.example.com/join/1"
        assert body["description"] == "Agenda"

    async def test_cancel_payload(self):
        provider, requests = _make_provider(lambda r: httpx.Response(200, json={"success": True}))
        await provider.cancel("meeting-1", "https://teams.example.com/join/1")
        assert str(requests[0].url).endswith("/cancel-teams-meeting")
        assert json.loads(requests[0].content) == {
            "meetingId": "meeting-1",
            "joinUrl": "https://teams.example.com/join/1",
        }

    async def test_cancel_failure(self):
        provider, _ = _make_provider(lambda r: httpx.Response(404, json={"error": {"message": "Not found"}}))
        with pytest.raises(ProviderError, match="Not found") as exc_info:
            await provider.cancel("meeting-1", "https://teams.example.com/join/1")
        assert exc_info.value.operation == "cancel"
