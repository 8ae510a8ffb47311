"""Meeting-link provider interface and async HTTP client.

MeetingProvider is the collaborator contract: create a provider meeting
(returning its join URL), push edits to it, or cancel it. Every failure is
raised as ProviderError.

HttpMeetingProvider talks to the Teams meeting edge functions
(``create-teams-meeting``, ``update-teams-meeting``, ``cancel-teams-meeting``)
with one JSON POST per operation. There is no retry: a failed call surfaces
immediately so the caller's local state stays untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from src.scheduling.meetings.errors import ProviderError
from src.scheduling.meetings.schemas import Participant, ProviderMeeting

logger = structlog.get_logger(__name__)


class MeetingProvider(ABC):
    """Abstract interface for the external meeting-link provider."""

    @abstractmethod
    async def create(
        self,
        subject: str,
        attendees: list[Participant],
        start_instant: datetime,
        end_instant: datetime,
        timezone: str,
        description: str | None,
    ) -> ProviderMeeting:
        """Book a provider meeting and return its join URL."""
        ...

    @abstractmethod
    async def update(
        self,
        meeting_id: str,
        join_url: str,
        subject: str,
        attendees: list[Participant],
        start_instant: datetime,
        end_instant: datetime,
        timezone: str,
        description: str | None,
    ) -> None:
        """Push edited fields to an existing provider meeting."""
        ...

    @abstractmethod
    async def cancel(self, meeting_id: str, join_url: str) -> None:
        """Cancel the provider meeting behind ``join_url``."""
        ...


# ── Payload Helpers ─────────────────────────────────────────────────────────


def format_instant(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def attendees_payload(attendees: list[Participant]) -> list[dict[str, str]]:
    return [{"email": a.email, "name": a.display_name} for a in attendees]


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        details = body.get("details")
        if error and details:
            return f"{error}: {details}"
        if error:
            return str(error)
    return f"HTTP {response.status_code}"


# ── HTTP Client ─────────────────────────────────────────────────────────────


class HttpMeetingProvider(MeetingProvider):
    """Async client for the Teams meeting edge functions.

    Args:
        base_url: Functions base URL, e.g. ``https://<project>.supabase.co/functions/v1``.
        token: Bearer token of the acting user.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client for one call."""
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _post(self, operation: str, function: str, payload: dict[str, Any]) -> dict:
        try:
            async with self._client() as client:
                response = await client.post(f"{self._base_url}/{function}", json=payload)
        except httpx.HTTPError as exc:
            logger.error("provider.transport_error", operation=operation, error=str(exc))
            raise ProviderError(operation, f"Meeting provider unreachable: {exc}") from exc

        if response.is_error:
            message = _error_message(response)
            logger.error(
                "provider.request_failed",
                operation=operation,
                status_code=response.status_code,
                error=message,
            )
            raise ProviderError(operation, message)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if isinstance(data, dict) and data.get("error"):
            raise ProviderError(operation, str(data["error"]))
        return data if isinstance(data, dict) else {}

    async def create(
        self,
        subject: str,
        attendees: list[Participant],
        start_instant: datetime,
        end_instant: datetime,
        timezone: str,
        description: str | None,
    ) -> ProviderMeeting:
        """Create a Teams meeting plus calendar event.

        Returns:
            ProviderMeeting with the join URL from ``meeting.joinUrl``.

        Raises:
            ProviderError: On transport failure, error status, or a response
                without a join URL.
        """
        data = await self._post(
            "create",
            "create-teams-meeting",
            {
                "subject": subject,
                "attendees": attendees_payload(attendees),
                "startTime": format_instant(start_instant),
                "endTime": format_instant(end_instant),
                "timezone": timezone,
                "description": description or "",
            },
        )
        meeting = data.get("meeting") or {}
        join_url = meeting.get("joinUrl")
        if not join_url:
            raise ProviderError("create", "Meeting provider returned no join URL")
        logger.info("provider.meeting_created", provider_id=meeting.get("id"))
        return ProviderMeeting(join_url=join_url, provider_id=meeting.get("id"))

    async def update(
        self,
        meeting_id: str,
        join_url: str,
        subject: str,
        attendees: list[Participant],
        start_instant: datetime,
        end_instant: datetime,
        timezone: str,
        description: str | None,
    ) -> None:
        await self._post(
            "update",
            "update-teams-meeting",
            {
                "meetingId": meeting_id,
                "joinUrl": join_url,
                "subject": subject,
                "attendees": attendees_payload(attendees),
                "startTime": format_instant(start_instant),
                "endTime": format_instant(end_instant),
                "timezone": timezone,
                "description": description or "",
            },
        )
        logger.info("provider.meeting_updated", meeting_id=meeting_id)

    async def cancel(self, meeting_id: str, join_url: str) -> None:
        await self._post(
            "cancel",
            "cancel-teams-meeting",
            {"meetingId": meeting_id, "joinUrl": join_url},
        )
        logger.info("provider.meeting_cancelled", meeting_id=meeting_id)
