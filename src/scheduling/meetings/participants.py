"""Participant building from the linked lead/contact plus external addresses.

The linked record (if any, and if it has an email) comes first; external
addresses follow in entry order. Duplicates are dropped by case-insensitive
email. External attendees are named after their email local part.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

import structlog

from src.scheduling.meetings.errors import DraftValidationError
from src.scheduling.meetings.schemas import ContactRef, LeadRef, Participant, RelatedRecord

logger = structlog.get_logger(__name__)


class RecordDirectory(ABC):
    """Lookup of CRM leads and contacts referenced by meetings."""

    @abstractmethod
    async def get_lead(self, lead_id: str) -> RelatedRecord | None:
        ...

    @abstractmethod
    async def get_contact(self, contact_id: str) -> RelatedRecord | None:
        ...


def normalize_email(value: str) -> str:
    """Trim and lower-case an address, rejecting strings that are not emails."""
    email = value.strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain or " " in email:
        raise DraftValidationError(f"Invalid email address: {value!r}", field="external_emails")
    return email


def parse_email_list(raw: str) -> list[str]:
    """Split comma/semicolon/whitespace separated input into normalized addresses."""
    tokens = raw.replace(";", ",").replace("\n", ",").split(",")
    emails: list[str] = []
    for token in tokens:
        for part in token.split():
            email = normalize_email(part)
            if email not in emails:
                emails.append(email)
    return emails


async def resolve_related(
    related: LeadRef | ContactRef | None,
    directory: RecordDirectory | None,
) -> RelatedRecord | None:
    """Fetch the lead or contact behind a related-to reference."""
    if related is None or directory is None:
        return None
    if isinstance(related, LeadRef):
        return await directory.get_lead(related.id)
    return await directory.get_contact(related.id)


def merge_participants(
    linked: RelatedRecord | None,
    external_emails: Iterable[str],
) -> list[Participant]:
    participants: list[Participant] = []
    seen: set[str] = set()

    if linked is not None and linked.email:
        email = linked.email.strip()
        participants.append(Participant(email=email, display_name=linked.name or email))
        seen.add(email.lower())

    for raw in external_emails:
        if not raw or not raw.strip():
            continue
        email = normalize_email(raw)
        if email in seen:
            continue
        participants.append(Participant(email=email, display_name=email.split("@")[0]))
        seen.add(email)

    return participants


async def build_participants(
    related: LeadRef | ContactRef | None,
    external_emails: Iterable[str],
    directory: RecordDirectory | None = None,
) -> list[Participant]:
    """Deduplicated participant list for a draft."""
    linked = await resolve_related(related, directory)
    if related is not None and linked is None:
        logger.warning(
            "participants.related_record_missing",
            kind=related.kind,
            record_id=related.id,
        )
    return merge_participants(linked, external_emails)
