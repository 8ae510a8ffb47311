"""Unit tests for participant building from related records and external emails."""

from __future__ import annotations

import pytest

from src.scheduling.meetings.errors import DraftValidationError
from src.scheduling.meetings.participants import (
    build_participants,
    merge_participants,
    normalize_email,
    parse_email_list,
    resolve_related,
)
from src.scheduling.meetings.schemas import ContactRef, LeadRef, MeetingDraft, RelatedRecord


class TestEmails:
    def test_normalize(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize("value", ["alice", "@example.com", "alice@", "a b@example.com"])
    def test_invalid(self, value: str):
        with pytest.raises(DraftValidationError) as exc_info:
            normalize_email(value)
        assert exc_info.value.field == "external_emails"

    def test_parse_list_mixed_separators(self):
        raw = "a@example.com, B@example.com;c@example.com\nd@example.com a@example.com"
        assert parse_email_list(raw) == [
            "a@example.com",
            "b@example.com",
            "c@example.com",
            "d@example.com",
        ]


class TestMerge:
    def test_linked_record_first(self):
        linked = RelatedRecord(id="lead-1", name="Priya Shah", email="priya@acme.example")
        participants = merge_participants(linked, ["bob@example.com"])
        assert [(p.email, p.display_name) for p in participants] == [
            ("priya@acme.example", "Priya Shah"),
            ("bob@example.com", "bob"),
        ]

    def test_dedupes_case_insensitively(self):
        linked = RelatedRecord(id="c", name="Tom Lee", email="Tom@Globex.example")
        participants = merge_participants(linked, ["tom@globex.example", "x@y.com", "X@Y.com"])
        assert [p.email for p in participants] == ["Tom@Globex.example", "x@y.com"]

    def test_linked_record_without_email_skipped(self):
        linked = RelatedRecord(id="c", name="No Email")
        assert [p.email for p in merge_participants(linked, ["x@y.com"])] == ["x@y.com"]

    def test_blank_entries_ignored(self):
        assert merge_participants(None, ["", "   "]) == []


class TestBuild:
    async def test_lead(self, directory):
        record = await resolve_related(LeadRef(id="lead-1"), directory)
        assert record.name == "Priya Shah"

    async def test_contact(self, directory):
        participants = await build_participants(ContactRef(id="contact-1"), [], directory)
        assert [p.display_name for p in participants] == ["Tom Lee"]

    async def test_missing_record_keeps_external(self, directory):
        participants = await build_participants(LeadRef(id="gone"), ["x@y.com"], directory)
        assert [p.email for p in participants] == ["x@y.com"]

    async def test_no_directory(self):
        assert await resolve_related(LeadRef(id="lead-1"), None) is None

    def test_related_to_discriminator(self):
        draft = MeetingDraft.model_validate(
            {"owner_id": "user-1", "related_to": {"kind": "contact", "id": "contact-1"}}
        )
        assert isinstance(draft.related_to, ContactRef)
