"""Tests for prompt construction."""

from __future__ import annotations

from datetime import date, datetime, timezone

from src.meeting_sync.context.schemas import PARTNERS, Contact, ContextSnapshot
from src.meeting_sync.processing.prompts import (
    MAX_CONTACTS_IN_PROMPT,
    PROCESSOR_SYSTEM_PROMPT,
    build_meeting_prompt,
    format_coaches,
    format_contacts,
    format_projects,
    truncate_transcript,
)


def _snapshot(**kwargs) -> ContextSnapshot:
    return ContextSnapshot(timestamp=datetime(2026, 10, 19, tzinfo=timezone.utc), partners=list(PARTNERS), **kwargs)


class TestFormatters:
    def test_empty_lists_have_placeholders(self):
        assert format_contacts([]) == "No contacts loaded"
        assert format_projects([]) == "No active projects"
        assert format_coaches([]) == "No known coaches"

    def test_contacts_capped(self):
        contacts = [
            Contact(name=f"Person {i}", category="clients", file_path=f"c/{i}.md")
            for i in range(MAX_CONTACTS_IN_PROMPT + 7)
        ]
        text = format_contacts(contacts)
        assert text.count("\n- ") == MAX_CONTACTS_IN_PROMPT - 1
        assert text.endswith("... and 7 more")


class TestTruncateTranscript:
    def test_short_transcript_unchanged(self):
        assert truncate_transcript("hello", max_length=10) == "hello"

    def test_long_transcript_keeps_tail(self):
        text = truncate_transcript("a" * 20 + "THE END", max_length=7)
        assert text.startswith("[Transcript truncated to last 7 characters")
        assert text.endswith("...THE END")

    def test_empty_transcript(self):
        assert truncate_transcript("") == "No transcript available"


class TestBuildMeetingPrompt:
    def test_messages_carry_meeting_and_context(self, sample_event):
        contact = Contact(name="Jane Doe", category="clients", email="jane@acme.example", file_path="x.md")
        messages = build_meeting_prompt(sample_event, _snapshot(contacts=[contact]), today=date(2026, 10, 19))

        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"] == PROCESSOR_SYSTEM_PROMPT
        user = messages[1]["content"]
        assert "**Meeting Title:** Weekly Partner Sync" in user
        assert "**Duration:** 10 minutes" in user
        assert "- Matthew (matthew@agency.example) - host" in user
        assert "- Send proposal to Acme [Assigned to: Matthew]" in user
        assert "Trent: Proposal goes out tomorrow." in user
        assert "- Jane Doe (clients): jane@acme.example" in user
        assert "**Mekaiel**" in user
        assert "## Current Date\n\n2026-10-19" in user
        assert '"fileUpdates"' in user
