"""Shared fixtures for the meeting-sync test suite.

Provides:
- A realistic ``meeting.completed`` payload (2 attendees, 1 action item, 10 minutes)
- A processing result with one ``create`` and one ``update_section`` mutation
- A tmp_path document tree with contacts, a project, a coach, and a sectioned file
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from src.meeting_sync.ingest.schemas import MeetingEvent
from tests.helpers import ACTIVE_ITEMS_DOC, ACTIVE_ITEMS_PATH, ROOT_MARKER


# ── Payload Fixtures ──────────────────────────────────────────────────────


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    """Webhook payload: 2 attendees, 1 action item, 10-minute meeting."""
    return {
        "event": "meeting.completed",
        "timestamp": "2026-10-19T15:00:00Z",
        "meeting": {
            "id": "mtg-123",
            "title": "Weekly Partner Sync",
            "url": "https://fathom.video/calls/123",
            "scheduled_start_time": "2026-10-19T14:30:00Z",
            "duration_seconds": 600,
            "platform": "zoom",
        },
        "attendees": [
            {"name": "Matthew", "email": "matthew@agency.example", "is_host": True},
            {"name": "Trent", "email": "trent@agency.example"},
        ],
        "summary": "Reviewed the client pipeline and agreed on next steps.",
        "key_topics": ["pipeline", "hiring"],
        "action_items": [
            {"text": "Send proposal to Acme", "assignee": "Matthew"},
        ],
        "transcript": [
            {"speaker": "Matthew", "start_time": 0, "end_time": 12.5, "text": "Let's start with Acme."},
            {"speaker": "Trent", "start_time": 12.5, "end_time": 30, "text": "Proposal goes out tomorrow."},
        ],
    }


@pytest.fixture
def sample_body(sample_payload) -> bytes:
    return json.dumps(sample_payload).encode("utf-8")


@pytest.fixture
def sample_event(sample_payload) -> MeetingEvent:
    return MeetingEvent.model_validate(sample_payload)


@pytest.fixture
def processing_result() -> dict[str, Any]:
    """Valid AI output with one create and one update_section mutation."""
    return {
        "classification": {
            "type": "internal-partner",
            "confidence": 0.95,
            "reasoning": "Only partners attended.",
        },
        "attendees": [
            {"name": "Matthew", "email": "matthew@agency.example", "isKnownContact": True},
            {"name": "Trent", "email": "trent@agency.example", "isKnownContact": True},
        ],
        "actionItems": [
            {
                "task": "Send proposal to Acme",
                "owner": "Matthew",
                "priority": "urgent",
                "priorityEmoji": "\U0001F534",
                "deadline": "2026-10-20",
                "context": "Acme is waiting on pricing.",
            }
        ],
        "fileUpdates": [
            {
                "action": "create",
                "path": ROOT_MARKER + "01-executive-office/internal-business-meetings/raw-notes/2026-10-19-weekly-partner-sync.md",
                "content": "# Weekly Partner Sync\n\nReviewed the client pipeline.\n",
            },
            {
                "action": "update_section",
                "path": ROOT_MARKER + ACTIVE_ITEMS_PATH,
                "section": "This Week",
                "content": "- [ ] \U0001F534 Send proposal to Acme (Matthew)",
            },
        ],
        "summary": {
            "oneLineSummary": "Partners aligned on the Acme proposal.",
            "urgentItemsCount": 1,
            "totalActionItems": 1,
            "newContactsIdentified": 0,
            "filesAffected": 2,
        },
        "notifications": {"slackSummary": "Partner sync: Acme proposal due tomorrow."},
    }


# ── Document Tree ─────────────────────────────────────────────────────────


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def document_root(tmp_path) -> Path:
    """A small document tree under ``<tmp>/os/claude-code-os-implementation``."""
    root = tmp_path / "os" / ROOT_MARKER.strip("/")
    contacts = root / "05-hr-department/network-contacts/by-category"
    _write(
        contacts / "clients" / "jane-doe.md",
        "# Jane Doe\n\n**Email:** jane@acme.example\n**Company:** Acme Corp\n**Role:** CTO\n",
    )
    _write(contacts / "developers" / "sam-lee.md", "Email: sam@dev.example\n")
    _write(
        root / "02-operations/project-management/active-projects" / "acme-automation.md",
        "# Acme Automation\n\n- Client: Acme Corp\n- Status: In progress\n",
    )
    _write(
        root / "05-hr-department/network-contacts/coaching-call-notes/by-coach" / "alex.md",
        "# Alex Rivera\n\nSpecialty: Sales coaching\n",
    )
    _write(root / ACTIVE_ITEMS_PATH, ACTIVE_ITEMS_DOC)
    return root
