"""Prompt templates for the meeting processor.

Builds the messages list sent to the model: a system prompt that pins the
output to JSON, and a user message carrying the document-tree layout, the
partner roster, known coaches/contacts/projects, and the meeting itself.

Exports:
    PROCESSOR_SYSTEM_PROMPT: System prompt establishing the JSON contract.
    build_meeting_prompt: Messages for processing one meeting.
    format_contacts: Contact list, capped for token budget.
    format_projects: Active project list.
    format_coaches: Known coach list.
    truncate_transcript: Keep the tail of long transcripts.
"""

from __future__ import annotations

from datetime import date

from src.meeting_sync.context.schemas import Coach, Contact, ContextSnapshot, Partner, Project
from src.meeting_sync.ingest.schemas import MeetingEvent

MAX_CONTACTS_IN_PROMPT = 50
MAX_TRANSCRIPT_CHARS = 15_000


# ── System Prompt ──────────────────────────────────────────────────────────


PROCESSOR_SYSTEM_PROMPT: str = """\
You are a meeting processor that analyzes meeting transcripts and outputs structured JSON.
Always respond with valid JSON matching the exact schema provided.
Do not include any text outside the JSON response.\
"""

TREE_LAYOUT: str = """\
claude-code-os-implementation/
├── 01-executive-office/
│   ├── internal-business-meetings/    # Partner meetings (Mekaiel, Chris, Trent)
│   │   ├── raw-notes/                 # Fathom exports
│   │   ├── by-partner/                # mekaiel.md, chris.md, trent.md
│   │   ├── action-items/              # active-items.md
│   │   └── roadmap-updates/           # YYYY-MM.md
│   └── daily-planning/
│       └── logs/                      # Daily plans
├── 02-operations/
│   └── project-management/
│       └── active-projects/           # Client project files
└── 05-hr-department/
    └── network-contacts/
        ├── by-category/               # Contact files by type
        │   ├── clients/
        │   ├── developers/
        │   ├── coaches/
        │   └── potential-leads/
        └── coaching-call-notes/       # Coaching sessions
            ├── raw-notes/
            ├── by-coach/
            └── by-topic/\
"""

OUTPUT_SCHEMA: str = """\
{
  "classification": {"type": "internal-partner|coaching-call|client-call|networking|sales-call|other",
                     "confidence": 0.0, "reasoning": "string"},
  "attendees": [{"name": "string", "email": "string|null", "role": "string|null",
                 "company": "string|null", "isKnownContact": true,
                 "contactFilePath": "string|null",
                 "suggestedCategory": "clients|developers|coaches|potential-leads|null",
                 "newInfoLearned": ["string"]}],
  "actionItems": [{"task": "string", "owner": "string",
                   "priority": "urgent|important|strategic",
                   "priorityEmoji": "\U0001F534|\U0001F7E1|\U0001F7E2",
                   "deadline": "YYYY-MM-DD|null", "context": "string"}],
  "roadmapAdditions": [{"description": "string", "businessValue": "string",
                        "priority": "P0|P1|P2|P3|P4|P5", "owner": "string",
                        "relatedProject": "string|null"}],
  "decisions": [{"decision": "string", "context": "string", "reasoning": "string",
                 "implications": "string", "owner": "string"}],
  "keyLearnings": [{"category": "people|projects|market|strategy",
                    "learning": "string", "relevantTo": "string"}],
  "fileUpdates": [{"action": "create|append|update_section",
                   "path": "claude-code-os-implementation/...",
                   "section": "string (required for update_section)",
                   "content": "markdown"}],
  "summary": {"oneLineSummary": "string (max 200 chars)", "urgentItemsCount": 0,
              "totalActionItems": 0, "newContactsIdentified": 0, "filesAffected": 0},
  "notifications": {"slackSummary": "string", "urgentAlert": "string|null"}
}

If you cannot process the meeting, respond instead with:
{"error": true, "errorType": "classification_uncertain|no_transcript|invalid_input|other",
 "errorMessage": "string", "partialResult": {}, "requiresHumanReview": true}\
"""


# ── Formatters ─────────────────────────────────────────────────────────────


def format_contacts(contacts: list[Contact]) -> str:
    if not contacts:
        return "No contacts loaded"
    lines = [
        f"- {c.name} ({c.category}): {c.email or 'no email'}"
        + (f" @ {c.company}" if c.company else "")
        + f" [{c.file_path}]"
        for c in contacts[:MAX_CONTACTS_IN_PROMPT]
    ]
    if len(contacts) > MAX_CONTACTS_IN_PROMPT:
        lines.append(f"... and {len(contacts) - MAX_CONTACTS_IN_PROMPT} more")
    return "\n".join(lines)


def format_projects(projects: list[Project]) -> str:
    if not projects:
        return "No active projects"
    return "\n".join(
        f"- {p.name}: {p.client or 'unknown client'} ({p.status or 'unknown status'})"
        for p in projects
    )


def format_coaches(coaches: list[Coach]) -> str:
    if not coaches:
        return "No known coaches"
    return "\n".join(f"- {c.name}: {c.specialty or 'General'}" for c in coaches)


def format_partners(partners: list[Partner]) -> str:
    return "\n\n".join(
        f"**{p.name}**\n- Role: {p.role}\n- Email patterns: {', '.join(p.email_patterns)}"
        for p in partners
    )


def truncate_transcript(transcript_text: str, max_length: int = MAX_TRANSCRIPT_CHARS) -> str:
    """Keep the last ``max_length`` characters, where decisions usually land."""
    if not transcript_text:
        return "No transcript available"
    if len(transcript_text) <= max_length:
        return transcript_text
    return (
        f"[Transcript truncated to last {max_length} characters for token management]\n\n"
        f"...{transcript_text[-max_length:]}"
    )


# ── Prompt Builder ─────────────────────────────────────────────────────────


def build_meeting_prompt(
    event: MeetingEvent,
    context: ContextSnapshot,
    today: date | None = None,
) -> list[dict[str, str]]:
    """Build messages for processing one completed meeting.

    Args:
        event: Validated webhook payload.
        context: Reference data snapshot from the document tree.
        today: Override for the current date (tests).

    Returns:
        Messages list with system and user messages for LLM consumption.
    """
    meeting = event.meeting
    attendees = "\n".join(
        f"- {a.name} ({a.email or 'no email'})" + (" - host" if a.is_host else "")
        for a in event.attendees
    ) or "No attendees listed"
    fathom_items = "\n".join(
        f"- {item.text}" + (f" [Assigned to: {item.assignee}]" if item.assignee else "")
        for item in event.action_items
    ) or "No action items identified"
    topics = ", ".join(event.key_topics) or "None listed"

    user_message = (
        "You are processing meeting notes for the AI Agency Development OS, a "
        "system that helps run an AI automation agency.\n\n"
        "Your job is to analyze meeting data from Fathom and:\n"
        "1. Classify the meeting type\n"
        "2. Identify all attendees and match them to known contacts\n"
        "3. Extract actionable information\n"
        "4. Determine which OS files need updates\n"
        "5. Generate the exact content for each file update\n\n"
        f"## OS Structure\n\n```\n{TREE_LAYOUT}\n```\n\n"
        f"## Team Members\n\n{format_partners(context.partners)}\n\n"
        f"## Known Coaches\n\n{format_coaches(context.coaches)}\n\n"
        f"## Known Contacts\n\n{format_contacts(context.contacts)}\n\n"
        f"## Active Projects\n\n{format_projects(context.projects)}\n\n"
        f"## Current Date\n\n{(today or date.today()).isoformat()}\n\n"
        "## Meeting Data from Fathom\n\n"
        f"**Meeting Title:** {meeting.title}\n\n"
        f"**Date:** {event.meeting_date.date().isoformat()}\n\n"
        f"**Duration:** {meeting.duration_minutes} minutes\n\n"
        f"**Attendees:**\n{attendees}\n\n"
        f"**Key Topics:** {topics}\n\n"
        f"**Fathom Summary:**\n{event.summary}\n\n"
        f"**Fathom Action Items:**\n{fathom_items}\n\n"
        f"**Full Transcript:**\n{truncate_transcript(event.transcript_text)}\n\n"
        "## Instructions\n\n"
        "- Priority markers: \U0001F534 urgent (today/tomorrow), "
        "\U0001F7E1 important (this week), \U0001F7E2 strategic (this month).\n"
        "- Every file path must start with `claude-code-os-implementation/` and "
        "use only letters, digits, '-', '_', '/', '.'.\n"
        "- `update_section` replaces the body of the named `## ` section.\n"
        "- Generate valid markdown for file content.\n\n"
        f"Respond with ONLY a JSON object matching this schema:\n```json\n{OUTPUT_SCHEMA}\n```"
    )

    return [
        {"role": "system", "content": PROCESSOR_SYSTEM_PROMPT},
        {"role": "user", "content": user_message},
    ]
