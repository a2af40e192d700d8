"""Shared models for the side-effect services."""

from __future__ import annotations

from pydantic import BaseModel, Field

from src.meeting_sync.ingest.schemas import MeetingEvent
from src.meeting_sync.processing.schemas import ProcessingResult


class MeetingDigest(BaseModel):
    """What notifications and presentations say about a processed meeting."""

    title: str
    date: str
    meeting_type: str
    summary: str
    action_items: list[str] = Field(default_factory=list)
    attendees: list[str] = Field(default_factory=list)
    urgent_alert: str | None = None
    files_changed: int = 0
    presentation_url: str | None = None

    @classmethod
    def from_result(cls, event: MeetingEvent, result: ProcessingResult) -> MeetingDigest:
        return cls(
            title=event.meeting.title,
            date=event.meeting_date.date().isoformat(),
            meeting_type=result.classification.type.value,
            summary=result.notifications.slackSummary,
            action_items=[
                f"{item.priorityEmoji.value} {item.task} ({item.owner})"
                for item in result.actionItems
            ],
            attendees=[attendee.name for attendee in result.attendees],
            urgent_alert=result.notifications.urgentAlert,
            files_changed=len(result.fileUpdates),
        )
