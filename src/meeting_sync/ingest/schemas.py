"""Pydantic v2 schemas for inbound Fathom webhook deliveries.

MeetingEvent mirrors the ``meeting.completed`` payload. Derived values
(transcript text, meeting date, duration in minutes) are computed properties
so they can never drift from the fields they are derived from.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    field_validator,
)


def _check_url(value: str | None) -> str | None:
    if value is not None and not value.startswith(("http://", "https://")):
        msg = f"not a valid URL: {value!r}"
        raise ValueError(msg)
    return value


def _require_iso_string(value: Any) -> Any:
    if not isinstance(value, str):
        msg = "expected an ISO 8601 datetime string"
        raise ValueError(msg)
    return value


# Payload datetimes and integers are not coerced from other JSON types
IsoDatetime = Annotated[datetime, BeforeValidator(_require_iso_string)]


# ── Enums ────────────────────────────────────────────────────────────────────


class AuthMethod(str, Enum):
    """How a delivery proved it came from the webhook source.

    ``REPLAY`` marks a delivery rebuilt from a dead letter by an operator.
    """

    SIGNATURE = "signature"
    BEARER = "bearer"
    REPLAY = "replay"


class MeetingPlatform(str, Enum):
    ZOOM = "zoom"
    MEET = "meet"
    TEAMS = "teams"


class InviteeDomainsType(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    MIXED = "mixed"


# ── Payload Models ───────────────────────────────────────────────────────────


class MeetingInfo(BaseModel):
    """The ``meeting`` object of a delivery."""

    id: str
    title: str = "Untitled Meeting"
    url: str
    share_url: str | None = None
    created_at: IsoDatetime | None = None
    scheduled_start_time: IsoDatetime | None = None
    scheduled_end_time: IsoDatetime | None = None
    recording_start_time: IsoDatetime | None = None
    recording_end_time: IsoDatetime | None = None
    duration_seconds: StrictInt = Field(gt=0)
    platform: MeetingPlatform | None = None
    calendar_event_id: str | None = None
    calendar_invitees_domains_type: InviteeDomainsType | None = None

    @field_validator("url", "share_url")
    @classmethod
    def _validate_urls(cls, value: str | None) -> str | None:
        return _check_url(value)

    @property
    def duration_minutes(self) -> int:
        return round(self.duration_seconds / 60)


class Attendee(BaseModel):
    name: str
    email: str | None = None
    is_host: StrictBool = False
    is_organizer: StrictBool = False
    join_time: IsoDatetime | None = None
    leave_time: IsoDatetime | None = None
    speaking_time_seconds: StrictInt | None = Field(default=None, ge=0)


class FathomActionItem(BaseModel):
    """Action item as detected by Fathom (before AI processing)."""

    text: str
    assignee: str | None = None
    due_date: IsoDatetime | None = None
    completed: StrictBool = False


class TranscriptEntry(BaseModel):
    speaker: str
    start_time: float = Field(ge=0)
    end_time: float = Field(ge=0)
    text: str


class Recording(BaseModel):
    video_url: str | None = None
    audio_url: str | None = None
    duration_seconds: StrictInt | None = Field(default=None, gt=0)
    file_size_bytes: StrictInt | None = Field(default=None, gt=0)

    @field_validator("video_url", "audio_url")
    @classmethod
    def _validate_urls(cls, value: str | None) -> str | None:
        return _check_url(value)


class DeliveryMetadata(BaseModel):
    fathom_user_id: str | None = None
    workspace_id: str | None = None
    webhook_version: str | None = None


class MeetingEvent(BaseModel):
    """Validated ``meeting.completed`` webhook payload."""

    event: Literal["meeting.completed"]
    timestamp: IsoDatetime
    meeting: MeetingInfo
    attendees: list[Attendee] = Field(default_factory=list)
    summary: str = "No summary provided"
    key_topics: list[str] = Field(default_factory=list)
    action_items: list[FathomActionItem] = Field(default_factory=list)
    transcript: list[TranscriptEntry] = Field(default_factory=list)
    recording: Recording | None = None
    metadata: DeliveryMetadata | None = None

    @property
    def transcript_text(self) -> str:
        """Full transcript as ``speaker: text`` paragraphs in original order."""
        return "\n\n".join(f"{entry.speaker}: {entry.text}" for entry in self.transcript)

    @property
    def meeting_date(self) -> datetime:
        """Best available date for the meeting."""
        return (
            self.meeting.scheduled_start_time
            or self.meeting.created_at
            or self.timestamp
        )


# ── Delivery ─────────────────────────────────────────────────────────────────


class Delivery(BaseModel):
    """One admitted webhook invocation. Never mutated after admission."""

    model_config = ConfigDict(frozen=True)

    delivery_id: str
    raw_payload: dict[str, Any]
    event: MeetingEvent
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    auth_method: AuthMethod
    source: str = "fathom"
