"""Pydantic v2 schemas for the AI collaborator's structured output.

Field names stay camelCase because they are the JSON contract given to the
model in the prompt. ProcessingResult is the success shape; ErrorResponse is
the shape the model uses to decline.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class MeetingType(str, Enum):
    INTERNAL_PARTNER = "internal-partner"
    COACHING_CALL = "coaching-call"
    CLIENT_CALL = "client-call"
    NETWORKING = "networking"
    SALES_CALL = "sales-call"
    OTHER = "other"


class Priority(str, Enum):
    URGENT = "urgent"
    IMPORTANT = "important"
    STRATEGIC = "strategic"


class PriorityMarker(str, Enum):
    RED = "\U0001F534"
    YELLOW = "\U0001F7E1"
    GREEN = "\U0001F7E2"


PRIORITY_MARKERS: dict[Priority, PriorityMarker] = {
    Priority.URGENT: PriorityMarker.RED,
    Priority.IMPORTANT: PriorityMarker.YELLOW,
    Priority.STRATEGIC: PriorityMarker.GREEN,
}


class MutationAction(str, Enum):
    CREATE = "create"
    APPEND = "append"
    UPDATE_SECTION = "update_section"


class ContactCategory(str, Enum):
    CLIENTS = "clients"
    DEVELOPERS = "developers"
    COACHES = "coaches"
    POTENTIAL_LEADS = "potential-leads"


class LearningCategory(str, Enum):
    PEOPLE = "people"
    PROJECTS = "projects"
    MARKET = "market"
    STRATEGY = "strategy"


# ── Result Sections ──────────────────────────────────────────────────────────


class Classification(BaseModel):
    type: MeetingType
    confidence: float = Field(ge=0, le=1)
    reasoning: str = Field(min_length=1)


class ProcessedAttendee(BaseModel):
    name: str = Field(min_length=1)
    email: str | None = None
    role: str | None = None
    company: str | None = None
    isKnownContact: bool
    contactFilePath: str | None = None
    suggestedCategory: ContactCategory | None = None
    newInfoLearned: list[str] = Field(default_factory=list)


class ActionItem(BaseModel):
    task: str = Field(min_length=1)
    owner: str = Field(min_length=1)
    priority: Priority
    priorityEmoji: PriorityMarker
    deadline: str | None = Field(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    context: str = Field(min_length=1)


class RoadmapItem(BaseModel):
    description: str = Field(min_length=1)
    businessValue: str = Field(min_length=1)
    priority: Literal["P0", "P1", "P2", "P3", "P4", "P5"]
    owner: str = Field(min_length=1)
    relatedProject: str | None = None


class Decision(BaseModel):
    decision: str = Field(min_length=1)
    context: str = Field(min_length=1)
    reasoning: str = Field(min_length=1)
    implications: str = Field(min_length=1)
    owner: str = Field(min_length=1)


class Learning(BaseModel):
    category: LearningCategory
    learning: str = Field(min_length=1)
    relevantTo: str = Field(min_length=1)


class FileMutation(BaseModel):
    """One declarative change to the document tree.

    ``path`` is untrusted; the MutationEngine validates containment.
    ``section`` is required for ``update_section`` (checked post-hoc).
    """

    action: MutationAction
    path: str = Field(min_length=1)
    section: str | None = None
    content: str = Field(min_length=1)


class ResultSummary(BaseModel):
    oneLineSummary: str = Field(min_length=1, max_length=200)
    urgentItemsCount: int = Field(ge=0)
    totalActionItems: int = Field(ge=0)
    newContactsIdentified: int = Field(ge=0)
    filesAffected: int = Field(ge=0)


class Notifications(BaseModel):
    slackSummary: str = Field(min_length=1)
    urgentAlert: str | None = None


class ProcessingResult(BaseModel):
    """Validated AI output describing what to write back to the tree."""

    classification: Classification
    attendees: list[ProcessedAttendee] = Field(min_length=1)
    actionItems: list[ActionItem] = Field(default_factory=list)
    roadmapAdditions: list[RoadmapItem] = Field(default_factory=list)
    decisions: list[Decision] = Field(default_factory=list)
    keyLearnings: list[Learning] = Field(default_factory=list)
    fileUpdates: list[FileMutation] = Field(min_length=1)
    summary: ResultSummary
    notifications: Notifications


class ErrorType(str, Enum):
    CLASSIFICATION_UNCERTAIN = "classification_uncertain"
    NO_TRANSCRIPT = "no_transcript"
    INVALID_INPUT = "invalid_input"
    OTHER = "other"


class ErrorResponse(BaseModel):
    """The shape the model returns when it declines to produce a result."""

    error: Literal[True]
    errorType: ErrorType
    errorMessage: str = Field(min_length=1)
    partialResult: dict[str, Any] | None = None
    requiresHumanReview: bool
