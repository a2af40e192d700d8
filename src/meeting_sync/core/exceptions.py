"""Error taxonomy for the ingestion pipeline.

Errors raised before a delivery is acknowledged map to HTTP responses in
the webhook router. Everything raised after acknowledgment is caught by the
Orchestrator and turned into a dead letter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.meeting_sync.documents.mutations import MutationBatchResult


class MeetingSyncError(Exception):
    """Base class for all pipeline errors."""


# ── Admission (synchronous, surfaced to the webhook caller) ─────────────────


class AuthenticationError(MeetingSyncError):
    """Missing or invalid signature / bearer token (401)."""


class PayloadValidationError(MeetingSyncError):
    """Malformed headers or payload shape (400)."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class DuplicateDeliveryError(MeetingSyncError):
    """Delivery id already seen within the dedup window."""

    def __init__(self, delivery_id: str) -> None:
        super().__init__(f"Duplicate delivery: {delivery_id}")
        self.delivery_id = delivery_id


class ConfigurationError(MeetingSyncError):
    """Server-side misconfiguration, e.g. no webhook secret (500)."""


class QueueFullError(MeetingSyncError):
    """Worker queue is saturated (503)."""


# ── Pipeline (post-acknowledgment, recovered into dead letters) ─────────────


class ContextLoadError(MeetingSyncError):
    """Context could not be loaded and no previous snapshot exists."""


class UpstreamError(MeetingSyncError):
    """The AI collaborator failed or timed out."""


class ProcessorDeclinedError(MeetingSyncError):
    """The AI collaborator returned a well-formed error response."""

    def __init__(self, error_type: str, message: str, requires_human_review: bool) -> None:
        super().__init__(f"{error_type}: {message}")
        self.error_type = error_type
        self.requires_human_review = requires_human_review


class OutputSchemaError(MeetingSyncError):
    """The AI output matched neither the result nor the error schema."""


class MutationError(MeetingSyncError):
    """A file mutation failed; earlier mutations in the batch stay applied."""

    def __init__(self, message: str, batch: MutationBatchResult | None = None) -> None:
        super().__init__(message)
        self.batch = batch


class PathContainmentError(MutationError):
    """A mutation path escapes the document tree or uses unsafe characters."""


class GitCommandError(MeetingSyncError):
    """A git subprocess exited non-zero. Reported on the batch, never raised past it."""

    def __init__(self, command: str, returncode: int, stderr: str) -> None:
        super().__init__(f"git {command} failed ({returncode}): {stderr.strip()}")
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class DeadLetterNotFoundError(MeetingSyncError):
    """No dead-letter record exists for the requested delivery id."""


# ── Best-effort side effects (logged only) ──────────────────────────────────


class NotificationError(MeetingSyncError):
    """Chat notification delivery failed."""


class PresentationError(MeetingSyncError):
    """Presentation generation failed."""
