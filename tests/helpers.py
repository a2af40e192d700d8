"""Test doubles and helpers shared across test modules."""

from __future__ import annotations

from datetime import datetime, timezone

from src.meeting_sync.context.schemas import ContextSnapshot
from src.meeting_sync.ingest.dedup import DeliveryState, DeliveryStatus
from src.meeting_sync.ingest.gateway import compute_signature
from src.meeting_sync.ingest.schemas import MeetingEvent

ROOT_MARKER = "claude-code-os-implementation/"
WEBHOOK_SECRET = "test-webhook-secret"

ACTIVE_ITEMS_PATH = "01-executive-office/internal-business-meetings/action-items/active-items.md"
ACTIVE_ITEMS_DOC = (
    "# Active Action Items\n"
    "\n"
    "## This Week\n"
    "- [ ] Old task\n"
    "\n"
    "## Backlog\n"
    "- [ ] Someday task\n"
)


# ── Test Doubles ──────────────────────────────────────────────────────────


class InMemoryDeliveryStore:
    """DeliveryStore double with the same claim semantics as the Redis store."""

    def __init__(self) -> None:
        self.states: dict[str, DeliveryState] = {}
        self.released: list[str] = []

    async def claim(self, delivery_id: str) -> bool:
        if delivery_id in self.states:
            return False
        self.states[delivery_id] = DeliveryState.RECEIVED
        return True

    async def release(self, delivery_id: str) -> None:
        self.states.pop(delivery_id, None)
        self.released.append(delivery_id)

    async def set_state(self, delivery_id: str, state: DeliveryState) -> None:
        self.states[delivery_id] = state

    async def get_status(self, delivery_id: str) -> DeliveryStatus | None:
        state = self.states.get(delivery_id)
        if state is None:
            return None
        return DeliveryStatus(
            delivery_id=delivery_id,
            state=state,
            timestamp=datetime.now(timezone.utc),
        )


class StubProcessor:
    """AI collaborator double returning a fixed response and recording calls."""

    def __init__(self, response: str | Exception) -> None:
        self.response = response
        self.calls: list[tuple[MeetingEvent, ContextSnapshot]] = []

    async def process(self, event: MeetingEvent, context: ContextSnapshot) -> str:
        self.calls.append((event, context))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def signed_headers(body: bytes, delivery_id: str = "delivery-001", secret: str = WEBHOOK_SECRET) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Fathom-Delivery-Id": delivery_id,
        "X-Fathom-Signature": compute_signature(body, secret),
        "X-Fathom-Timestamp": "2026-10-19T15:00:00Z",
    }
