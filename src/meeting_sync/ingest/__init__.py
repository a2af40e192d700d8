"""Webhook ingestion -- payload schemas, admission gateway, and dedup store.

Exports:
    Gateway: Authenticates, validates, and deduplicates deliveries.
    Delivery: An admitted webhook invocation.
    MeetingEvent: Validated ``meeting.completed`` payload.
    RedisDeliveryStore: Atomic Redis-backed delivery id store.
"""

from __future__ import annotations

from src.meeting_sync.ingest.dedup import DeliveryState, DeliveryStatus, RedisDeliveryStore
from src.meeting_sync.ingest.gateway import Gateway, compute_signature, verify_signature
from src.meeting_sync.ingest.schemas import AuthMethod, Delivery, MeetingEvent

__all__ = [
    "AuthMethod",
    "Delivery",
    "DeliveryState",
    "DeliveryStatus",
    "Gateway",
    "MeetingEvent",
    "RedisDeliveryStore",
    "compute_signature",
    "verify_signature",
]
