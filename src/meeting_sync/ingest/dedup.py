"""Delivery deduplication and status store backed by Redis.

A delivery id is claimed with a single ``SET key value NX EX ttl`` so two
concurrent deliveries of the same id can never both observe "not present".
The same key carries the delivery's pipeline state, which backs the
``/webhook/status/{delivery_id}`` endpoint. Keys expire after the dedup
window so ids can be reused.

Key pattern: delivery:{delivery_id}
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

import redis.asyncio as aioredis
import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class DeliveryState(str, Enum):
    RECEIVED = "received"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


class DeliveryStatus(BaseModel):
    """Last known pipeline state of a delivery."""

    delivery_id: str
    state: DeliveryState
    timestamp: datetime

    @property
    def processed(self) -> bool:
        return self.state == DeliveryState.PROCESSED


class DeliveryStore(Protocol):
    """Atomic check-and-insert store for delivery ids."""

    async def claim(self, delivery_id: str) -> bool:
        """Record the id if unseen. Returns False if it was already present."""
        ...

    async def release(self, delivery_id: str) -> None:
        """Forget a claim so the sender may redeliver."""
        ...

    async def set_state(self, delivery_id: str, state: DeliveryState) -> None:
        ...

    async def get_status(self, delivery_id: str) -> DeliveryStatus | None:
        ...


class RedisDeliveryStore:
    """DeliveryStore implementation on a raw async Redis client.

    Args:
        redis: Async Redis client (decode_responses=True).
        ttl_seconds: Dedup window; defaults to 24 hours.
    """

    KEY_PREFIX = "delivery"

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int = 24 * 60 * 60) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    def _key(self, delivery_id: str) -> str:
        return f"{self.KEY_PREFIX}:{delivery_id}"

    @staticmethod
    def _encode(state: DeliveryState) -> str:
        return json.dumps({
            "state": state.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def claim(self, delivery_id: str) -> bool:
        created = await self._redis.set(
            self._key(delivery_id),
            self._encode(DeliveryState.RECEIVED),
            nx=True,
            ex=self._ttl,
        )
        if not created:
            logger.info("delivery.duplicate", delivery_id=delivery_id)
            return False
        return True

    async def release(self, delivery_id: str) -> None:
        await self._redis.delete(self._key(delivery_id))
        logger.info("delivery.released", delivery_id=delivery_id)

    async def set_state(self, delivery_id: str, state: DeliveryState) -> None:
        """Update the state while keeping the remaining dedup window.

        ``KEEPTTL`` preserves the original expiry; if the key already expired
        (or was never claimed, e.g. a replay id) it is written with a full TTL.
        """
        key = self._key(delivery_id)
        updated = await self._redis.set(key, self._encode(state), xx=True, keepttl=True)
        if not updated:
            await self._redis.set(key, self._encode(state), ex=self._ttl)

    async def get_status(self, delivery_id: str) -> DeliveryStatus | None:
        raw = await self._redis.get(self._key(delivery_id))
        if raw is None:
            return None
        data = json.loads(raw)
        return DeliveryStatus(
            delivery_id=delivery_id,
            state=DeliveryState(data["state"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
