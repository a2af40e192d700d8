"""Dead-letter store for deliveries that failed after acknowledgment.

One JSON file per failure under the dead-letter directory, named
``<deliveryId>-<epochMillis>.json`` and holding ``{deliveryId, timestamp,
error, payload}``. Records are listed for review and replayed through
``Orchestrator.retry``; a record is deleted only after a successful replay.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.meeting_sync.core.exceptions import DeadLetterNotFoundError

logger = structlog.get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class DeadLetter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    delivery_id: str = Field(alias="deliveryId")
    timestamp: datetime
    error: str
    payload: dict[str, Any]
    file_name: str | None = Field(default=None, exclude=True)


def _file_stem(delivery_id: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", delivery_id)


class DeadLetterStore:
    """File-backed dead letters.

    Args:
        directory: Where dead-letter files live; created on first write.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    # ── Blocking helpers ─────────────────────────────────────────────────────

    def _write(self, letter: DeadLetter) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        millis = int(letter.timestamp.timestamp() * 1000)
        # repeated failures within one millisecond must not overwrite each other
        while (self.directory / f"{_file_stem(letter.delivery_id)}-{millis}.json").exists():
            millis += 1
        name = f"{_file_stem(letter.delivery_id)}-{millis}.json"
        target = self.directory / name
        tmp = target.with_suffix(".json.tmp")
        tmp.write_text(
            json.dumps(letter.model_dump(mode="json", by_alias=True), indent=2),
            encoding="utf-8",
        )
        os.replace(tmp, target)
        return name

    def _read_all(self) -> list[DeadLetter]:
        if not self.directory.is_dir():
            return []
        letters: list[DeadLetter] = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                letter = DeadLetter.model_validate(data)
            except (OSError, ValueError, ValidationError) as exc:
                logger.warning("dead_letter.unreadable", file=path.name, error=str(exc))
                continue
            letter.file_name = path.name
            letters.append(letter)
        letters.sort(key=lambda letter: letter.timestamp, reverse=True)
        return letters

    def _matching(self, delivery_id: str) -> list[DeadLetter]:
        return [letter for letter in self._read_all() if letter.delivery_id == delivery_id]

    # ── Public API ───────────────────────────────────────────────────────────

    async def save(self, delivery_id: str, error: str, payload: dict[str, Any]) -> DeadLetter:
        letter = DeadLetter(
            delivery_id=delivery_id,
            timestamp=datetime.now(timezone.utc),
            error=error,
            payload=payload,
        )
        letter.file_name = await asyncio.to_thread(self._write, letter)
        logger.warning(
            "dead_letter.saved",
            delivery_id=delivery_id,
            file=letter.file_name,
            error=error,
        )
        return letter

    async def list_all(self) -> list[DeadLetter]:
        """All records, newest first."""
        return await asyncio.to_thread(self._read_all)

    async def get(self, delivery_id: str) -> DeadLetter:
        """Newest record for a delivery.

        Raises:
            DeadLetterNotFoundError: No record for ``delivery_id``.
        """
        matches = await asyncio.to_thread(self._matching, delivery_id)
        if not matches:
            raise DeadLetterNotFoundError(f"No dead letter for delivery {delivery_id}")
        return matches[0]

    async def delete(self, delivery_id: str) -> int:
        """Remove every record for a delivery. Returns how many were removed."""

        def _delete() -> int:
            removed = 0
            for letter in self._matching(delivery_id):
                (self.directory / letter.file_name).unlink(missing_ok=True)
                removed += 1
            return removed

        removed = await asyncio.to_thread(_delete)
        if removed:
            logger.info("dead_letter.deleted", delivery_id=delivery_id, removed=removed)
        return removed
