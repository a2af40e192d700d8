"""Delivery pipeline -- worker pool, failure policy, dead letters, replay."""

from __future__ import annotations

from src.meeting_sync.pipeline.dead_letters import DeadLetter, DeadLetterStore
from src.meeting_sync.pipeline.orchestrator import Orchestrator, PipelineOutcome, PipelineState

__all__ = [
    "DeadLetter",
    "DeadLetterStore",
    "Orchestrator",
    "PipelineOutcome",
    "PipelineState",
]
