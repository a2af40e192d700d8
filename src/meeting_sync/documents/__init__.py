"""Document tree writes -- markdown section model, mutation engine, git access."""

from __future__ import annotations

from src.meeting_sync.documents.mutations import (
    BatchMeta,
    CommitStatus,
    MutationBatchResult,
    MutationEngine,
    MutationResult,
)

__all__ = [
    "BatchMeta",
    "CommitStatus",
    "MutationBatchResult",
    "MutationEngine",
    "MutationResult",
]
