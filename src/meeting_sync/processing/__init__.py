"""AI output contract -- result schemas, prompt builder, and output validation.

Exports:
    ProcessingResult: Validated structured result from the AI collaborator.
    FileMutation: One declarative document-tree change.
    OutputValidator: Schema + cross-field validation of raw model output.
"""

from __future__ import annotations

from src.meeting_sync.processing.schemas import FileMutation, MutationAction, ProcessingResult
from src.meeting_sync.processing.validator import OutputValidator, ValidationOutcome

__all__ = [
    "FileMutation",
    "MutationAction",
    "OutputValidator",
    "ProcessingResult",
    "ValidationOutcome",
]
