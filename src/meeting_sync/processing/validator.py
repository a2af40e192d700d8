"""OutputValidator -- schema and cross-field checks on AI output.

The raw text is decoded to JSON (tolerating a fenced block or prose around
a single object), validated as ProcessingResult, and, failing that, as
ErrorResponse so "the model declined" is distinguishable from "the model
produced garbage". Cross-field problems on a schema-valid result are
returned as warnings; they never abort the pipeline.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from src.meeting_sync.core.exceptions import OutputSchemaError, ProcessorDeclinedError
from src.meeting_sync.processing.schemas import (
    PRIORITY_MARKERS,
    ErrorResponse,
    MutationAction,
    ProcessingResult,
)

logger = structlog.get_logger(__name__)

SAFE_PATH_RE = re.compile(r"^[a-zA-Z0-9\-_/.]+$")
_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


@dataclass
class ValidationOutcome:
    """A schema-valid result plus any cross-field warnings."""

    result: ProcessingResult
    warnings: list[str] = field(default_factory=list)


def decode_json(raw_text: str) -> Any:
    """Decode model output that should be one JSON object.

    Raises:
        OutputSchemaError: No JSON object could be decoded.
    """
    text = raw_text.strip()
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)
    elif not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start:
            text = text[start:end + 1]
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise OutputSchemaError(f"Processor output is not valid JSON: {exc}") from exc


def check_file_paths(result: ProcessingResult, root_marker: str) -> list[str]:
    """Path prefix / character-set / section-presence checks."""
    problems: list[str] = []
    for update in result.fileUpdates:
        if not update.path.startswith(root_marker):
            problems.append(f"Invalid path prefix: {update.path}")
        if not SAFE_PATH_RE.match(update.path):
            problems.append(f"Invalid characters in path: {update.path}")
        if ".." in update.path.split("/"):
            problems.append(f"Parent directory segment in path: {update.path}")
        if update.action == MutationAction.UPDATE_SECTION and not (update.section or "").strip():
            problems.append(f"Missing section for update_section action: {update.path}")
    return problems


def check_priorities(result: ProcessingResult) -> list[str]:
    """Every action item's marker must be the one its priority maps to."""
    return [
        f"Priority mismatch for task: {item.task}"
        for item in result.actionItems
        if PRIORITY_MARKERS[item.priority] != item.priorityEmoji
    ]


class OutputValidator:
    """Validates raw AI output before any mutation is applied.

    Args:
        root_marker: Prefix every file path must carry.
    """

    def __init__(self, root_marker: str = "claude-code-os-implementation/") -> None:
        self._root_marker = root_marker

    def validate(self, raw_text: str) -> ValidationOutcome:
        """Validate raw output text.

        Returns:
            ValidationOutcome with the parsed result and warnings.

        Raises:
            ProcessorDeclinedError: Output is a well-formed error response.
            OutputSchemaError: Output matches neither schema.
        """
        data = decode_json(raw_text)

        try:
            result = ProcessingResult.model_validate(data)
        except ValidationError as result_exc:
            try:
                declined = ErrorResponse.model_validate(data)
            except ValidationError:
                logger.error(
                    "processor.output_invalid",
                    error_count=result_exc.error_count(),
                    errors=result_exc.errors(include_url=False, include_context=False)[:5],
                )
                raise OutputSchemaError(
                    f"Invalid processor response format: {result_exc.error_count()} error(s)"
                ) from result_exc

            logger.warning(
                "processor.declined",
                error_type=declined.errorType.value,
                error_message=declined.errorMessage,
                requires_human_review=declined.requiresHumanReview,
            )
            raise ProcessorDeclinedError(
                declined.errorType.value,
                declined.errorMessage,
                declined.requiresHumanReview,
            ) from result_exc

        warnings = check_file_paths(result, self._root_marker) + check_priorities(result)
        if warnings:
            logger.warning("processor.output_warnings", warnings=warnings)
        return ValidationOutcome(result=result, warnings=warnings)
