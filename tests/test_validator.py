"""Tests for OutputValidator: decoding, schema fallback, cross-field warnings."""

from __future__ import annotations

import json

import pytest

from src.meeting_sync.core.exceptions import OutputSchemaError, ProcessorDeclinedError
from src.meeting_sync.processing.schemas import PRIORITY_MARKERS, Priority, PriorityMarker
from src.meeting_sync.processing.validator import OutputValidator, decode_json


class TestDecodeJson:
    """Tolerant JSON extraction from model output."""

    def test_plain_object(self):
        assert decode_json('{"a": 1}') == {"a": 1}

    def test_fenced_block(self):
        assert decode_json('Here you go:\n```json\n{"a": 1}\n```\nDone.') == {"a": 1}

    def test_prose_around_object(self):
        assert decode_json('Sure! {"a": {"b": 2}} Hope that helps.') == {"a": {"b": 2}}

    def test_garbage_raises(self):
        with pytest.raises(OutputSchemaError):
            decode_json("I could not do it")


class TestPriorityMarkers:
    """Priority/marker mapping is a bijection over the fixed set."""

    def test_each_priority_has_distinct_marker(self):
        assert set(PRIORITY_MARKERS) == set(Priority)
        assert set(PRIORITY_MARKERS.values()) == set(PriorityMarker)
        assert len(set(PRIORITY_MARKERS.values())) == len(PRIORITY_MARKERS)


class TestOutputValidator:
    """Schema validation and post-hoc checks."""

    def test_valid_result_has_no_warnings(self, processing_result):
        outcome = OutputValidator().validate(json.dumps(processing_result))
        assert outcome.warnings == []
        assert len(outcome.result.fileUpdates) == 2
        assert outcome.result.classification.type.value == "internal-partner"

    def test_priority_mismatch_is_warning(self, processing_result):
        processing_result["actionItems"][0]["priorityEmoji"] = "\U0001F7E2"
        outcome = OutputValidator().validate(json.dumps(processing_result))
        assert outcome.warnings == ["Priority mismatch for task: Send proposal to Acme"]

    def test_path_problems_are_warnings(self, processing_result):
        processing_result["fileUpdates"].append(
            {"action": "create", "path": "other-root/../etc/passwd", "content": "x"}
        )
        processing_result["fileUpdates"].append(
            {"action": "update_section", "path": "claude-code-os-implementation/a b.md", "content": "x"}
        )
        outcome = OutputValidator().validate(json.dumps(processing_result))

        assert "Invalid path prefix: other-root/../etc/passwd" in outcome.warnings
        assert "Parent directory segment in path: other-root/../etc/passwd" in outcome.warnings
        assert "Invalid characters in path: claude-code-os-implementation/a b.md" in outcome.warnings
        assert (
            "Missing section for update_section action: claude-code-os-implementation/a b.md"
            in outcome.warnings
        )

    def test_error_response_raises_declined(self):
        raw = json.dumps({
            "error": True,
            "errorType": "no_transcript",
            "errorMessage": "Transcript was empty",
            "requiresHumanReview": True,
        })
        with pytest.raises(ProcessorDeclinedError) as exc_info:
            OutputValidator().validate(raw)
        assert exc_info.value.error_type == "no_transcript"
        assert exc_info.value.requires_human_review is True

    def test_neither_shape_raises_schema_error(self, processing_result):
        del processing_result["classification"]
        with pytest.raises(OutputSchemaError):
            OutputValidator().validate(json.dumps(processing_result))

    def test_empty_file_updates_rejected(self, processing_result):
        processing_result["fileUpdates"] = []
        with pytest.raises(OutputSchemaError):
            OutputValidator().validate(json.dumps(processing_result))

    def test_summary_longer_than_200_chars_rejected(self, processing_result):
        processing_result["summary"]["oneLineSummary"] = "x" * 201
        with pytest.raises(OutputSchemaError):
            OutputValidator().validate(json.dumps(processing_result))
