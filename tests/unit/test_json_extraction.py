"""Unit tests for tolerant JSON object extraction from model output."""

from __future__ import annotations

import pytest

from src.utils.errors import JSONExtractionFailure
from src.utils.json_extraction import extract_json_object, parse_json_object


class TestExtractJsonObject:
    def test_plain_object(self) -> None:
        assert extract_json_object('{"facts": []}') == {"facts": []}

    def test_object_surrounded_by_prose(self) -> None:
        raw = 'Sure! Here are the facts:\n{"facts": [{"category": "billing"}]}\nLet me know.'
        assert extract_json_object(raw) == {"facts": [{"category": "billing"}]}

    def test_markdown_fence(self) -> None:
        raw = '```json\n{"a": {"b": 1}}\n```'
        assert extract_json_object(raw) == {"a": {"b": 1}}

    def test_no_object(self) -> None:
        with pytest.raises(JSONExtractionFailure, match="No JSON object"):
            extract_json_object("I could not find any facts.")

    def test_malformed_object(self) -> None:
        with pytest.raises(JSONExtractionFailure, match="Malformed"):
            extract_json_object('{"facts": [,]}')

    def test_greedy_span_across_two_objects_fails(self) -> None:
        # first "{" to last "}" spans both objects, which is not valid JSON
        with pytest.raises(JSONExtractionFailure):
            extract_json_object('{"a": 1} and then {"b": 2}')

    def test_empty_input(self) -> None:
        with pytest.raises(JSONExtractionFailure):
            extract_json_object("")


class TestParseJsonObject:
    def test_success_has_no_diagnostic(self) -> None:
        result = parse_json_object('prefix {"ok": true} suffix')
        assert result.data == {"ok": True}
        assert result.diagnostic is None

    def test_failure_returns_diagnostic(self) -> None:
        data, diagnostic = parse_json_object("no json here")
        assert data is None
        assert diagnostic
