"""Tests for lenient JSON parsing of model output."""

import pytest

from ragbot.core.json_repair import extract_json_block, parse_llm_json, repair_json


class TestExtractJsonBlock:
    """Test payload extraction."""

    def test_fenced_block(self) -> None:
        """Should prefer a fenced code block."""
        text = 'Here you go:\n```json\n{"entities": []}\n```\nAnything else?'

        assert extract_json_block(text) == '{"entities": []}'

    def test_embedded_object(self) -> None:
        """Should take the outermost object from surrounding prose."""
        assert extract_json_block('Result: {"a": {"b": 1}} done') == '{"a": {"b": 1}}'

    def test_array(self) -> None:
        """Should extract arrays when they come first."""
        assert extract_json_block('list: [1, 2] and {"x": 1}') == "[1, 2]"

    def test_no_json(self) -> None:
        """Should return None when there is nothing to extract."""
        assert extract_json_block("no structured data here") is None


class TestRepairJson:
    """Test textual repairs."""

    @pytest.mark.parametrize(
        ("broken", "fixed"),
        [
            ('{"a": 1,}', '{"a": 1}'),
            ("[1, 2, ]", "[1, 2]"),
            ("[1,, 2]", "[1, 2]"),
            ("[, 1]", "[ 1]"),
            ('[{"a": 1} {"b": 2}]', '[{"a": 1},{"b": 2}]'),
        ],
    )
    def test_comma_repairs(self, broken: str, fixed: str) -> None:
        """Should fix trailing, doubled, leading and missing commas."""
        assert repair_json(broken) == fixed

    def test_smart_quotes(self) -> None:
        """Should replace curly quotes with straight ones."""
        assert repair_json("{“a”: “b”}") == '{"a": "b"}'

    def test_control_characters(self) -> None:
        """Should replace raw control characters with spaces."""
        assert repair_json('{"a":\t"b\x07"}') == '{"a": "b "}'


class TestParseLlmJson:
    """Test end-to-end parsing."""

    def test_valid_json(self) -> None:
        """Should parse valid JSON directly."""
        assert parse_llm_json('{"ok": true}') == {"ok": True}

    def test_repairs_fenced_output(self) -> None:
        """Should recover JSON wrapped in prose with trailing commas."""
        text = 'Sure!\n```json\n{"entities": [{"name": "ACME",},],}\n```'

        assert parse_llm_json(text) == {"entities": [{"name": "ACME"}]}

    def test_default_when_unrecoverable(self) -> None:
        """Should return the default for hopeless input."""
        assert parse_llm_json("{not json at all}", default={}) == {}
        assert parse_llm_json("", default=[]) == []
        assert parse_llm_json("plain text") is None
