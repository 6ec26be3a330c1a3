"""Tests for extracting structured values from model output."""

import json
import logging

import pytest

from reforge.parsing import (
    balanced_span,
    close_structure,
    extract,
    extract_with_details,
    iter_balanced_spans,
    parse_json_response,
    parse_structure,
    recover_truncated,
    scan_balance,
    unclosed_start,
)
from reforge.types import ExtractionError


class TestDirectParse:
    """Tests for text that is already valid JSON."""

    @pytest.mark.parametrize(
        "text",
        [
            '{"a": 1}',
            "[1, 2, 3]",
            '  {"nested": {"x": [1, {"y": null}]}}  ',
            '"just a string"',
            "42",
            "true",
            "null",
        ],
    )
    def test_valid_json_parses_as_is(self, text: str):
        """Any valid JSON document should come back exactly as json.loads reads it."""
        assert extract(text) == json.loads(text)

    def test_strategy_reported(self):
        result = extract_with_details('{"a": 1}')
        assert result.strategy == "direct"
        assert result.recovered is False

    def test_parse_json_response_alias(self):
        assert parse_json_response('{"ok": true}') == {"ok": True}


class TestFencedBlocks:
    """Tests for markdown code fences."""

    def test_json_fence_with_preamble(self):
        text = 'Here is the JSON:\n```json\n{"name": "Alice"}\n```'
        result = extract_with_details(text)
        assert result.value == {"name": "Alice"}
        assert result.strategy == "fenced"

    def test_unmarked_fence(self):
        assert extract('Result:\n```\n[1, 2]\n```\nDone.') == [1, 2]

    def test_fence_tag_is_case_insensitive(self):
        assert extract('```JSON\n{"a": 1}\n```') == {"a": 1}

    def test_first_valid_fence_wins(self):
        text = 'Draft:\n```json\n{bad}\n```\nFinal:\n```json\n{"ok": true}\n```'
        assert extract(text) == {"ok": True}


class TestGreedySpans:
    """Tests for first-opening to last-closing bracket spans."""

    def test_object_surrounded_by_prose(self):
        text = 'The result: {"a": 1, "b": {"c": 2}} hope this helps'
        result = extract_with_details(text)
        assert result.value == {"a": 1, "b": {"c": 2}}
        assert result.strategy == "greedy"

    def test_array_surrounded_by_prose(self):
        result = extract_with_details("values: [1, 2, 3] done")
        assert result.value == [1, 2, 3]
        assert result.strategy == "greedy"


class TestStructuralScan:
    """Tests for the depth-aware balanced span scan."""

    def test_first_of_two_objects(self):
        result = extract_with_details('first {"a": 1} and then {"b": 2}')
        assert result.value == {"a": 1}
        assert result.strategy == "structural"

    def test_brackets_inside_strings_are_ignored(self):
        text = 'note {"msg": "use } carefully"} and {"x": 1}'
        assert extract(text) == {"msg": "use } carefully"}

    def test_escaped_quotes_inside_strings(self):
        text = r'x {"q": "say \"hi\" }"} y {"z": 1}'
        assert extract(text) == {"q": 'say "hi" }'}


class TestCleaning:
    """Tests for comment and preamble stripping."""

    def test_comments_are_removed(self):
        text = '{\n  "a": 1, // the a\n  /* block */ "b": 2\n}'
        result = extract_with_details(text)
        assert result.value == {"a": 1, "b": 2}
        assert result.strategy == "cleaned"


class TestTruncationRecovery:
    """Tests for output cut off mid-structure."""

    def test_unclosed_array_and_object(self):
        result = extract_with_details('{"a": 1, "b": [1, 2')
        assert result.value == {"a": 1, "b": [1, 2]}
        assert result.strategy == "truncation"
        assert result.recovered is True

    def test_cut_inside_string(self):
        assert extract('{"name": "Al') == {"name": "Al"}

    def test_trailing_comma_is_trimmed(self):
        value = extract('{"items": [1, 2, 3], "more": [4,')
        assert isinstance(value, dict)
        assert value["items"] == [1, 2, 3]

    def test_prose_before_truncated_json(self):
        assert extract('Here you go: {"a": [1, 2') == {"a": [1, 2]}

    def test_closed_brackets_in_prose_are_skipped(self):
        result = extract_with_details('Result [v2]: {"a": [1, 2')
        assert result.value == {"a": [1, 2]}
        assert result.strategy == "truncation"

    def test_closed_inner_element_is_found_before_recovery(self):
        result = extract_with_details('{"items": [{"a": 1}, {"b": 2}, {"c": ')
        assert result.value == {"a": 1}
        assert result.strategy == "structural"
        assert result.recovered is False

    def test_unterminated_fence(self):
        assert extract('```json\n{"a": {"b": 1') == {"a": {"b": 1}}

    def test_trim_budget_bounds_recovery(self):
        text = '{"a": 1,'
        assert isinstance(extract(text), dict)
        with pytest.raises(ExtractionError):
            extract(text, max_trim_attempts=0)

    def test_recovery_logs_warning(self, caplog):
        caplog.set_level(logging.WARNING)
        extract('{"a": [1')
        assert any("truncated" in record.message for record in caplog.records)

    def test_recover_truncated_without_brackets(self):
        assert recover_truncated("no structure here") == (False, None)


class TestFailures:
    """Tests for text with no recoverable JSON."""

    def test_plain_prose_raises(self):
        with pytest.raises(ExtractionError) as exc_info:
            extract("not json at all")
        assert "Could not extract valid JSON" in str(exc_info.value)
        assert "not json at all" in str(exc_info.value)
        assert exc_info.value.raw_content == "not json at all"

    def test_preview_is_limited(self):
        with pytest.raises(ExtractionError) as exc_info:
            extract("x" * 500)
        message = str(exc_info.value)
        assert "x" * 200 in message
        assert "x" * 201 not in message

    @pytest.mark.parametrize("text", ["NaN", "Infinity", "-Infinity"])
    def test_non_standard_constants_are_rejected(self, text: str):
        with pytest.raises(ExtractionError):
            extract(text)

    @pytest.mark.parametrize("text", ["", "   \n\t", None, 123])
    def test_empty_or_non_text_input(self, text):
        with pytest.raises(ExtractionError, match="No text provided"):
            extract(text)


class TestScanning:
    """Tests for the low-level scanning helpers."""

    def test_scan_balance_ignores_string_contents(self):
        assert scan_balance('{"a": [1, "]"') == (["}", "]"], False)

    def test_scan_balance_reports_open_string(self):
        assert scan_balance('{"a": "x') == (["}"], True)

    def test_close_structure(self):
        assert close_structure('{"a": [1', ["}", "]"], False) == '{"a": [1]}'
        assert close_structure('{"a": "x', ["}"], True) == '{"a": "x"}'

    def test_balanced_span_rejects_mismatched_brackets(self):
        assert balanced_span('{"a": [1}', 0) is None

    def test_balanced_span_stops_at_matching_close(self):
        assert balanced_span('{"a": {"b": 1}} tail', 0) == '{"a": {"b": 1}}'

    def test_iter_balanced_spans(self):
        spans = list(iter_balanced_spans('[1] {"a": 2}'))
        assert spans == ["[1]", '{"a": 2}']

    def test_parse_structure_rejects_nan(self):
        assert parse_structure('{"a": NaN}') == (False, None)

    def test_unclosed_start_skips_matched_pairs(self):
        assert unclosed_start('see [v2] then {"a": [1') == 14
        assert unclosed_start("[1] {}") is None

    def test_parse_structure_rejects_scalars(self):
        assert parse_structure("42") == (False, None)
        assert parse_structure("[1]") == (True, [1])
