"""
Tests for JSON recovery of model output.
"""

import pytest

from content_trust.exceptions import JSONRecoveryError
from content_trust.llm.json_recovery import recover_json


class TestDirectParse:
    """Valid JSON should pass straight through."""

    def test_valid_object(self):
        result = recover_json('{"a": 1, "b": [true, null]}')
        assert result.parsed == {"a": 1, "b": [True, None]}
        assert result.recovered is False
        assert result.fixes_applied == []

    def test_valid_array(self):
        assert recover_json("[1, 2, 3]").parsed == [1, 2, 3]

    @pytest.mark.parametrize("raw", [None, "", "   \n"])
    def test_empty_input_raises(self, raw):
        with pytest.raises(JSONRecoveryError):
            recover_json(raw)


class TestCleanupSteps:
    """Cosmetic problems fixed before structural repair."""

    def test_code_fence(self):
        result = recover_json('```json\n{"a": 1}\n```')
        assert result.parsed == {"a": 1}
        assert result.fixes_applied == ["strip_fences"]

    def test_surrounding_prose(self):
        result = recover_json('Here is the JSON: {"a": [1, 2]} Hope this helps!')
        assert result.parsed == {"a": [1, 2]}

    def test_unclosed_fence(self):
        result = recover_json('```json\n{"a": 1}')
        assert result.parsed == {"a": 1}

    def test_bare_fraction(self):
        result = recover_json('{"score": 0.}')
        assert result.parsed == {"score": 0.0}
        assert "bare_fractions" in result.fixes_applied

    def test_single_quotes(self):
        result = recover_json("{'term': 'osmosis', 'tags': ['biology']}")
        assert result.parsed == {"term": "osmosis", "tags": ["biology"]}
        assert "single_quotes" in result.fixes_applied

    def test_comments_removed(self):
        raw = '{\n  "a": 1, // first\n  /* block */ "b": 2\n}'
        result = recover_json(raw)
        assert result.parsed == {"a": 1, "b": 2}
        assert "strip_comments" in result.fixes_applied

    def test_quoted_phrase_inside_string_kept(self):
        raw = '{"a": "the word \'osmosis\': water movement", "b": [1, 2'
        result = recover_json(raw)
        assert result.parsed == {"a": "the word 'osmosis': water movement", "b": [1, 2]}
        assert result.fixes_applied == ["close_brackets"]

    def test_single_quotes_fixed_around_double_quoted_text(self):
        raw = "{'note': 'fine', \"text\": \"Mark 'a', 'b' and 'c'\"}"
        assert recover_json(raw).parsed == {"note": "fine", "text": "Mark 'a', 'b' and 'c'"}

    def test_fraction_lookalike_inside_string_kept(self):
        raw = '{"text": "Step 1. then [2. ]", "score": 1.}'
        assert recover_json(raw).parsed == {"text": "Step 1. then [2. ]", "score": 1.0}

    def test_comment_markers_inside_strings_kept(self):
        raw = '{"url": "http://example.com", "n": 1 // trailing\n}'
        assert recover_json(raw).parsed == {"url": "http://example.com", "n": 1}


class TestStructuralRepair:
    """Truncated and malformed output."""

    def test_trailing_comma(self):
        result = recover_json('{"a": [1, 2,], "b": 3,}')
        assert result.parsed == {"a": [1, 2], "b": 3}
        assert "trailing_commas" in result.fixes_applied

    def test_comma_before_bracket_inside_string_kept(self):
        raw = '{"assertions": [{"assertion": "Options are [a, b, ]", "category": "fact"},]}'
        result = recover_json(raw)
        assert result.parsed == {
            "assertions": [{"assertion": "Options are [a, b, ]", "category": "fact"}]
        }
        assert "trailing_commas" in result.fixes_applied

    def test_truncated_after_comma_before_string(self):
        raw = '{"items": ["a, ", "b",'
        assert recover_json(raw).parsed == {"items": ["a, ", "b"]}

    def test_truncated_inside_string(self):
        raw = (
            '{"assertions": [{"text": "A", "category": "fact"}, '
            '{"text": "B is cut off mid-sen'
        )
        result = recover_json(raw)
        assert result.parsed == {"assertions": [{"text": "A", "category": "fact"}]}
        assert result.recovered is True
        assert "drop_unterminated_entry" in result.fixes_applied
        assert "close_brackets" in result.fixes_applied

    def test_missing_closers(self):
        result = recover_json('{"a": [1, {"b": 2}')
        assert result.parsed == {"a": [1, {"b": 2}]}
        assert result.fixes_applied == ["close_brackets"]

    def test_truncated_after_colon(self):
        assert recover_json('{"a": 1, "b": ').parsed == {"a": 1, "b": None}

    def test_dangling_key(self):
        assert recover_json('{"a": 1, "b"').parsed == {"a": 1, "b": None}

    def test_dangling_string_in_array_is_value(self):
        assert recover_json('["x", "y"').parsed == ["x", "y"]

    def test_truncated_after_complete_entry(self):
        raw = '{"items": [{"t": 1}, {"t": 2},'
        assert recover_json(raw).parsed == {"items": [{"t": 1}, {"t": 2}]}

    def test_escaped_quotes_do_not_confuse_repair(self):
        raw = '{"items": ["say \\"hi\\"", "cut'
        assert recover_json(raw).parsed == {"items": ["say \"hi\""]}

    def test_fenced_and_truncated(self):
        raw = '```json\n{"questions": [{"question": "Q1"}, {"question": "Q2'
        assert recover_json(raw).parsed == {"questions": [{"question": "Q1"}]}


class TestFailure:
    """Unrecoverable output."""

    def test_error_carries_diagnostics(self):
        raw = "The model declined to answer. " * 20
        with pytest.raises(JSONRecoveryError) as exc_info:
            recover_json(raw, context="chunk 2/5")

        err = exc_info.value
        assert err.raw_length == len(raw)
        assert err.context == "chunk 2/5"
        assert len(err.tail) <= 200
        assert err.tail.endswith("answer.")
        assert "chunk 2/5" in str(err)
