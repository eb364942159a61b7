"""Tests for tolerant JSON extraction from model output."""

import pytest

from narrative_radar.core.errors import ParseError
from narrative_radar.llm.parsing import (
    EXCERPT_CHARS,
    excerpt,
    extract_json_object,
    parse_llm_json,
    strip_code_fence,
)


class TestStripCodeFence:
    def test_json_fence(self):
        assert strip_code_fence('```json\n{"a":1}\n```') == '{"a":1}'

    def test_bare_fence(self):
        assert strip_code_fence('```\n{"a":1}\n```') == '{"a":1}'

    def test_no_fence(self):
        assert strip_code_fence('  {"a":1}  ') == '{"a":1}'


class TestParseLLMJson:
    """The three recovery steps, in order."""

    def test_fenced(self):
        assert parse_llm_json('```json\n{"a":1}\n```') == {"a": 1}

    def test_trailing_commentary(self):
        assert parse_llm_json('{"a":1} trailing notes') == {"a": 1}

    def test_leading_commentary(self):
        assert parse_llm_json('Here you go:\n{"narratives": []}\nHope this helps!') == {"narratives": []}

    def test_braces_inside_strings(self):
        content = '{"name": "curly } brace", "n": {"x": "{"}} and more'
        assert parse_llm_json(content) == {"name": "curly } brace", "n": {"x": "{"}}

    def test_escaped_quotes(self):
        content = r'{"quote": "he said \"}\" loudly"} -- done'
        assert parse_llm_json(content) == {"quote": 'he said "}" loudly'}

    def test_skips_unparseable_first_object(self):
        content = "{not: json} then {\"a\": 2}"
        assert parse_llm_json(content) == {"a": 2}

    def test_top_level_array_is_not_an_object(self):
        with pytest.raises(ParseError):
            parse_llm_json("[1, 2, 3]")

    def test_not_json_raises_with_excerpt(self):
        with pytest.raises(ParseError) as exc_info:
            parse_llm_json("not json")
        assert exc_info.value.excerpt == "not json"

    def test_unbalanced_raises(self):
        with pytest.raises(ParseError):
            parse_llm_json('{"a": {"b": 1}')

    def test_empty(self):
        with pytest.raises(ParseError):
            parse_llm_json("")

    def test_excerpt_is_bounded(self):
        content = "x" * 5000
        with pytest.raises(ParseError) as exc_info:
            parse_llm_json(content)
        snippet = exc_info.value.excerpt
        assert len(snippet) < 2 * EXCERPT_CHARS + 100
        assert snippet.startswith("x" * EXCERPT_CHARS)
        assert "chars omitted" in snippet


class TestHelpers:
    def test_excerpt_short_text_unchanged(self):
        assert excerpt("abc", limit=10) == "abc"

    def test_excerpt_keeps_head_and_tail(self):
        text = "HEAD" + "-" * 100 + "TAIL"
        snippet = excerpt(text, limit=4)
        assert snippet.startswith("HEAD")
        assert snippet.endswith("TAIL")

    def test_extract_returns_none_without_object(self):
        assert extract_json_object("no braces here") is None
