"""Tests for parsing the model's JSON decision protocol."""

import json

import pytest

from libra.services.agent.protocol import (
    FinalAnswerDecision,
    Malformed,
    ToolCallDecision,
    extract_json_candidate,
    normalize_decision,
    parse_decision,
)

FINAL = {
    "type": "final_answer",
    "thought": "done",
    "final_answer": {"summary": "S", "detailed_answer": "D", "sources": ["https://a.example"]},
}


class TestExtractJsonCandidate:
    """Tests for locating the JSON object inside raw model output."""

    def test_plain_object_unchanged(self):
        raw = '{"type": "tool_call"}'
        assert extract_json_candidate(raw) == raw

    def test_json_fence(self):
        raw = 'Here you go:\n```json\n{"a": 1}\n```\nThanks'
        assert extract_json_candidate(raw) == '{"a": 1}'

    def test_bare_fence(self):
        raw = '```\n{"a": 1}\n```'
        assert extract_json_candidate(raw) == '{"a": 1}'

    def test_surrounding_prose(self):
        raw = 'I will search now. {"a": {"b": 2}} Let me know.'
        assert extract_json_candidate(raw) == '{"a": {"b": 2}}'

    def test_no_braces_returns_trimmed_input(self):
        assert extract_json_candidate("  nothing here  ") == "nothing here"


class TestNormalizeDecision:
    """Tests for repairing tool calls that put the tool name in 'type'."""

    def test_canonical_tool_call_unchanged(self):
        obj = {"type": "tool_call", "thought": "t", "tool_name": "web_search", "tool_arguments": {}}
        assert normalize_decision(obj) is obj

    def test_final_answer_unchanged(self):
        assert normalize_decision(FINAL) is FINAL

    def test_non_string_type_unchanged(self):
        obj = {"type": 3}
        assert normalize_decision(obj) is obj

    def test_tool_name_as_type(self):
        obj = {"type": "web_search", "thought": "look it up", "query": "x"}
        assert normalize_decision(obj) == {
            "type": "tool_call",
            "thought": "look it up",
            "tool_name": "web_search",
            "tool_arguments": {"query": "x"},
        }

    def test_top_level_keys_merge_over_tool_arguments(self):
        obj = {
            "type": "vector_search",
            "thought": "t",
            "tool_arguments": {"query": "old", "topK": 3},
            "query": "new",
        }
        result = normalize_decision(obj)
        assert result["tool_arguments"] == {"query": "new", "topK": 3}

    def test_explicit_tool_name_wins_over_type(self):
        obj = {"type": "search", "thought": "t", "tool_name": "drive_search", "query": "q"}
        result = normalize_decision(obj)
        assert result["tool_name"] == "drive_search"
        assert result["tool_arguments"] == {"query": "q"}

    def test_thought_omitted_when_absent(self):
        result = normalize_decision({"type": "web_scrape", "url": "https://x.example"})
        assert "thought" not in result

    def test_does_not_mutate_input(self):
        obj = {"type": "web_search", "thought": "t", "tool_arguments": {"a": 1}, "query": "x"}
        snapshot = json.loads(json.dumps(obj))
        normalize_decision(obj)
        assert obj == snapshot


class TestParseDecision:
    """Tests for turning raw output into a decision."""

    def test_tool_call(self):
        raw = json.dumps(
            {
                "type": "tool_call",
                "thought": "search",
                "tool_name": "web_search",
                "tool_arguments": {"query": "python"},
            }
        )
        decision = parse_decision(raw)
        assert decision == ToolCallDecision(
            thought="search", tool_name="web_search", tool_arguments={"query": "python"}
        )

    def test_final_answer(self):
        decision = parse_decision(json.dumps(FINAL))
        assert isinstance(decision, FinalAnswerDecision)
        assert decision.final_answer.summary == "S"
        assert decision.final_answer.sources == ["https://a.example"]

    def test_fenced_final_answer(self):
        decision = parse_decision(f"```json\n{json.dumps(FINAL)}\n```")
        assert isinstance(decision, FinalAnswerDecision)

    def test_normalized_tool_call(self):
        decision = parse_decision('{"type": "web_search", "thought": "t", "query": "x"}')
        assert decision == ToolCallDecision(
            thought="t", tool_name="web_search", tool_arguments={"query": "x"}
        )

    def test_null_arguments_become_empty(self):
        raw = '{"type": "tool_call", "thought": "t", "tool_name": "web_search", "tool_arguments": null}'
        decision = parse_decision(raw)
        assert isinstance(decision, ToolCallDecision)
        assert decision.tool_arguments == {}

    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            "{broken",
            "[1, 2, 3]",
            '{"thought": "no type"}',
            '{"type": "tool_call", "tool_name": "web_search", "tool_arguments": {}}',
            '{"type": "tool_call", "thought": "t", "tool_arguments": {}}',
            '{"type": "tool_call", "thought": "t", "tool_name": "x", "tool_arguments": [1]}',
            '{"type": "final_answer", "thought": "t"}',
            '{"type": "final_answer", "thought": "t", "final_answer": {"summary": "s"}}',
            '{"type": "final_answer", "thought": "t", '
            '"final_answer": {"summary": "s", "detailed_answer": "d", "sources": [1]}}',
        ],
    )
    def test_malformed(self, raw):
        decision = parse_decision(raw)
        assert isinstance(decision, Malformed)
        assert decision.raw == raw
        assert decision.reason

    def test_deeply_nested_input_does_not_raise(self):
        raw = "[" * 100_000 + "]" * 100_000
        assert isinstance(parse_decision(raw), Malformed)
