"""Parsing of the model's JSON decision protocol.

The model must answer with exactly one JSON object, either

    {"type": "tool_call", "thought": "...", "tool_name": "...", "tool_arguments": {...}}

or

    {"type": "final_answer", "thought": "...",
     "final_answer": {"summary": "...", "detailed_answer": "...", "sources": [...]}}

Models regularly wrap the object in a markdown fence, surround it with prose,
or put the tool name in ``type`` with the arguments at the top level. Those
near misses are repaired here; anything else is reported as ``Malformed``.
"""

import json
import re
from dataclasses import dataclass

from libra.services.agent.types import FinalAnswer

TOOL_CALL = "tool_call"
FINAL_ANSWER = "final_answer"

# Keys that belong to the envelope rather than to a tool's arguments
ENVELOPE_KEYS = frozenset({"type", "thought", "tool_name", "tool_arguments"})

_FENCE_RE = re.compile(r"```(?:[A-Za-z0-9_+-]+)?\s*([\s\S]*?)```")


@dataclass(frozen=True)
class ToolCallDecision:
    thought: str
    tool_name: str
    tool_arguments: dict


@dataclass(frozen=True)
class FinalAnswerDecision:
    thought: str
    final_answer: FinalAnswer


@dataclass(frozen=True)
class Malformed:
    reason: str
    raw: str


Decision = ToolCallDecision | FinalAnswerDecision | Malformed


def extract_json_candidate(raw: str) -> str:
    """Pick the substring most likely to hold the JSON object."""
    trimmed = raw.strip()

    fence = _FENCE_RE.search(trimmed)
    if fence:
        return fence.group(1).strip()

    first = trimmed.find("{")
    last = trimmed.rfind("}")
    if first != -1 and last > first:
        return trimmed[first : last + 1]

    return trimmed


def normalize_decision(obj: dict) -> dict:
    """
    Rewrite a tool call that uses the tool name as ``type``.

    ``{"type": "web_search", "thought": "...", "query": "x"}`` becomes
    ``{"type": "tool_call", "thought": "...", "tool_name": "web_search",
    "tool_arguments": {"query": "x"}}``. Top-level keys outside the envelope
    are merged over any existing ``tool_arguments`` dict. Objects whose type
    is already canonical (or not a string) are returned unchanged.
    """
    decision_type = obj.get("type")
    if not isinstance(decision_type, str) or decision_type in (TOOL_CALL, FINAL_ANSWER):
        return obj

    tool_name = obj.get("tool_name")
    if not isinstance(tool_name, str) or not tool_name:
        tool_name = decision_type

    existing = obj.get("tool_arguments")
    arguments = dict(existing) if isinstance(existing, dict) else {}
    arguments.update({k: v for k, v in obj.items() if k not in ENVELOPE_KEYS})

    normalized = {"type": TOOL_CALL, "tool_name": tool_name, "tool_arguments": arguments}
    if "thought" in obj:
        normalized["thought"] = obj["thought"]
    return normalized


def _validate_final_answer(value) -> FinalAnswer | None:
    if not isinstance(value, dict):
        return None
    summary = value.get("summary")
    detailed = value.get("detailed_answer")
    sources = value.get("sources")
    if not isinstance(summary, str) or not isinstance(detailed, str):
        return None
    if not isinstance(sources, list) or not all(isinstance(s, str) for s in sources):
        return None
    return FinalAnswer(summary=summary, detailed_answer=detailed, sources=list(sources))


def parse_decision(raw: str) -> Decision:
    """
    Parse one decision from raw model output. Never raises.

    Returns:
        ToolCallDecision or FinalAnswerDecision on success, Malformed otherwise
    """
    candidate = extract_json_candidate(raw)
    try:
        obj = json.loads(candidate)
    except (ValueError, RecursionError) as e:
        return Malformed(reason=f"Invalid JSON: {e}", raw=raw)

    if not isinstance(obj, dict):
        return Malformed(reason="Response is not a JSON object", raw=raw)

    obj = normalize_decision(obj)
    decision_type = obj.get("type")
    thought = obj.get("thought")

    if decision_type not in (TOOL_CALL, FINAL_ANSWER):
        return Malformed(reason="Missing or invalid 'type'", raw=raw)
    if not isinstance(thought, str):
        return Malformed(reason="Missing or invalid 'thought'", raw=raw)

    if decision_type == TOOL_CALL:
        tool_name = obj.get("tool_name")
        if not isinstance(tool_name, str) or not tool_name:
            return Malformed(reason="Missing or invalid 'tool_name'", raw=raw)
        arguments = obj.get("tool_arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return Malformed(reason="'tool_arguments' must be an object", raw=raw)
        return ToolCallDecision(thought=thought, tool_name=tool_name, tool_arguments=arguments)

    final_answer = _validate_final_answer(obj.get("final_answer"))
    if final_answer is None:
        return Malformed(reason="Missing or invalid 'final_answer'", raw=raw)
    return FinalAnswerDecision(thought=thought, final_answer=final_answer)
