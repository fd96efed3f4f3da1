"""Prompt construction for the agent loop."""

import json

from libra.enums import StepType
from libra.services.agent.types import AgentStep
from libra.services.tools import ToolRegistry


def _to_json(value) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def build_system_prompt(registry: ToolRegistry) -> str:
    """Build the system prompt: available tools, the two response shapes, and answer rules."""
    return f"""You are an autonomous agent. Given a task, you must respond with exactly one JSON object and nothing else.

Available tools:
{registry.describe()}

Response format (strict JSON only, no markdown or extra text):
- To call a tool: {{"type":"tool_call","thought":"...","tool_name":"<name>","tool_arguments":{{...}}}}
- To finish: {{"type":"final_answer","thought":"...","final_answer":{{"summary":"...","detailed_answer":"...","sources":[]}}}}

Rules:
- Respond with only the JSON object. No ```json fences or explanation outside the JSON.
- For final_answer, "sources" must be an array of strings (URLs or references).
- Use tools when you need external information; then summarize in final_answer.
- Inside summary and detailed_answer, do NOT use markdown formatting such as **bold**, numbered markdown lists, or headings. Use plain text only (e.g. "Amazon:" instead of "**Amazon**:")."""


def format_steps_for_prompt(steps: list[AgentStep]) -> str:
    """Render prior steps (with tool results) for the next user message."""
    blocks = []
    for step in steps:
        block = f"Step {step.step_index + 1}:\nThought: {step.thought}\n"
        if step.type == StepType.TOOL_CALL and step.tool_name:
            block += f"Tool: {step.tool_name}\nArguments: {_to_json(step.tool_arguments or {})}\n"
            block += f"Result: {_to_json(step.tool_result)}\n"
        if step.type == StepType.FINAL_ANSWER and step.final_answer:
            block += f"Final answer: {_to_json(step.final_answer.to_dict())}\n"
        blocks.append(block)
    return "\n---\n".join(blocks)


def build_user_message(task: str, steps: list[AgentStep]) -> str:
    if not steps:
        return f"Task: {task}\n\nPlan your steps and either call a tool or respond with final_answer."
    history = format_steps_for_prompt(steps)
    return (
        f"Task: {task}\n\nPrevious steps:\n{history}\n\n"
        "Continue: either call another tool (tool_call) or provide your final answer (final_answer)."
    )
