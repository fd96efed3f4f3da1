"""Agent step and run result types with their JSON wire shape."""

from dataclasses import dataclass, field
from typing import Any

from libra.enums import StepType


@dataclass
class FinalAnswer:
    summary: str
    detailed_answer: str
    sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "detailed_answer": self.detailed_answer,
            "sources": list(self.sources),
        }


@dataclass
class AgentStep:
    """One iteration of the control loop: a tool call with its result, or the final answer."""

    step_index: int
    thought: str
    type: StepType
    tool_name: str | None = None
    tool_arguments: dict | None = None
    tool_result: Any = None
    final_answer: FinalAnswer | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "stepIndex": self.step_index,
            "thought": self.thought,
            "type": self.type.value,
        }
        if self.type == StepType.TOOL_CALL:
            data["toolName"] = self.tool_name
            data["toolArguments"] = self.tool_arguments or {}
            data["toolResult"] = self.tool_result
        if self.final_answer is not None:
            data["finalAnswer"] = self.final_answer.to_dict()
        return data


@dataclass
class AgentRunResult:
    success: bool
    steps: list[AgentStep]
    final_answer: FinalAnswer
    token_usage: int = 0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "steps": [step.to_dict() for step in self.steps],
            "finalAnswer": self.final_answer.to_dict(),
            "tokenUsage": self.token_usage,
        }
