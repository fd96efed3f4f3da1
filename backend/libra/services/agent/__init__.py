"""Agent control loop, decision protocol and prompt construction."""

from libra.services.agent.loop import AgentRunner
from libra.services.agent.protocol import (
    FinalAnswerDecision,
    Malformed,
    ToolCallDecision,
    normalize_decision,
    parse_decision,
)
from libra.services.agent.types import AgentRunResult, AgentStep, FinalAnswer

__all__ = [
    "AgentRunResult",
    "AgentRunner",
    "AgentStep",
    "FinalAnswer",
    "FinalAnswerDecision",
    "Malformed",
    "ToolCallDecision",
    "normalize_decision",
    "parse_decision",
]
