"""Tests for agent prompt construction."""

from libra.enums import StepType
from libra.services.agent.prompts import (
    build_system_prompt,
    build_user_message,
    format_steps_for_prompt,
)
from libra.services.agent.types import AgentStep, FinalAnswer
from libra.services.tools import build_registry


class TestSystemPrompt:
    def test_lists_every_tool(self):
        prompt = build_system_prompt(build_registry())
        for name in ("web_search", "web_scrape", "drive_search", "vector_search"):
            assert f"- {name}:" in prompt

    def test_describes_both_response_shapes(self):
        prompt = build_system_prompt(build_registry())
        assert '"type":"tool_call"' in prompt
        assert '"type":"final_answer"' in prompt
        assert "no markdown" in prompt.lower()


class TestUserMessage:
    def test_first_step_has_no_history(self):
        message = build_user_message("Find the capital of France", [])
        assert message.startswith("Task: Find the capital of France")
        assert "Previous steps" not in message

    def test_includes_prior_tool_steps(self):
        steps = [
            AgentStep(
                step_index=0,
                thought="search first",
                type=StepType.TOOL_CALL,
                tool_name="web_search",
                tool_arguments={"query": "capital of France"},
                tool_result={"results": [{"title": "Paris"}]},
            )
        ]
        message = build_user_message("Find the capital", steps)

        assert "Previous steps:" in message
        assert "Step 1:" in message
        assert "Tool: web_search" in message
        assert '{"query":"capital of France"}' in message
        assert '"title":"Paris"' in message

    def test_formats_final_answer_steps(self):
        steps = [
            AgentStep(
                step_index=2,
                thought="done",
                type=StepType.FINAL_ANSWER,
                final_answer=FinalAnswer(summary="S", detailed_answer="D", sources=[]),
            )
        ]
        rendered = format_steps_for_prompt(steps)
        assert rendered.startswith("Step 3:")
        assert "Final answer:" in rendered
        assert "Tool:" not in rendered

    def test_steps_are_separated(self):
        steps = [
            AgentStep(step_index=i, thought=f"t{i}", type=StepType.TOOL_CALL, tool_name="web_search")
            for i in range(2)
        ]
        assert format_steps_for_prompt(steps).count("\n---\n") == 1
