"""Agent control loop: task -> tool calls -> final answer."""

import logging
import uuid
from collections.abc import Callable

from libra.config import settings
from libra.enums import PARSE_ERROR_TOOL, StepType
from libra.exceptions import CompletionError
from libra.services.agent.prompts import build_system_prompt, build_user_message
from libra.services.agent.protocol import (
    FinalAnswerDecision,
    Malformed,
    ToolCallDecision,
    parse_decision,
)
from libra.services.agent.types import AgentRunResult, AgentStep, FinalAnswer
from libra.services.llm import CompletionClient
from libra.services.posthog import LLMTimer, track_llm_generation, track_span
from libra.services.tools import ToolContext, ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "default"

PARSE_ERROR_THOUGHT = "Invalid JSON response, retrying..."
PARSE_ERROR_MESSAGE = (
    "Your previous response was not valid JSON. "
    "Remember: respond with ONLY a JSON object, no markdown or extra text."
)


def _empty_response_answer() -> FinalAnswer:
    return FinalAnswer(
        summary="Error",
        detailed_answer="The model did not return a valid response.",
        sources=[],
    )


def _incomplete_answer() -> FinalAnswer:
    return FinalAnswer(
        summary="Incomplete",
        detailed_answer=(
            "Maximum steps reached without a final answer. "
            "Consider rephrasing or breaking down the task."
        ),
        sources=[],
    )


class AgentRunner:
    """Runs the iterative tool-use loop for one task at a time.

    The runner itself is stateless between runs; all per-run state lives in
    the step list built inside :meth:`run`.
    """

    def __init__(
        self,
        completion: CompletionClient,
        registry: ToolRegistry,
        make_context: Callable[[str], ToolContext] | None = None,
    ):
        self.completion = completion
        self.registry = registry
        self.make_context = make_context or (lambda user_id: ToolContext(user_id=user_id))
        self.system_prompt = build_system_prompt(registry)

    async def run(
        self,
        task: str,
        max_steps: int = settings.agent_default_max_steps,
        user_id: str | None = None,
    ) -> AgentRunResult:
        """
        Run the agent until it gives a final answer or the step budget is spent.

        Args:
            task: The user's instruction, optionally prefixed with chat history
            max_steps: Step budget; unparseable responses count against it
            user_id: Scopes Drive and vector tools; "default" when omitted

        Returns:
            The run result. ``final_answer`` is always present: the model's
            own answer on success, otherwise a synthesized one explaining why
            the run stopped.
        """
        user_id = user_id or DEFAULT_USER_ID
        ctx = self.make_context(user_id)
        trace_id = str(uuid.uuid4())
        steps: list[AgentStep] = []
        total_tokens = 0

        logger.info(f"[AGENT] Starting run {trace_id[:8]} for user {user_id} (max {max_steps} steps)")

        for step_index in range(max_steps):
            user_message = build_user_message(task, steps)

            try:
                with LLMTimer() as timer:
                    completion = await self.completion.complete(self.system_prompt, user_message)
            except CompletionError as e:
                answer = FinalAnswer(
                    summary="Error",
                    detailed_answer=f"The model request failed: {e}",
                    sources=[],
                )
                steps.append(
                    AgentStep(
                        step_index=step_index,
                        thought="Completion request failed.",
                        type=StepType.FINAL_ANSWER,
                        final_answer=answer,
                    )
                )
                return AgentRunResult(
                    success=False, steps=steps, final_answer=answer, token_usage=total_tokens
                )

            total_tokens += completion.total_tokens
            track_llm_generation(
                distinct_id=user_id,
                model=completion.model,
                input_tokens=completion.input_tokens,
                output_tokens=completion.output_tokens,
                latency_ms=timer.elapsed_ms,
                trace_id=trace_id,
                properties={"step_index": step_index},
            )

            content = completion.content.strip()
            if not content:
                logger.warning(f"[AGENT] Empty response at step {step_index}")
                answer = _empty_response_answer()
                steps.append(
                    AgentStep(
                        step_index=step_index,
                        thought="LLM returned empty response.",
                        type=StepType.FINAL_ANSWER,
                        final_answer=answer,
                    )
                )
                return AgentRunResult(
                    success=False, steps=steps, final_answer=answer, token_usage=total_tokens
                )

            decision = parse_decision(content)

            if isinstance(decision, Malformed):
                logger.warning(f"[AGENT] Unparseable response at step {step_index}: {decision.reason}")
                steps.append(
                    AgentStep(
                        step_index=step_index,
                        thought=PARSE_ERROR_THOUGHT,
                        type=StepType.TOOL_CALL,
                        tool_name=PARSE_ERROR_TOOL,
                        tool_arguments={},
                        tool_result={"error": PARSE_ERROR_MESSAGE},
                    )
                )
                continue

            if isinstance(decision, FinalAnswerDecision):
                steps.append(
                    AgentStep(
                        step_index=step_index,
                        thought=decision.thought,
                        type=StepType.FINAL_ANSWER,
                        final_answer=decision.final_answer,
                    )
                )
                logger.info(f"[AGENT] Final answer after {len(steps)} steps, {total_tokens} tokens")
                return AgentRunResult(
                    success=True,
                    steps=steps,
                    final_answer=decision.final_answer,
                    token_usage=total_tokens,
                )

            steps.append(await self._call_tool(decision, step_index, ctx, trace_id))

        last = steps[-1] if steps else None
        if last is not None and last.type == StepType.FINAL_ANSWER and last.final_answer:
            answer = last.final_answer
        else:
            answer = _incomplete_answer()
        logger.info(f"[AGENT] Step budget of {max_steps} exhausted")
        return AgentRunResult(success=False, steps=steps, final_answer=answer, token_usage=total_tokens)

    async def _call_tool(
        self,
        decision: ToolCallDecision,
        step_index: int,
        ctx: ToolContext,
        trace_id: str,
    ) -> AgentStep:
        logger.info(f"[AGENT] Step {step_index}: calling {decision.tool_name}")
        with LLMTimer() as timer:
            result = await self.registry.invoke(decision.tool_name, decision.tool_arguments, ctx)

        track_span(
            distinct_id=ctx.user_id,
            trace_id=trace_id,
            span_name=decision.tool_name,
            input_state=decision.tool_arguments,
            latency_ms=timer.elapsed_ms,
            is_error=not result.success,
        )

        return AgentStep(
            step_index=step_index,
            thought=decision.thought,
            type=StepType.TOOL_CALL,
            tool_name=decision.tool_name,
            tool_arguments=decision.tool_arguments,
            tool_result=result.data if result.success else {"error": result.error},
        )
