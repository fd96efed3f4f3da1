"""Completion client wrapping the Anthropic Messages API."""

import logging
from dataclasses import dataclass

import anthropic
from anthropic import AsyncAnthropic
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from libra.config import settings
from libra.exceptions import CompletionError

logger = logging.getLogger(__name__)

# Only failures that a later attempt can plausibly fix are retried
RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


@dataclass
class Completion:
    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class CompletionClient:
    """Single-turn completions: a system prompt plus one user message."""

    def __init__(
        self,
        client: AsyncAnthropic,
        model: str = settings.claude_model,
        max_tokens: int = settings.completion_max_tokens,
        temperature: float = settings.completion_temperature,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _create(self, system_prompt: str, user_message: str):
        return await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )

    async def complete(self, system_prompt: str, user_message: str) -> Completion:
        """
        Request one completion.

        Returns:
            The concatenated text blocks of the response and its token usage.
            ``content`` is empty when the model returned no text.

        Raises:
            CompletionError: When the call fails after retries
        """
        try:
            response = await self._create(system_prompt, user_message)
        except anthropic.APIError as e:
            logger.error(f"[LLM] Completion failed: {e}")
            raise CompletionError(str(e)) from e

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = response.usage
        return Completion(
            content=content,
            input_tokens=usage.input_tokens if usage else 0,
            output_tokens=usage.output_tokens if usage else 0,
            model=response.model or self.model,
        )
