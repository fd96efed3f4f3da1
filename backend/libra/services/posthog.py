"""PostHog analytics for LLM tracing.

Agent iterations are recorded as ``$ai_generation`` events and tool calls as
``$ai_span`` events, grouped by a per-run trace id.
"""

import logging
import time
from typing import Any

from posthog import Posthog

from libra.config import settings

logger = logging.getLogger(__name__)

_posthog_client: Posthog | None = None


def get_posthog_client() -> Posthog | None:
    """Return the shared PostHog client, or None when tracing is disabled."""
    global _posthog_client
    if not (settings.posthog_enabled and settings.posthog_api_key):
        return None
    if _posthog_client is None:
        _posthog_client = Posthog(settings.posthog_api_key, host=settings.posthog_host)
    return _posthog_client


def shutdown_posthog() -> None:
    """Flush queued events and drop the client. Call on application shutdown."""
    global _posthog_client
    if _posthog_client is not None:
        _posthog_client.shutdown()
        _posthog_client = None


def track_llm_generation(
    distinct_id: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    latency_ms: float,
    trace_id: str | None = None,
    properties: dict[str, Any] | None = None,
) -> None:
    """
    Record one completion call.

    Args:
        distinct_id: User ID, or "system" for background work
        model: Model name reported by the completion service
        input_tokens: Prompt tokens
        output_tokens: Completion tokens
        latency_ms: Wall-clock latency in milliseconds
        trace_id: Groups the iterations of one agent run
        properties: Extra event properties (e.g. step index)
    """
    client = get_posthog_client()
    if client is None:
        return

    event_properties: dict[str, Any] = {
        "$ai_model": model,
        "$ai_provider": "anthropic",
        "$ai_input_tokens": input_tokens,
        "$ai_output_tokens": output_tokens,
        "$ai_latency": latency_ms / 1000.0,
    }
    if trace_id:
        event_properties["$ai_trace_id"] = trace_id
    if properties:
        event_properties.update(properties)

    client.capture(distinct_id=distinct_id, event="$ai_generation", properties=event_properties)
    logger.debug(
        f"PostHog: $ai_generation for {distinct_id} - {input_tokens} in / {output_tokens} out"
    )


def track_span(
    distinct_id: str,
    trace_id: str,
    span_name: str,
    input_state: dict[str, Any] | None = None,
    output_state: dict[str, Any] | None = None,
    latency_ms: float | None = None,
    is_error: bool = False,
) -> None:
    """Record a non-LLM operation (a tool invocation) within a trace."""
    client = get_posthog_client()
    if client is None:
        return

    event_properties: dict[str, Any] = {
        "$ai_trace_id": trace_id,
        "$ai_span_name": span_name,
        "$ai_is_error": is_error,
    }
    if input_state:
        event_properties["$ai_input_state"] = input_state
    if output_state:
        event_properties["$ai_output_state"] = output_state
    if latency_ms is not None:
        event_properties["$ai_latency"] = latency_ms / 1000.0

    client.capture(distinct_id=distinct_id, event="$ai_span", properties=event_properties)


class LLMTimer:
    """Context manager measuring elapsed wall-clock time."""

    def __init__(self):
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.end_time = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (self.end_time - self.start_time) * 1000
