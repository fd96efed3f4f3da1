"""Tool registry: lookup, prompt descriptions and fault-isolated invocation."""

import asyncio
import json
import logging
from collections.abc import Iterable

from libra.services.tools.base import Tool, ToolContext, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Immutable name -> tool mapping shared by all agent runs."""

    def __init__(self, tools: Iterable[Tool]):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def describe(self) -> str:
        """Tool list for the system prompt, one block per tool in registration order."""
        return "\n\n".join(
            f"- {tool.name}: {tool.description}\n"
            f"  Parameters (JSON schema): {json.dumps(tool.parameters, separators=(',', ':'))}"
            for tool in self._tools.values()
        )

    async def invoke(self, name: str, arguments: dict | None, ctx: ToolContext) -> ToolResult:
        """
        Run a tool by name.

        Never raises: unknown names, timeouts and exceptions inside the tool
        are all returned as failed results.
        """
        tool = self.get(name)
        if tool is None:
            return ToolResult.fail(f"Unknown tool: {name}")

        try:
            return await asyncio.wait_for(tool.execute(ctx, arguments or {}), timeout=tool.timeout)
        except TimeoutError:
            logger.warning(f"[AGENT] Tool {name} timed out after {tool.timeout:g}s")
            return ToolResult.fail(f"{name} timed out after {tool.timeout:g}s")
        except Exception as e:
            logger.error(f"[AGENT] Tool {name} failed: {e}", exc_info=True)
            return ToolResult.fail(f"{name} failed: {e}")
