"""Agent tools package - tool types, registry and the static tool set."""

from libra.enums import ToolName
from libra.services.tools import drive_search, vector_search, web_scrape, web_search
from libra.services.tools.base import Tool, ToolContext, ToolResult
from libra.services.tools.drive_search import DRIVE_SEARCH_TOOL
from libra.services.tools.registry import ToolRegistry
from libra.services.tools.vector_search import VECTOR_SEARCH_TOOL
from libra.services.tools.web_scrape import WEB_SCRAPE_TOOL
from libra.services.tools.web_search import WEB_SEARCH_TOOL

# All tools available to the agent, in prompt order
ALL_TOOLS = [
    Tool.from_definition(WEB_SEARCH_TOOL, web_search.execute),
    Tool.from_definition(WEB_SCRAPE_TOOL, web_scrape.execute),
    Tool.from_definition(DRIVE_SEARCH_TOOL, drive_search.execute),
    Tool.from_definition(VECTOR_SEARCH_TOOL, vector_search.execute),
]


def build_registry() -> ToolRegistry:
    return ToolRegistry(ALL_TOOLS)


__all__ = [
    "ALL_TOOLS",
    "DRIVE_SEARCH_TOOL",
    "Tool",
    "ToolContext",
    "ToolName",
    "ToolRegistry",
    "ToolResult",
    "VECTOR_SEARCH_TOOL",
    "WEB_SCRAPE_TOOL",
    "WEB_SEARCH_TOOL",
    "build_registry",
]
