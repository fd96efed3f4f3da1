"""Web search tool backed by the Serper Google Search API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from libra.config import settings
from libra.enums import ToolName
from libra.services.tools.base import ToolResult, get_query

if TYPE_CHECKING:
    from libra.services.tools.base import ToolContext

logger = logging.getLogger(__name__)

SERPER_URL = "https://google.serper.dev/search"

WEB_SEARCH_TOOL = {
    "name": ToolName.WEB_SEARCH.value,
    "description": (
        "Search the web using Google (Serper API). Returns a list of results with title, "
        "url, and snippet. Use for current information, facts, or finding URLs."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query string"},
        },
        "required": ["query"],
        "additionalProperties": False,
    },
}


async def execute(ctx: ToolContext, tool_input: dict) -> ToolResult:
    query = get_query(tool_input)
    if not query:
        return ToolResult.fail("Missing or invalid 'query' string")
    if not settings.serper_api_key:
        return ToolResult.fail("SERPER_API_KEY is not configured")
    if ctx.http_client is None:
        return ToolResult.fail("HTTP client is not available")

    logger.info(f"[AGENT] Web search: '{query}'")
    response = await ctx.http_client.post(
        SERPER_URL,
        headers={"X-API-KEY": settings.serper_api_key, "Content-Type": "application/json"},
        json={"q": query},
    )
    if not response.is_success:
        return ToolResult.fail(f"Serper API error: {response.status_code} {response.text[:200]}")

    organic = response.json().get("organic") or []
    results = [
        {
            "title": item.get("title") or "",
            "url": item.get("link") or "",
            "snippet": item.get("snippet") or "",
        }
        for item in organic
    ]
    return ToolResult.ok({"results": results})
