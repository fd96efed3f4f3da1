"""Drive search tool - full-text and name search over the user's Drive."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from libra.enums import ToolName
from libra.services.tools.base import ToolResult, get_query
from libra.utils import build_google_drive_url, clamp, coerce_int

if TYPE_CHECKING:
    from libra.services.tools.base import ToolContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 10
MAX_RESULTS_LIMIT = 50

DRIVE_SEARCH_TOOL = {
    "name": ToolName.DRIVE_SEARCH.value,
    "description": (
        "Search the user's Google Drive for files by name or content. Use when the user "
        "asks about their documents, spreadsheets, or PDFs in Drive. Returns file names, "
        "IDs, and links."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Search query (file name or content search)",
            },
            "maxResults": {
                "type": "number",
                "description": "Maximum number of results to return (default 10)",
            },
        },
        "required": ["query"],
        "additionalProperties": False,
    },
}


async def execute(ctx: ToolContext, tool_input: dict) -> ToolResult:
    query = get_query(tool_input)
    if not query:
        return ToolResult.fail("Missing or invalid 'query' string")

    requested = coerce_int(tool_input.get("maxResults"), DEFAULT_MAX_RESULTS)
    max_results = clamp(requested or DEFAULT_MAX_RESULTS, 1, MAX_RESULTS_LIMIT)

    drive = await ctx.drive_provider.get_client(ctx.user_id) if ctx.drive_provider else None
    if drive is None:
        return ToolResult.fail("Google Drive not connected. User must complete OAuth first.")

    logger.info(f"[AGENT] Drive search for user {ctx.user_id}: '{query}' (max {max_results})")
    files = await drive.search_files(query, max_results)
    return ToolResult.ok(
        {
            "files": [
                {
                    "id": f.id,
                    "name": f.name,
                    "mimeType": f.mime_type,
                    "webViewLink": f.web_view_link or build_google_drive_url(f.id),
                    "modifiedTime": f.modified_time,
                }
                for f in files
            ]
        }
    )
