"""Vector search tool - semantic search over the user's ingested Drive chunks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from libra.enums import ToolName
from libra.services.store import DocumentStore
from libra.services.tools.base import ToolResult, get_query
from libra.utils import clamp, coerce_int

if TYPE_CHECKING:
    from libra.services.tools.base import ToolContext

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
TOP_K_LIMIT = 20

VECTOR_SEARCH_TOOL = {
    "name": ToolName.VECTOR_SEARCH.value,
    "description": (
        "Search the user's ingested document chunks by semantic similarity (vector search). "
        "Use when the user asks about content that has been synced from Google Drive. "
        "Returns relevant text chunks with metadata."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "Natural language query to find relevant document chunks",
            },
            "topK": {
                "type": "number",
                "description": "Number of top results (default 5)",
            },
        },
        "required": ["query"],
        "additionalProperties": False,
    },
}


async def execute(ctx: ToolContext, tool_input: dict) -> ToolResult:
    """
    Execute the vector_search tool.

    Returns:
        ``{"chunks": [...], "source_documents": [...]}`` where chunks are
        ordered by ascending cosine distance and ``source_documents`` lists
        each distinct document name once, in order of first appearance.
    """
    query = get_query(tool_input)
    if not query:
        return ToolResult.fail("Missing or invalid 'query' string")

    requested = coerce_int(tool_input.get("topK"), DEFAULT_TOP_K)
    top_k = clamp(requested or DEFAULT_TOP_K, 1, TOP_K_LIMIT)

    if ctx.embedder is None or ctx.session_factory is None:
        return ToolResult.fail("Vector search is not configured")

    logger.info(f"[AGENT] Vector search for user {ctx.user_id}: '{query}' (top {top_k})")
    embedding = await ctx.embedder.embed_query(query)
    async with ctx.session_factory() as session:
        matches = await DocumentStore(session).similarity_search(ctx.user_id, embedding, top_k)

    source_documents = list(dict.fromkeys(m.document_name for m in matches))
    return ToolResult.ok(
        {
            "chunks": [m.to_dict() for m in matches],
            "source_documents": source_documents,
        }
    )
