"""Core tool types shared by the registry and the tool modules."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libra.config import settings
from libra.services.drive import DriveClientProvider
from libra.services.embedding import EmbeddingService


@dataclass
class ToolResult:
    """Outcome of one tool execution: ``data`` on success, ``error`` otherwise."""

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)


@dataclass
class ToolContext:
    """Per-run context passed to every tool execution.

    ``user_id`` scopes Drive and vector lookups. The remaining fields are the
    process-wide clients a tool may need; tools report a failure when a client
    they depend on is missing.
    """

    user_id: str
    http_client: httpx.AsyncClient | None = None
    drive_provider: DriveClientProvider | None = None
    embedder: EmbeddingService | None = None
    session_factory: async_sessionmaker[AsyncSession] | None = None


ToolExecutor = Callable[[ToolContext, dict], Awaitable[ToolResult]]


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: dict
    execute: ToolExecutor
    timeout: float = settings.tool_timeout_seconds

    @classmethod
    def from_definition(
        cls,
        definition: dict,
        execute: ToolExecutor,
        timeout: float | None = None,
    ) -> "Tool":
        """Build a tool from a ``{"name", "description", "input_schema"}`` definition."""
        return cls(
            name=definition["name"],
            description=definition["description"],
            parameters=definition["input_schema"],
            execute=execute,
            timeout=timeout if timeout is not None else settings.tool_timeout_seconds,
        )


def get_query(tool_input: dict) -> str:
    """Trimmed ``query`` argument, or "" when missing or not a string."""
    query = tool_input.get("query")
    return query.strip() if isinstance(query, str) else ""
