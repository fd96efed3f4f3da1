"""Service container holding the process-wide clients, plus FastAPI dependencies."""

import logging

import httpx
from anthropic import AsyncAnthropic
from fastapi import Request
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libra.config import settings
from libra.services.agent import AgentRunner
from libra.services.drive import DriveClientProvider
from libra.services.embedding import EmbeddingService
from libra.services.ingestion import IngestionPipeline
from libra.services.llm import CompletionClient
from libra.services.store import DocumentStore
from libra.services.sync import IncrementalSync
from libra.services.tools import ToolContext, ToolRegistry, build_registry

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Builds every external client once and wires the services that use them.

    Created in the API lifespan (one per process) and per Celery task (one
    per event loop). :meth:`aclose` must be awaited to release connections.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        http_client: httpx.AsyncClient | None = None,
        anthropic_client: AsyncAnthropic | None = None,
        openai_client: AsyncOpenAI | None = None,
        registry: ToolRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.http_client = http_client or httpx.AsyncClient(timeout=30.0)
        self.anthropic_client = anthropic_client or AsyncAnthropic(
            api_key=settings.anthropic_api_key
        )
        self.openai_client = openai_client or AsyncOpenAI(
            api_key=settings.fireworks_api_key,
            base_url=settings.embedding_base_url,
        )

        self.completion = CompletionClient(self.anthropic_client)
        self.embedder = EmbeddingService(self.openai_client)
        self.drive_provider = DriveClientProvider(session_factory, self.http_client)
        self.registry = registry or build_registry()
        self.agent = AgentRunner(self.completion, self.registry, make_context=self.tool_context)

    def tool_context(self, user_id: str) -> ToolContext:
        return ToolContext(
            user_id=user_id,
            http_client=self.http_client,
            drive_provider=self.drive_provider,
            embedder=self.embedder,
            session_factory=self.session_factory,
        )

    def ingestion_pipeline(self, session: AsyncSession) -> IngestionPipeline:
        return IngestionPipeline(
            store=DocumentStore(session),
            drive_provider=self.drive_provider,
            embedder=self.embedder,
        )

    def incremental_sync(self, session: AsyncSession) -> IncrementalSync:
        return IncrementalSync(self.ingestion_pipeline(session))

    async def aclose(self) -> None:
        await self.http_client.aclose()
        await self.anthropic_client.close()
        await self.openai_client.close()
        logger.info("Service clients closed")


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
