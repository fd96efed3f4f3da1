"""Embedding service using an OpenAI-compatible endpoint (Fireworks by default)."""

import logging

import openai
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from libra.config import settings
from libra.exceptions import EmbeddingError

logger = logging.getLogger(__name__)

# nomic-embed-text expects a task prefix on every input
DOCUMENT_PREFIX = "search_document: "
QUERY_PREFIX = "search_query: "

RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


class EmbeddingService:
    """Turns texts into fixed-dimension vectors."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = settings.embedding_model,
        dimension: int = settings.embedding_dim,
    ):
        self.client = client
        self.model = model
        self.dimension = dimension

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _embed(self, inputs: list[str]) -> list[list[float]]:
        response = await self.client.embeddings.create(model=self.model, input=inputs)

        # The API may return items out of order; index is authoritative
        items = sorted(response.data, key=lambda item: item.index)
        if len(items) != len(inputs):
            raise EmbeddingError(f"Expected {len(inputs)} embeddings, got {len(items)}")

        vectors = [list(item.embedding) for item in items]
        for vector in vectors:
            if len(vector) != self.dimension:
                raise EmbeddingError(
                    f"Embedding dimension {len(vector)} does not match expected {self.dimension}"
                )
        return vectors

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of document chunks, preserving input order."""
        if not texts:
            return []
        return await self._embed([f"{DOCUMENT_PREFIX}{t}" for t in texts])

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query."""
        if not text.strip():
            raise ValueError("Cannot embed empty query")
        vectors = await self._embed([f"{QUERY_PREFIX}{text}"])
        return vectors[0]
