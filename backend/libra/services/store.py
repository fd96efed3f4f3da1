"""Persistence for ingested Drive documents, their chunks and ingestion leases."""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from libra.models import DriveChunk, DriveDocument, IngestionLease

logger = logging.getLogger(__name__)


@dataclass
class ChunkMatch:
    """A chunk returned by similarity search."""

    id: uuid.UUID
    document_id: uuid.UUID
    document_name: str
    content: str
    metadata: dict
    distance: float

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "document_id": str(self.document_id),
            "document_name": self.document_name,
            "content": self.content,
            "metadata": self.metadata,
            "distance": self.distance,
        }


class DocumentStore:
    """Document and chunk operations on one database session.

    Writes are not committed until :meth:`commit`, so a caller can group the
    replacement of a document's chunks into a single transaction. Lease
    operations commit immediately.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def get_document(self, user_id: str, file_id: str) -> DriveDocument | None:
        result = await self.session.execute(
            select(DriveDocument).where(
                DriveDocument.user_id == user_id,
                DriveDocument.file_id == file_id,
            )
        )
        return result.scalar_one_or_none()

    async def upsert_document(
        self,
        user_id: str,
        file_id: str,
        name: str,
        mime_type: str,
        updated_at: datetime,
    ) -> uuid.UUID:
        """Insert or update the document row for ``(file_id, user_id)`` and return its id."""
        stmt = (
            pg_insert(DriveDocument)
            .values(
                id=uuid.uuid4(),
                file_id=file_id,
                user_id=user_id,
                name=name,
                mime_type=mime_type,
                updated_at=updated_at,
                created_at=datetime.now(UTC),
            )
            .on_conflict_do_update(
                index_elements=[DriveDocument.file_id, DriveDocument.user_id],
                set_={"name": name, "mime_type": mime_type, "updated_at": updated_at},
            )
            .returning(DriveDocument.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def delete_chunks(self, document_id: uuid.UUID) -> None:
        await self.session.execute(delete(DriveChunk).where(DriveChunk.document_id == document_id))

    async def insert_chunks(
        self,
        document_id: uuid.UUID,
        contents: list[str],
        embeddings: list[list[float]],
        start_index: int,
        total_chunks: int,
    ) -> None:
        """Insert one embedded batch and flush it to the database."""
        self.session.add_all(
            [
                DriveChunk(
                    document_id=document_id,
                    content=content,
                    embedding=embedding,
                    chunk_metadata={"chunkIndex": start_index + i, "totalChunks": total_chunks},
                )
                for i, (content, embedding) in enumerate(zip(contents, embeddings, strict=True))
            ]
        )
        await self.session.flush()

    async def delete_documents(self, user_id: str, file_ids: list[str]) -> int:
        """Delete the user's documents for the given Drive file ids. Chunks cascade."""
        if not file_ids:
            return 0
        result = await self.session.execute(
            delete(DriveDocument).where(
                DriveDocument.user_id == user_id,
                DriveDocument.file_id.in_(file_ids),
            )
        )
        return result.rowcount or 0

    async def list_documents(self, user_id: str, limit: int = 50) -> list[DriveDocument]:
        result = await self.session.execute(
            select(DriveDocument)
            .where(DriveDocument.user_id == user_id)
            .order_by(DriveDocument.updated_at.desc().nulls_last())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def similarity_search(
        self,
        user_id: str,
        query_embedding: list[float],
        top_k: int,
    ) -> list[ChunkMatch]:
        """Nearest chunks by cosine distance among the user's documents."""
        distance = DriveChunk.embedding.cosine_distance(query_embedding).label("distance")
        result = await self.session.execute(
            select(
                DriveChunk.id,
                DriveChunk.document_id,
                DriveDocument.name,
                DriveChunk.content,
                DriveChunk.chunk_metadata,
                distance,
            )
            .join(DriveDocument, DriveChunk.document_id == DriveDocument.id)
            .where(DriveDocument.user_id == user_id)
            .order_by(distance)
            .limit(top_k)
        )
        return [
            ChunkMatch(
                id=row.id,
                document_id=row.document_id,
                document_name=row.name,
                content=row.content,
                metadata=row.chunk_metadata or {},
                distance=float(row.distance),
            )
            for row in result.all()
        ]

    async def try_acquire_lease(self, user_id: str, holder: str, ttl_seconds: int) -> bool:
        """
        Take the user's ingestion lease if it is free or expired.

        Returns:
            True if ``holder`` now owns the lease
        """
        now = datetime.now(UTC)
        stmt = (
            pg_insert(IngestionLease)
            .values(user_id=user_id, holder=holder, expires_at=now + timedelta(seconds=ttl_seconds))
            .on_conflict_do_update(
                index_elements=[IngestionLease.user_id],
                set_={
                    "holder": holder,
                    "expires_at": now + timedelta(seconds=ttl_seconds),
                },
                where=IngestionLease.expires_at < now,
            )
            .returning(IngestionLease.user_id)
        )
        result = await self.session.execute(stmt)
        acquired = result.scalar_one_or_none() is not None
        await self.session.commit()
        return acquired

    async def release_lease(self, user_id: str, holder: str) -> None:
        await self.session.execute(
            delete(IngestionLease).where(
                IngestionLease.user_id == user_id,
                IngestionLease.holder == holder,
            )
        )
        await self.session.commit()
