"""Drive ingestion pipeline: list, extract, chunk, embed and store documents.

Files are processed strictly one at a time and embedded in small batches so
peak memory stays bounded regardless of how many files a user has.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

import httpx

from libra.config import settings
from libra.exceptions import IngestionError
from libra.services.drive import DriveClientProvider, DriveService, FileMetadata
from libra.services.embedding import EmbeddingService
from libra.services.file import ExtractionService, chunk_text
from libra.services.memory import MemoryGuard
from libra.services.store import DocumentStore
from libra.utils import parse_rfc3339

logger = logging.getLogger(__name__)

LEASE_HELD_MESSAGE = "Ingestion already running for this user"
DRIVE_NOT_CONNECTED_MESSAGE = "Drive not connected"


@dataclass
class IngestResult:
    processed: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class IngestionPipeline:
    """Ingests a user's Drive files into the vector store."""

    def __init__(
        self,
        store: DocumentStore,
        drive_provider: DriveClientProvider,
        embedder: EmbeddingService,
        extractor: ExtractionService | None = None,
        memory_guard: MemoryGuard | None = None,
        max_file_bytes: int = settings.ingest_max_file_bytes,
        embed_batch_size: int = settings.ingest_embed_batch_size,
        lease_ttl_seconds: int = settings.ingest_lease_ttl_seconds,
    ):
        self.store = store
        self.drive_provider = drive_provider
        self.embedder = embedder
        self.max_file_bytes = max_file_bytes
        self.extractor = extractor or ExtractionService(max_bytes=max_file_bytes)
        self.memory_guard = memory_guard or MemoryGuard(settings.ingest_memory_limit_bytes)
        self.embed_batch_size = embed_batch_size
        self.lease_ttl_seconds = lease_ttl_seconds

    async def run(
        self,
        user_id: str,
        file_ids: list[str] | None = None,
        max_files: int | None = None,
    ) -> IngestResult:
        """
        Ingest the user's Drive, or only ``file_ids`` when given.

        Args:
            user_id: Owner of the Drive account
            file_ids: Restrict ingestion to these Drive file ids
            max_files: Process at most this many candidate files

        Returns:
            Counts of processed and failed files plus per-file error messages.
            Never raises; systemic problems are reported in ``errors``.
        """
        holder = uuid.uuid4().hex
        if not await self.store.try_acquire_lease(user_id, holder, self.lease_ttl_seconds):
            logger.info(f"[INGEST] Lease held for user {user_id}, skipping run")
            return IngestResult(errors=[LEASE_HELD_MESSAGE])

        try:
            drive = await self.drive_provider.get_client(user_id)
            if drive is None:
                return IngestResult(errors=[DRIVE_NOT_CONNECTED_MESSAGE])
            return await self.ingest(drive, user_id, file_ids=file_ids, max_files=max_files)
        finally:
            await self.store.release_lease(user_id, holder)

    async def ingest(
        self,
        drive: DriveService,
        user_id: str,
        file_ids: list[str] | None = None,
        max_files: int | None = None,
    ) -> IngestResult:
        """Ingestion body. The caller must already hold the user's lease."""
        result = IngestResult()
        cap = max_files if max_files and max_files > 0 else None

        try:
            files = await self._collect_files(drive, file_ids, cap, result)
        except httpx.HTTPError as e:
            logger.error(f"[INGEST] Listing Drive files failed for user {user_id}: {e}")
            result.errors.append(f"Could not list Drive files: {e}")
            return result

        logger.info(f"[INGEST] {len(files)} candidate files for user {user_id}")

        for file in files:
            if self.memory_guard.is_pressure_high():
                rss_mb = self.memory_guard.rss_mb()
                remaining = len(files) - result.processed - result.failed
                result.errors.append(
                    f"Stopped early: memory pressure too high ({rss_mb}MB). "
                    f"Processed {result.processed} files, {remaining} remaining."
                )
                logger.warning(f"[INGEST] Stopping early due to memory pressure: {rss_mb}MB")
                break

            try:
                await self._process_file(drive, user_id, file, result)
            except Exception as e:
                logger.error(f"[INGEST] Unexpected error processing {file.name}: {e}")
                # A failed statement aborts the transaction for every later file
                await self.store.rollback()
                result.failed += 1
                result.errors.append(f"{file.name}: {e}")

        logger.info(
            f"[INGEST] Done for user {user_id}: "
            f"{result.processed} processed, {result.failed} failed"
        )
        return result

    async def _collect_files(
        self,
        drive: DriveService,
        file_ids: list[str] | None,
        cap: int | None,
        result: IngestResult,
    ) -> list[FileMetadata]:
        files: list[FileMetadata] = []

        if file_ids:
            for file_id in file_ids[:cap] if cap else file_ids:
                try:
                    meta = await drive.get_file_metadata(file_id)
                except httpx.HTTPError:
                    result.errors.append(f"Could not get metadata for {file_id}")
                    continue
                if self.extractor.is_supported(meta.mime_type):
                    files.append(meta)
            return files

        page_token: str | None = None
        while True:
            page, page_token = await drive.list_files(page_token=page_token)
            for meta in page:
                if not self.extractor.is_supported(meta.mime_type):
                    continue
                files.append(meta)
                if cap and len(files) >= cap:
                    return files
            if not page_token:
                return files

    async def _process_file(
        self,
        drive: DriveService,
        user_id: str,
        file: FileMetadata,
        result: IngestResult,
    ) -> None:
        if file.size and file.size > self.max_file_bytes:
            limit_mb = round(self.max_file_bytes / 1024 / 1024)
            result.failed += 1
            result.errors.append(
                f"{file.name}: skipped (file size {file.size} bytes exceeds {limit_mb}MB limit)"
            )
            return

        modified_time = parse_rfc3339(file.modified_time)
        existing = await self.store.get_document(user_id, file.id)
        if (
            existing is not None
            and existing.updated_at is not None
            and modified_time is not None
            and modified_time <= existing.updated_at
        ):
            result.processed += 1
            return

        try:
            text = await self.extractor.extract(drive, file)
        except (IngestionError, httpx.HTTPError) as e:
            logger.warning(f"[INGEST] Extraction failed for {file.name}: {e}")
            result.failed += 1
            result.errors.append(f"{file.name}: {e}")
            return

        if not text.strip():
            result.processed += 1
            return

        chunks = chunk_text(text)
        del text
        if not chunks:
            result.processed += 1
            return

        await self._replace_chunks(user_id, file, modified_time or datetime.now(UTC), chunks)
        result.processed += 1
        logger.info(
            f"[INGEST] {file.name}: {len(chunks)} chunks, RSS {self.memory_guard.rss_mb()}MB"
        )

    async def _replace_chunks(
        self,
        user_id: str,
        file: FileMetadata,
        updated_at: datetime,
        chunks: list[str],
    ) -> None:
        """
        Swap the document's chunk set in one transaction.

        Nothing is committed until every batch is stored; on error the caller
        rolls back, leaving the previous chunk set and timestamp in place.
        """
        total = len(chunks)
        document_id = await self.store.upsert_document(
            user_id=user_id,
            file_id=file.id,
            name=file.name,
            mime_type=file.mime_type,
            updated_at=updated_at,
        )
        await self.store.delete_chunks(document_id)

        for start in range(0, total, self.embed_batch_size):
            batch = chunks[start : start + self.embed_batch_size]
            embeddings = await self.embedder.embed_documents(batch)
            await self.store.insert_chunks(document_id, batch, embeddings, start, total)

        await self.store.commit()
