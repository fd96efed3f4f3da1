"""Incremental sync from the Drive change feed."""

import logging
import uuid
from dataclasses import dataclass, field

import httpx

from libra.services.drive import DriveService
from libra.services.ingestion import LEASE_HELD_MESSAGE, IngestionPipeline

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    new_page_token: str
    processed: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "newPageToken": self.new_page_token,
            "processed": self.processed,
            "deleted": self.deleted,
            "errors": self.errors,
        }


@dataclass
class ChangeSet:
    new_page_token: str
    changed_file_ids: list[str] = field(default_factory=list)
    removed_file_ids: list[str] = field(default_factory=list)
    # Current MIME type of each changed file, as reported by the feed
    mime_types: dict[str, str] = field(default_factory=dict)


async def collect_changes(drive: DriveService, page_token: str) -> ChangeSet:
    """
    Page through the change feed from ``page_token``.

    Follows ``nextPageToken`` until the last page, whose ``newStartPageToken``
    becomes the new checkpoint. A file that was removed or trashed counts as
    removed; any other change with file metadata counts as changed. The two
    sets are independent: an id seen both ways is recorded in both, and the
    removal is still applied before the changed ids are re-ingested.
    """
    changed: dict[str, None] = {}
    removed: dict[str, None] = {}
    mime_types: dict[str, str] = {}
    new_page_token = page_token
    current: str | None = page_token

    while current:
        page = await drive.list_changes(current)
        for change in page.changes:
            if change.removed or (change.file is not None and change.file.trashed):
                if change.file_id:
                    removed[change.file_id] = None
            elif change.file is not None:
                changed[change.file.id] = None
                mime_types[change.file.id] = change.file.mime_type

        if page.new_start_page_token:
            new_page_token = page.new_start_page_token
        current = page.next_page_token

    return ChangeSet(
        new_page_token=new_page_token,
        changed_file_ids=list(changed),
        removed_file_ids=list(removed),
        mime_types=mime_types,
    )


class IncrementalSync:
    """Applies Drive changes since a checkpoint to the user's ingested documents."""

    def __init__(self, pipeline: IngestionPipeline):
        self.pipeline = pipeline
        self.store = pipeline.store
        self.drive_provider = pipeline.drive_provider

    async def get_start_page_token(self, user_id: str) -> str | None:
        """Initial checkpoint for a user, or None if Drive is not connected."""
        drive = await self.drive_provider.get_client(user_id)
        if drive is None:
            return None
        return await drive.get_start_page_token()

    async def run(self, user_id: str, page_token: str) -> SyncResult:
        """
        Apply changes since ``page_token``.

        Returns:
            The new checkpoint with counts. When the run cannot proceed (lease
            held, no Drive, feed unavailable) the original token is returned
            unchanged so the caller retries from the same point.
        """
        holder = uuid.uuid4().hex
        if not await self.store.try_acquire_lease(
            user_id, holder, self.pipeline.lease_ttl_seconds
        ):
            logger.info(f"[SYNC] Lease held for user {user_id}, retry later")
            return SyncResult(new_page_token=page_token, errors=[LEASE_HELD_MESSAGE])

        try:
            drive = await self.drive_provider.get_client(user_id)
            if drive is None:
                return SyncResult(new_page_token=page_token, errors=["Drive not connected"])
            return await self._apply(drive, user_id, page_token)
        finally:
            await self.store.release_lease(user_id, holder)

    async def _apply(self, drive: DriveService, user_id: str, page_token: str) -> SyncResult:
        try:
            changes = await collect_changes(drive, page_token)
        except httpx.HTTPError as e:
            logger.error(f"[SYNC] Change feed failed for user {user_id}: {e}")
            return SyncResult(new_page_token=page_token, errors=[f"Could not list changes: {e}"])

        logger.info(
            f"[SYNC] User {user_id}: {len(changes.changed_file_ids)} changed, "
            f"{len(changes.removed_file_ids)} removed"
        )

        await self.store.delete_documents(user_id, changes.removed_file_ids)
        deleted = len(changes.removed_file_ids)

        # A file whose type changed to something unsupported must not keep stale chunks
        unsupported = [
            file_id
            for file_id in changes.changed_file_ids
            if not self.pipeline.extractor.is_supported(changes.mime_types.get(file_id, ""))
        ]
        if unsupported:
            deleted += await self.store.delete_documents(user_id, unsupported)
        await self.store.commit()

        skipped = set(unsupported)
        to_ingest = [f for f in changes.changed_file_ids if f not in skipped]
        result = SyncResult(new_page_token=changes.new_page_token, deleted=deleted)
        if not to_ingest:
            return result

        ingest_result = await self.pipeline.ingest(drive, user_id, file_ids=to_ingest)
        result.processed = ingest_result.processed
        result.errors = ingest_result.errors
        return result
