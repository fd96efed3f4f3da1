"""Tests for the Drive ingestion pipeline."""

from datetime import UTC, datetime

import httpx
import pytest
from fakes import FakeDrive, FakeDriveProvider, FakeEmbedder, FakeMemoryGuard, FakeStore, make_file

from libra.services.file.extraction.service import GOOGLE_DOC_MIME
from libra.services.ingestion import (
    DRIVE_NOT_CONNECTED_MESSAGE,
    LEASE_HELD_MESSAGE,
    IngestionPipeline,
)

MB = 1024 * 1024


def make_pipeline(
    drive: FakeDrive | None,
    store: FakeStore | None = None,
    embedder: FakeEmbedder | None = None,
    memory_guard: FakeMemoryGuard | None = None,
    **kwargs,
) -> IngestionPipeline:
    return IngestionPipeline(
        store=store or FakeStore(),
        drive_provider=FakeDriveProvider(drive),
        embedder=embedder or FakeEmbedder(),
        memory_guard=memory_guard or FakeMemoryGuard(),
        **kwargs,
    )


class TestIngestionRun:
    """Tests for IngestionPipeline.run."""

    @pytest.mark.asyncio
    async def test_lease_held_skips_run(self):
        store = FakeStore(lease_free=False)
        drive = FakeDrive(files=[make_file("f1")], contents={"f1": b"hello"})
        pipeline = make_pipeline(drive, store=store)

        result = await pipeline.run("user-1")

        assert result.processed == 0
        assert result.errors == [LEASE_HELD_MESSAGE]
        assert pipeline.drive_provider.requested == []
        assert store.leases_released == []

    @pytest.mark.asyncio
    async def test_drive_not_connected(self, fake_store):
        result = await make_pipeline(None, store=fake_store).run("user-1")

        assert result.errors == [DRIVE_NOT_CONNECTED_MESSAGE]
        assert fake_store.leases_released == ["user-1"]

    @pytest.mark.asyncio
    async def test_ingests_supported_files(self, fake_store, fake_embedder):
        drive = FakeDrive(
            files=[
                make_file("f1", "notes.txt"),
                make_file("g1", "Plan", GOOGLE_DOC_MIME),
                make_file("img", "photo.png", "image/png"),
            ],
            contents={"f1": b"plain notes", "g1": b"exported doc"},
        )
        pipeline = make_pipeline(drive, store=fake_store, embedder=fake_embedder)

        result = await pipeline.run("user-1")

        assert result.processed == 2
        assert result.failed == 0
        assert result.errors == []
        assert set(fake_store.chunks) == {"doc-f1", "doc-g1"}
        assert fake_store.chunks["doc-f1"][0]["content"] == "plain notes"
        assert fake_store.chunks["doc-f1"][0]["metadata"] == {"chunkIndex": 0, "totalChunks": 1}
        assert fake_store.leases_released == ["user-1"]

    @pytest.mark.asyncio
    async def test_paginates_listing_and_respects_max_files(self, fake_store):
        files = [make_file(f"f{i}") for i in range(5)]
        drive = FakeDrive(files=files, contents={f.id: b"text" for f in files}, page_size=2)

        result = await make_pipeline(drive, store=fake_store).run("user-1", max_files=3)

        assert result.processed == 3
        assert set(fake_store.chunks) == {"doc-f0", "doc-f1", "doc-f2"}

    @pytest.mark.asyncio
    async def test_explicit_file_ids(self, fake_store):
        files = [make_file("a"), make_file("b"), make_file("c")]
        drive = FakeDrive(files=files, contents={f.id: b"text" for f in files})

        result = await make_pipeline(drive, store=fake_store).run("user-1", file_ids=["b", "missing"])

        assert result.processed == 1
        assert set(fake_store.chunks) == {"doc-b"}
        assert result.errors == ["Could not get metadata for missing"]

    @pytest.mark.asyncio
    async def test_oversized_file_skipped_before_download(self, fake_store):
        drive = FakeDrive(files=[make_file("big", "huge.txt", size=60 * MB)])
        pipeline = make_pipeline(drive, store=fake_store, max_file_bytes=50 * MB)

        result = await pipeline.run("user-1")

        assert result.failed == 1
        assert result.errors == [
            f"huge.txt: skipped (file size {60 * MB} bytes exceeds 50MB limit)"
        ]
        assert drive.downloads == []

    @pytest.mark.asyncio
    async def test_stream_over_limit_fails_file(self, fake_store):
        drive = FakeDrive(files=[make_file("f1", "sneaky.txt")], contents={"f1": b"x" * 200})
        pipeline = make_pipeline(drive, store=fake_store, max_file_bytes=100)

        result = await pipeline.run("user-1")

        assert result.failed == 1
        assert result.errors[0].startswith("sneaky.txt: File exceeds")
        assert fake_store.chunks == {}

    @pytest.mark.asyncio
    async def test_unchanged_file_skipped(self, fake_store, fake_embedder):
        fake_store.add_document(
            "user-1", "f1", datetime(2024, 6, 2, tzinfo=UTC), chunks=[{"content": "old"}]
        )
        drive = FakeDrive(
            files=[make_file("f1", modified_time="2024-06-01T12:00:00.000Z")],
            contents={"f1": b"new text"},
        )

        result = await make_pipeline(drive, store=fake_store, embedder=fake_embedder).run("user-1")

        assert result.processed == 1
        assert drive.downloads == []
        assert fake_embedder.batches == []
        assert fake_store.chunks["doc-f1"] == [{"content": "old"}]

    @pytest.mark.asyncio
    async def test_modified_file_replaces_chunks(self, fake_store):
        fake_store.add_document(
            "user-1", "f1", datetime(2024, 1, 1, tzinfo=UTC), chunks=[{"content": "old"}]
        )
        drive = FakeDrive(files=[make_file("f1")], contents={"f1": b"new text"})

        result = await make_pipeline(drive, store=fake_store).run("user-1")

        assert result.processed == 1
        assert [c["content"] for c in fake_store.chunks["doc-f1"]] == ["new text"]
        updated_at = fake_store.documents[("user-1", "f1")].updated_at
        assert updated_at == datetime(2024, 6, 1, 12, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_blank_file_counts_as_processed(self, fake_store, fake_embedder):
        drive = FakeDrive(files=[make_file("f1")], contents={"f1": b"   \n  "})

        result = await make_pipeline(drive, store=fake_store, embedder=fake_embedder).run("user-1")

        assert result.processed == 1
        assert fake_embedder.batches == []

    @pytest.mark.asyncio
    async def test_embeds_in_batches(self, fake_store, fake_embedder):
        text = ("word " * 10_000).encode()
        drive = FakeDrive(files=[make_file("f1")], contents={"f1": text})
        pipeline = make_pipeline(drive, store=fake_store, embedder=fake_embedder, embed_batch_size=4)

        await pipeline.run("user-1")

        chunks = fake_store.chunks["doc-f1"]
        assert [len(b) for b in fake_embedder.batches] == [4, 4, 4, 4]
        assert len(chunks) == 16
        assert [c["metadata"]["chunkIndex"] for c in chunks] == list(range(16))
        assert {c["metadata"]["totalChunks"] for c in chunks} == {16}

    @pytest.mark.asyncio
    async def test_embedding_failure_rolls_back(self, fake_store):
        fake_store.add_document(
            "user-1", "f1", datetime(2024, 1, 1, tzinfo=UTC), chunks=[{"content": "old"}]
        )
        drive = FakeDrive(
            files=[make_file("f1", "report.txt"), make_file("f2", "other.txt")],
            contents={"f1": ("word " * 10_000).encode(), "f2": b"fine"},
        )
        embedder = FakeEmbedder(fail_on_call=2)
        pipeline = make_pipeline(drive, store=fake_store, embedder=embedder, embed_batch_size=4)

        result = await pipeline.run("user-1")

        assert result.failed == 1
        assert result.processed == 1
        assert result.errors == ["report.txt: embedding service unavailable"]
        assert fake_store.rollbacks == 1
        # The previous chunk set survives the failed replacement
        assert fake_store.chunks["doc-f1"] == [{"content": "old"}]
        assert [c["content"] for c in fake_store.chunks["doc-f2"]] == ["fine"]

    @pytest.mark.asyncio
    async def test_failed_lookup_does_not_poison_later_files(self):
        class AbortingStore(FakeStore):
            """Fails the first lookup and refuses work until rolled back, like Postgres."""

            def __init__(self):
                super().__init__()
                self.lookups = 0
                self.aborted = False

            async def get_document(self, user_id, file_id):
                if self.aborted:
                    raise RuntimeError("current transaction is aborted")
                self.lookups += 1
                if self.lookups == 1:
                    self.aborted = True
                    raise RuntimeError("canceling statement due to statement timeout")
                return await super().get_document(user_id, file_id)

            async def rollback(self):
                await super().rollback()
                self.aborted = False

        store = AbortingStore()
        drive = FakeDrive(
            files=[make_file("f1", "slow.txt"), make_file("f2", "next.txt")],
            contents={"f1": b"first", "f2": b"second"},
        )

        result = await make_pipeline(drive, store=store).run("user-1")

        assert result.failed == 1
        assert result.processed == 1
        assert result.errors == ["slow.txt: canceling statement due to statement timeout"]
        assert store.rollbacks == 1
        assert [c["content"] for c in store.chunks["doc-f2"]] == ["second"]

    @pytest.mark.asyncio
    async def test_memory_pressure_stops_early(self, fake_store):
        files = [make_file(f"f{i}", f"f{i}.txt") for i in range(4)]
        drive = FakeDrive(files=files, contents={f.id: b"text" for f in files})
        pipeline = make_pipeline(drive, store=fake_store, memory_guard=FakeMemoryGuard(high_after=2))

        result = await pipeline.run("user-1")

        assert result.processed == 2
        assert result.errors == [
            "Stopped early: memory pressure too high (7000MB). Processed 2 files, 2 remaining."
        ]
        assert fake_store.leases_released == ["user-1"]

    @pytest.mark.asyncio
    async def test_listing_failure_reported(self, fake_store):
        class BrokenDrive(FakeDrive):
            async def list_files(self, page_token=None, query="trashed = false", page_size=100):
                raise httpx.ConnectError("connection refused")

        result = await make_pipeline(BrokenDrive(), store=fake_store).run("user-1")

        assert result.processed == 0
        assert result.errors == ["Could not list Drive files: connection refused"]
        assert fake_store.leases_released == ["user-1"]
