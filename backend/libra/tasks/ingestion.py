"""Celery tasks for Drive ingestion and incremental sync."""

import asyncio
import logging

from libra.celery_app import celery_app
from libra.db import create_task_session_factory
from libra.dependencies import ServiceContainer
from libra.exceptions import TRANSIENT_ERRORS, TransientIngestionError

logger = logging.getLogger(__name__)


async def _run_ingestion_async(
    user_id: str,
    file_ids: list[str] | None,
    max_files: int | None,
) -> dict:
    engine, session_factory = create_task_session_factory()
    services = ServiceContainer(session_factory)
    try:
        async with session_factory() as session:
            pipeline = services.ingestion_pipeline(session)
            result = await pipeline.run(user_id, file_ids=file_ids, max_files=max_files)
        return result.to_dict()
    finally:
        await services.aclose()
        await engine.dispose()


async def _run_sync_async(user_id: str, page_token: str) -> dict:
    engine, session_factory = create_task_session_factory()
    services = ServiceContainer(session_factory)
    try:
        async with session_factory() as session:
            result = await services.incremental_sync(session).run(user_id, page_token)
        return result.to_dict()
    finally:
        await services.aclose()
        await engine.dispose()


@celery_app.task(
    bind=True,
    autoretry_for=(TransientIngestionError,),
    retry_backoff=30,  # Start at 30 seconds
    retry_backoff_max=600,  # Cap at 10 minutes
    retry_jitter=True,
    max_retries=3,
)
def run_ingestion_task(
    self,
    user_id: str,
    file_ids: list[str] | None = None,
    max_files: int | None = None,
) -> dict:
    """
    Ingest a user's Drive in the background.

    Per-file problems are part of the returned result. Only infrastructure
    failures (database or network unreachable) are retried.
    """
    try:
        return asyncio.run(_run_ingestion_async(user_id, file_ids, max_files))
    except TRANSIENT_ERRORS as e:
        logger.error(f"[INGEST] Transient failure for user {user_id}: {e}")
        raise TransientIngestionError(str(e)) from e


@celery_app.task(
    bind=True,
    autoretry_for=(TransientIngestionError,),
    retry_backoff=30,
    retry_backoff_max=600,
    retry_jitter=True,
    max_retries=3,
)
def run_incremental_sync_task(self, user_id: str, page_token: str) -> dict:
    """Apply Drive changes since ``page_token``; the result carries the new checkpoint."""
    try:
        return asyncio.run(_run_sync_async(user_id, page_token))
    except TRANSIENT_ERRORS as e:
        logger.error(f"[SYNC] Transient failure for user {user_id}: {e}")
        raise TransientIngestionError(str(e)) from e
