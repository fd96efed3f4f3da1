import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from libra.config import settings
from libra.db import get_db
from libra.dependencies import ServiceContainer, get_services
from libra.services.agent.loop import DEFAULT_USER_ID
from libra.services.auth import delete_drive_token, get_drive_token
from libra.services.store import DocumentStore
from libra.tasks.ingestion import run_ingestion_task
from libra.utils import clamp

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_DOCUMENT_LIMIT = 50
MAX_DOCUMENT_LIMIT = 200


class IngestRequest(BaseModel):
    user_id: str | None = None
    max_files: int | None = None
    file_ids: list[str] | None = None


class SyncRequest(BaseModel):
    user_id: str | None = None
    page_token: str = ""


class DocumentResponse(BaseModel):
    id: str
    file_id: str
    name: str
    mime_type: str
    updated_at: str | None = None


@router.post("/ingest")
async def ingest(request: IngestRequest):
    """Queue ingestion of the user's Drive. Progress is reported by the task result."""
    user_id = request.user_id or DEFAULT_USER_ID
    max_files = None
    if request.max_files is not None and request.max_files > 0:
        max_files = min(request.max_files, settings.ingest_max_files_limit)

    task = run_ingestion_task.delay(user_id, request.file_ids, max_files)
    logger.info(f"[INGEST] Queued task {task.id} for user {user_id} (max_files={max_files})")
    return {"task_id": task.id, "status": "queued"}


@router.get("/sync/start")
async def sync_start(
    user_id: str = DEFAULT_USER_ID,
    services: ServiceContainer = Depends(get_services),
    db: AsyncSession = Depends(get_db),
):
    """Get the checkpoint from which future syncs start."""
    page_token = await services.incremental_sync(db).get_start_page_token(user_id)
    if not page_token:
        raise HTTPException(status_code=400, detail="Unable to get start page token")
    return {"page_token": page_token}


@router.post("/sync")
async def sync(
    request: SyncRequest,
    services: ServiceContainer = Depends(get_services),
    db: AsyncSession = Depends(get_db),
):
    """Apply Drive changes since ``page_token`` and return the new checkpoint."""
    if not request.page_token:
        raise HTTPException(status_code=400, detail="page_token is required")
    user_id = request.user_id or DEFAULT_USER_ID
    result = await services.incremental_sync(db).run(user_id, request.page_token)
    return result.to_dict()


@router.get("/documents", response_model=list[DocumentResponse])
async def documents(
    user_id: str = DEFAULT_USER_ID,
    limit: int = DEFAULT_DOCUMENT_LIMIT,
    db: AsyncSession = Depends(get_db),
):
    """List the user's ingested documents, most recently modified first."""
    limit = clamp(limit, 1, MAX_DOCUMENT_LIMIT) if limit > 0 else DEFAULT_DOCUMENT_LIMIT
    docs = await DocumentStore(db).list_documents(user_id, limit)
    return [
        DocumentResponse(
            id=str(doc.id),
            file_id=doc.file_id,
            name=doc.name,
            mime_type=doc.mime_type,
            updated_at=doc.updated_at.isoformat() if doc.updated_at else None,
        )
        for doc in docs
    ]


@router.get("/status")
async def status(user_id: str = DEFAULT_USER_ID, db: AsyncSession = Depends(get_db)):
    token = await get_drive_token(db, user_id)
    return {"connected": token is not None}


@router.delete("/status")
async def disconnect(user_id: str = DEFAULT_USER_ID, db: AsyncSession = Depends(get_db)):
    """Disconnect Drive by removing the user's stored tokens."""
    await delete_drive_token(db, user_id)
    return {"success": True}
