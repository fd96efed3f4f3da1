"""Health check endpoints including Celery worker status and database connectivity."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from libra.celery_app import celery_app
from libra.db import get_db

router = APIRouter()


def _ping_workers() -> dict | None:
    return celery_app.control.inspect(timeout=1.0).ping()


@router.get("")
async def health():
    return {"status": "healthy"}


@router.get("/celery")
async def celery_health():
    """Check that at least one Celery worker answers a ping."""
    try:
        ping = await asyncio.to_thread(_ping_workers)
    except Exception as e:
        raise HTTPException(503, f"Celery health check failed: {e}") from e
    if not ping:
        raise HTTPException(503, "No Celery workers available")
    return {"status": "healthy", "workers": list(ping.keys())}


@router.get("/db")
async def db_health(db: AsyncSession = Depends(get_db)):
    """Check database connectivity and that the pgvector extension is installed."""
    try:
        await db.execute(text("SELECT 1"))
        result = await db.execute(text("SELECT extversion FROM pg_extension WHERE extname = 'vector'"))
        vector_version = result.scalar()
    except Exception as e:
        raise HTTPException(503, f"Database health check failed: {e}") from e
    return {"status": "healthy", "pgvector": vector_version}
