from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from libra.config import settings


class Base(DeclarativeBase):
    pass


def _build_engine(
    pool_size: int,
    max_overflow: int,
    pool_recycle: int,
    command_timeout: int,
    statement_timeout_ms: int,
    lock_timeout_ms: int,
    **pool_options,
) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        connect_args={
            "command_timeout": command_timeout,
            "server_settings": {
                "statement_timeout": str(statement_timeout_ms),
                "lock_timeout": str(lock_timeout_ms),
            },
        },
        **pool_options,
    )


def _session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# API engine: bound to the FastAPI event loop, short timeouts for request latency
engine = _build_engine(
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_recycle=settings.db_pool_recycle,
    command_timeout=settings.db_command_timeout,
    statement_timeout_ms=settings.db_statement_timeout_ms,
    lock_timeout_ms=10_000,
    pool_timeout=settings.db_pool_timeout,
)
async_session = _session_factory(engine)


async def init_db():
    # Tables use the vector type, so the extension must exist first
    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def create_task_session_factory() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Build a private engine and session factory for one Celery task.

    Every task runs its own ``asyncio.run()`` loop, and an async engine cannot
    be shared across loops. Timeouts are longer than the API engine's because
    ingestion holds connections through whole files.

    Returns:
        ``(engine, factory)``; the caller must ``await engine.dispose()``.
    """
    task_engine = _build_engine(
        pool_size=settings.celery_db_pool_size,
        max_overflow=settings.celery_db_max_overflow,
        pool_recycle=settings.celery_db_pool_recycle,
        command_timeout=settings.celery_db_command_timeout,
        statement_timeout_ms=settings.celery_db_statement_timeout_ms,
        lock_timeout_ms=30_000,
    )
    return task_engine, _session_factory(task_engine)
