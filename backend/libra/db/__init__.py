"""Database module - session factories and base model."""

from libra.db.session import (
    Base,
    async_session,
    create_task_session_factory,
    engine,
    get_db,
    init_db,
)

__all__ = [
    "Base",
    "async_session",
    "create_task_session_factory",
    "engine",
    "get_db",
    "init_db",
]
