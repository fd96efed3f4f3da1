"""Models package - re-exports all models for convenient imports."""

from libra.models.chat import DEFAULT_CHAT_TITLE, Chat
from libra.models.chat_turn import ChatTurn
from libra.models.chunk import DriveChunk
from libra.models.document import DriveDocument
from libra.models.drive_token import DriveToken
from libra.models.ingestion_lease import IngestionLease

__all__ = [
    "DEFAULT_CHAT_TITLE",
    "Chat",
    "ChatTurn",
    "DriveChunk",
    "DriveDocument",
    "DriveToken",
    "IngestionLease",
]
