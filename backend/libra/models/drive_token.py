"""Per-user Drive credentials, encrypted at rest."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from libra.db import Base
from libra.utils.crypto import decrypt_token, encrypt_token, is_encrypted


def _reveal(stored: str) -> str:
    # Rows written before encryption was enabled hold plaintext
    return decrypt_token(stored) if is_encrypted(stored) else stored


class DriveToken(Base):
    """OAuth credentials for one user's Drive connection.

    Read and write ``access_token`` / ``refresh_token``; the mapped columns
    only ever hold Fernet ciphertext (or an empty string).
    """

    __tablename__ = "drive_tokens"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    access_token_enc: Mapped[str] = mapped_column("access_token", Text, nullable=False)
    refresh_token_enc: Mapped[str] = mapped_column(
        "refresh_token", Text, nullable=False, default=""
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def access_token(self) -> str:
        return _reveal(self.access_token_enc)

    @access_token.setter
    def access_token(self, value: str) -> None:
        self.access_token_enc = encrypt_token(value) if value else ""

    @property
    def refresh_token(self) -> str:
        return _reveal(self.refresh_token_enc)

    @refresh_token.setter
    def refresh_token(self, value: str) -> None:
        self.refresh_token_enc = encrypt_token(value) if value else ""
