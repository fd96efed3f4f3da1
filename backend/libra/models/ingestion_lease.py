"""Per-user ingestion lease model."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from libra.db import Base


class IngestionLease(Base):
    """At most one ingestion or sync run may hold a user's lease at a time.

    A lease whose ``expires_at`` has passed is free to be taken over, so a
    worker that crashed mid-run cannot block the user forever.
    """

    __tablename__ = "ingestion_leases"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    holder: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
