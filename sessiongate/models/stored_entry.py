"""Stored Entry ORM: one row per persisted key of the session store.

Invariants:
    - key is the primary key; at most one value per key
    - value is opaque text (token string or profile JSON blob)
    - updated_at refreshed on every write

Design Decisions:
    - Key/value table rather than a session table: the persisted layout is three
      independent keys that are written and cleared together
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from sessiongate.db.base import Base


class StoredEntry(Base):
    """A single persisted key (access token, refresh token or cached profile)."""
    __tablename__ = "session_store"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<StoredEntry {self.key}>"
