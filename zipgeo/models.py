"""Database models for the ZIP geodata directory."""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from zipgeo.database import Base


class KVEntry(Base):
    """A single key-value entry.

    Snapshot entries live under reserved keys, per-ZIP records under the
    ZIP code itself.
    """
    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self):
        return f"<KVEntry(key={self.key!r}, size={len(self.value or '')})>"
