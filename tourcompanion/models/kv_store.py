"""Key-value persistence — PostgreSQL fallback for the per-user notification store."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String

from .base import Base


class KeyValueEntry(Base):
    __tablename__ = "kv_store"

    key = Column(String(255), primary_key=True)
    value = Column(JSON)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
