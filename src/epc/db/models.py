"""Database models for persisted session tokens."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String

from .session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStateRecord(Base):
    """One token table, stored as a JSON document under a unique key."""

    __tablename__ = "session_state"

    id = Column(Integer, primary_key=True)
    key = Column(String(64), nullable=False, unique=True)
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
