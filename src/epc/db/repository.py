"""Database repository helpers for session state."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import SessionStateRecord

logger = logging.getLogger("epc.db")


def load_state(session: Session, key: str) -> Optional[Dict[str, Any]]:
    """Return the stored table for ``key``, if any."""

    record = session.execute(select(SessionStateRecord).where(SessionStateRecord.key == key)).scalar_one_or_none()
    if record is None:
        return None
    return dict(record.data or {})


def save_state(session: Session, key: str, table: Dict[str, Any]) -> None:
    """Insert or replace the table stored under ``key``."""

    existing = session.execute(select(SessionStateRecord).where(SessionStateRecord.key == key)).scalar_one_or_none()
    if existing:
        # Assign a fresh dict so the JSON column registers the change.
        existing.data = dict(table)
    else:
        session.add(SessionStateRecord(key=key, data=dict(table)))
    logger.debug("Saved session state '%s' (%s entries)", key, len(table))
