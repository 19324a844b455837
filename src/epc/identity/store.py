"""Storage backends for session token tables."""
from __future__ import annotations

import abc
import copy
import threading
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..db.repository import load_state, save_state
from ..db.session import configure_engine, init_db, session_scope

SESSION_STORE_KEY = "epc-session"


class SessionStoreError(RuntimeError):
    """Raised when a storage backend cannot read or write a table."""


class SessionStore(abc.ABC):
    """Key/value persistence for token tables."""

    @abc.abstractmethod
    def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored table for ``key`` or ``None``."""

    @abc.abstractmethod
    def save(self, key: str, table: Dict[str, Any]) -> None:
        """Persist ``table`` under ``key``."""


class MemorySessionStore(SessionStore):
    """Process-local store. Tables are copied in and out."""

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            table = self._tables.get(key)
            return copy.deepcopy(table) if table is not None else None

    def save(self, key: str, table: Dict[str, Any]) -> None:
        with self._lock:
            self._tables[key] = copy.deepcopy(table)


class SqlSessionStore(SessionStore):
    """Persists tables as JSON rows through SQLAlchemy."""

    def __init__(self, database_url: Optional[str] = None) -> None:
        configure_engine(database_url)
        init_db()

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            with session_scope() as session:
                return load_state(session, key)
        except SQLAlchemyError as exc:
            raise SessionStoreError(f"Failed to load session state '{key}'") from exc

    def save(self, key: str, table: Dict[str, Any]) -> None:
        try:
            with session_scope() as session:
                save_state(session, key, table)
        except SQLAlchemyError as exc:
            raise SessionStoreError(f"Failed to save session state '{key}'") from exc


def create_store(database_url: Optional[str]) -> SessionStore:
    if database_url:
        return SqlSessionStore(database_url)
    return MemorySessionStore()
