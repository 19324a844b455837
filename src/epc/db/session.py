"""Database session management for persisted session tokens."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..core.config import get_settings

logger = logging.getLogger("epc.db")

Base = declarative_base()
_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def configure_engine(database_url: Optional[str] = None) -> None:
    """Point the module-wide engine at ``database_url``.

    Falls back to ``session_store_url`` from settings. Re-configuring with a
    different URL disposes of the previous engine.
    """

    global _engine, _SessionLocal
    url = database_url or get_settings().session_store_url
    if not url:
        raise RuntimeError("No database URL configured for the session store")
    if _engine is not None:
        if _engine.url.render_as_string(hide_password=False) == url:
            return
        _engine.dispose()
    logger.debug("Configuring session store engine for %s", url)
    _engine = create_engine(url, future=True)
    _SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False, future=True)


def init_db() -> None:
    """Create the session state table if it does not already exist."""

    if _engine is None:
        configure_engine()
    if _engine is None:
        raise RuntimeError("Database engine could not be initialised")
    Base.metadata.create_all(bind=_engine)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""

    if _SessionLocal is None:
        configure_engine()
    if _SessionLocal is None:
        raise RuntimeError("Database session factory is not initialised")
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:  # pragma: no cover - re-raise after rollback
        session.rollback()
        raise
    finally:
        session.close()
