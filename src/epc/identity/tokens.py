"""Session, pageview and activity token bookkeeping.

Each scope (session or pageview) owns a small table::

    {":id": "<32 hex chars>", ":sg": <next sequence number>, ":ts": <last touch>,
     "<activity name>": <sequence number>, ...}

An activity token is the scope's id followed by the activity's sequence
number as four hex digits, wrapping past 0xffff. A name gets its number the
first time it is asked for, and keeps it until it is reset.
"""
from __future__ import annotations

import enum
import logging
import random
import threading
import time
from typing import Any, Callable, Dict, Optional, Union

from .store import SESSION_STORE_KEY, MemorySessionStore, SessionStore, SessionStoreError

logger = logging.getLogger("epc.identity")

ID_KEY = ":id"
GENERATION_KEY = ":sg"
TOUCHED_KEY = ":ts"


class Scope(str, enum.Enum):
    SESSION = "session"
    PAGEVIEW = "pageview"

    @classmethod
    def parse(cls, value: Union["Scope", str, None]) -> Optional["Scope"]:
        if isinstance(value, Scope):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class IdentifierProvider:
    """Hands out session, pageview and activity tokens."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        *,
        session_timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store or MemorySessionStore()
        self._session_timeout = session_timeout
        self._rng = rng or random.SystemRandom()
        self._clock = clock
        self._lock = threading.RLock()
        self._session: Optional[Dict[str, Any]] = None
        self._pageview: Optional[Dict[str, Any]] = None
        self._saved_touch = float("-inf")

    @classmethod
    def from_settings(cls, settings, store: Optional[SessionStore] = None, **kwargs: Any) -> "IdentifierProvider":
        return cls(store, session_timeout=settings.session_timeout_seconds, **kwargs)

    def new_id(self) -> str:
        return "".join(f"{self._rng.randrange(0xFFFF):04x}" for _ in range(8))

    def session_id(self) -> str:
        with self._lock:
            return self._session_table()[ID_KEY]

    def pageview_id(self) -> str:
        with self._lock:
            return self._pageview_table()[ID_KEY]

    def new_pageview(self) -> str:
        """Start a fresh pageview, forgetting pageview-scoped activities."""

        with self._lock:
            self._pageview = self._new_table()
            return self._pageview[ID_KEY]

    def activity_id(self, name: str, scope: Union[Scope, str]) -> Optional[str]:
        """Return the token for activity ``name`` in ``scope``.

        Unknown scopes give ``None``.
        """

        resolved = Scope.parse(scope)
        if resolved is None:
            logger.debug("No activity token for %r: unknown scope %r", name, scope)
            return None
        with self._lock:
            if resolved is Scope.SESSION:
                table = self._session_table()
            else:
                table = self._pageview_table()
            if name not in table:
                generation = table[GENERATION_KEY]
                table[GENERATION_KEY] = generation + 1
                table[name] = generation
                if resolved is Scope.SESSION:
                    self._persist_session()
            # Sequence numbers wrap so the token keeps its fixed width.
            return f"{table[ID_KEY]}{table[name] & 0xFFFF:04x}"

    def reset_activity(self, name: str) -> None:
        """Forget the sequence number for ``name`` so it gets a new one."""

        if name.startswith(":"):
            return
        with self._lock:
            pageview = self._pageview_table()
            if name in pageview:
                # An activity lives in a single scope.
                del pageview[name]
                return
            session = self._session_table()
            if name in session:
                del session[name]
                self._persist_session()

    def _new_table(self) -> Dict[str, Any]:
        return {ID_KEY: self.new_id(), GENERATION_KEY: 1, TOUCHED_KEY: self._clock()}

    def _pageview_table(self) -> Dict[str, Any]:
        if self._pageview is None:
            self._pageview = self._new_table()
        return self._pageview

    def _session_table(self) -> Dict[str, Any]:
        if self._session is None:
            loaded = self._load_session()
            if _is_well_formed(loaded):
                self._session = loaded
                touched = loaded.get(TOUCHED_KEY)
                if isinstance(touched, (int, float)):
                    self._saved_touch = touched
            else:
                if loaded is not None:
                    logger.info("Stored session state is malformed; starting a new session")
                self._session = self._new_table()
                self._persist_session()
        now = self._clock()
        if self._session_expired(now):
            logger.debug("Session %s timed out; regenerating session and pageview", self._session[ID_KEY])
            self._session = self._new_table()
            self._pageview = self._new_table()
            self._persist_session()
        else:
            self._session[TOUCHED_KEY] = now
            if self._touch_is_stale(now):
                self._persist_session()
        return self._session

    def _session_expired(self, now: float) -> bool:
        if self._session_timeout is None:
            return False
        touched = self._session.get(TOUCHED_KEY)
        if not isinstance(touched, (int, float)):
            return False
        return now - touched > self._session_timeout

    def _touch_is_stale(self, now: float) -> bool:
        # The stored touch time must stay well inside the idle window.
        if self._session_timeout is None:
            return False
        return now - self._saved_touch >= self._session_timeout / 2

    def _load_session(self) -> Optional[Dict[str, Any]]:
        try:
            return self._store.load(SESSION_STORE_KEY)
        except SessionStoreError:
            logger.exception("Could not load stored session state")
            return None

    def _persist_session(self) -> None:
        try:
            self._store.save(SESSION_STORE_KEY, self._session)
            self._saved_touch = self._session.get(TOUCHED_KEY, self._clock())
        except SessionStoreError:
            logger.exception("Could not persist session state")


def _is_well_formed(table: Optional[Dict[str, Any]]) -> bool:
    if not isinstance(table, dict):
        return False
    token = table.get(ID_KEY)
    generation = table.get(GENERATION_KEY)
    return isinstance(token, str) and bool(token) and isinstance(generation, int) and not isinstance(generation, bool)
