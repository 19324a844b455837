"""In-memory sliding window rate limiting for the intake API."""
from __future__ import annotations

import asyncio
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict


class RateLimiter:
    """Allows at most ``max_requests`` per identifier inside a rolling window."""

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def retry_after(self, identifier: str) -> float:
        """Record a hit and return 0, or the seconds to wait if over the limit."""

        now = self._clock()
        cutoff = now - self.window_seconds
        async with self._lock:
            hits = self._hits[identifier]
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return max(hits[0] + self.window_seconds - now, 0.0)
            hits.append(now)
            if len(self._hits) > 1024:
                self._evict_idle(cutoff)
            return 0.0

    def _evict_idle(self, cutoff: float) -> None:
        for key in [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]
