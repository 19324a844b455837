"""Buffered output queue with count-or-time flushing.

Events are appended to an in-memory FIFO queue and bursted to the
collector either when enough of them have accumulated or when no new
event has arrived for a while. Sending can be switched off at any time;
while it is off, events simply pile up in the queue and the whole backlog
goes out as soon as sending is switched back on.

Deliveries run on a single worker so that ``schedule`` never waits on the
network and two flushes can never interleave. The queue lock is released
around every send.
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Deque, Optional

from .base import DeliveryOutcome, DropFailedItems, FailurePolicy, QueueItem, Transport

logger = logging.getLogger("epc.output")

TimerFactory = Callable[[float, Callable[[], None]], Any]


def daemon_timer(interval: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, callback)
    timer.daemon = True
    return timer


@dataclasses.dataclass(slots=True)
class OutputStats:
    """Running counters for an output buffer."""

    scheduled: int = 0
    delivered: int = 0
    failed: int = 0
    flushes: int = 0


class OutputBuffer:
    """Queue of pending deliveries with an enable/disable switch."""

    def __init__(
        self,
        transport: Transport,
        *,
        max_batch_size: int = 10,
        max_wait_seconds: float = 2.0,
        enabled: bool = True,
        failure_policy: Optional[FailurePolicy] = None,
        executor: Optional[Executor] = None,
        timer_factory: TimerFactory = daemon_timer,
    ) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        if max_wait_seconds < 0:
            raise ValueError("max_wait_seconds cannot be negative")
        self.max_batch_size = max_batch_size
        self.max_wait_seconds = max_wait_seconds
        self.failure_policy = failure_policy or DropFailedItems()
        self._transport = transport
        self._timer_factory = timer_factory
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="epc-output")
        self._lock = threading.Lock()
        self._queue: Deque[QueueItem] = deque()
        self._enabled = enabled
        self._closed = False
        self._timer: Any = None
        self._timer_generation = 0
        self._stats = OutputStats()

    @classmethod
    def from_settings(cls, transport: Transport, settings, **kwargs: Any) -> "OutputBuffer":
        return cls(
            transport,
            max_batch_size=settings.max_batch_size,
            max_wait_seconds=settings.max_wait_seconds,
            enabled=settings.sending_enabled,
            **kwargs,
        )

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def timer_armed(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def stats(self) -> OutputStats:
        with self._lock:
            return dataclasses.replace(self._stats)

    def schedule(self, destination: str, payload: str) -> None:
        """Queue ``payload`` for delivery to ``destination``.

        When sending is enabled this either hands a flush to the worker
        (the queue reached ``max_batch_size``) or re-arms the wait timer.
        When sending is disabled the item is only queued.
        """

        item = QueueItem(destination=destination, payload=payload)
        with self._lock:
            self._queue.append(item)
            self._stats.scheduled += 1
            if not self._enabled or self._closed:
                return
            # >= because a backlog may have built up while disabled.
            flush_now = len(self._queue) >= self.max_batch_size
            if flush_now:
                self._cancel_timer()
            else:
                self._arm_timer()
        if flush_now:
            self._submit_drain()

    def enable(self) -> "Future[int]":
        """Turn sending on and flush whatever is already queued."""

        with self._lock:
            if not self._enabled:
                logger.info("Sending enabled with %s queued event(s)", len(self._queue))
            self._enabled = True
        return self._submit_drain()

    def disable(self) -> None:
        """Turn sending off. Queued items stay put until re-enabled."""

        with self._lock:
            if self._enabled:
                logger.info("Sending disabled with %s queued event(s)", len(self._queue))
            self._enabled = False
            self._cancel_timer()

    def flush(self) -> "Future[int]":
        """Ask the worker to drain the queue now."""

        return self._submit_drain()

    def close(self, *, flush: bool = False) -> None:
        """Stop the timer and the worker, optionally draining first."""

        if flush:
            self._submit_drain()
        with self._lock:
            self._closed = True
            self._cancel_timer()
            remaining = len(self._queue)
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if remaining:
            logger.info("Output buffer closed with %s undelivered event(s)", remaining)

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer_generation += 1
        timer = self._timer_factory(self.max_wait_seconds, partial(self._on_timer, self._timer_generation))
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            # A timer that was cancelled or replaced may still call back.
            if self._timer is None or generation != self._timer_generation:
                return
            self._timer = None
        self._submit_drain()

    def _submit_drain(self) -> "Future[int]":
        try:
            return self._executor.submit(self._drain)
        except RuntimeError:
            logger.debug("Output worker is shut down; %s event(s) stay queued", self.pending)
            future: "Future[int]" = Future()
            future.set_result(0)
            return future

    def _drain(self) -> int:
        with self._lock:
            self._cancel_timer()
            if not self._enabled:
                return 0
        attempted = 0
        while True:
            with self._lock:
                if not self._enabled or not self._queue:
                    if not self._queue:
                        self._cancel_timer()
                    break
                item = self._queue.popleft()
            self._deliver(item)
            attempted += 1
        if attempted:
            with self._lock:
                self._stats.flushes += 1
            logger.debug("Flushed %s event(s)", attempted)
        return attempted

    def _deliver(self, item: QueueItem) -> None:
        try:
            outcome = self._transport.send(item.destination, item.payload)
        except Exception as exc:
            logger.exception("Transport raised while delivering to %s", item.destination)
            outcome = DeliveryOutcome.failure(f"{type(exc).__name__}: {exc}")
        if outcome.ok:
            with self._lock:
                self._stats.delivered += 1
            return
        with self._lock:
            self._stats.failed += 1
        try:
            self.failure_policy.handle(item, outcome)
        except Exception:
            logger.exception("Failure policy raised while handling %s", item.destination)
