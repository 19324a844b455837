"""Shared test fixtures for the event platform client."""
from __future__ import annotations

import threading
from concurrent.futures import Executor, Future
from typing import Callable, List, Optional, Set, Tuple

import pytest

from epc.core.config import get_settings
from epc.output.base import DeliveryOutcome, Transport
from epc.output.buffer import OutputBuffer


class RecordingTransport(Transport):
    """Remembers every send; destinations listed in ``failing`` fail."""

    def __init__(self, failing: Optional[Set[str]] = None) -> None:
        self.sent: List[Tuple[str, str]] = []
        self.failing = failing or set()
        self.closed = False
        self._lock = threading.Lock()

    def send(self, destination: str, payload: str) -> DeliveryOutcome:
        with self._lock:
            self.sent.append((destination, payload))
        if destination in self.failing:
            return DeliveryOutcome.failure("collector unavailable", status_code=503)
        return DeliveryOutcome.success(202)

    def close(self) -> None:
        self.closed = True

    @property
    def payloads(self) -> List[str]:
        return [payload for _, payload in self.sent]


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:
            future.set_exception(exc)
        return future


class ManualTimer:
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        assert self.started and not self.cancelled, "timer is not armed"
        self.callback()

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled


class ManualTimerFactory:
    """Timer factory whose timers only fire when a test says so."""

    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def __call__(self, interval: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[ManualTimer]:
        return [timer for timer in self.timers if timer.active]


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    for var in ("EPC_API_KEYS", "EPC_SESSION_STORE_URL", "EPC_MAX_BATCH_SIZE", "EPC_MAX_WAIT_MS"):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def timers() -> ManualTimerFactory:
    return ManualTimerFactory()


@pytest.fixture
def make_buffer(transport, timers):
    """Build an output buffer that flushes inline and never starts real timers."""

    def _make(**kwargs) -> OutputBuffer:
        kwargs.setdefault("max_batch_size", 3)
        kwargs.setdefault("max_wait_seconds", 2.0)
        kwargs.setdefault("executor", InlineExecutor())
        kwargs.setdefault("timer_factory", timers)
        return OutputBuffer(kwargs.pop("transport", transport), **kwargs)

    return _make
