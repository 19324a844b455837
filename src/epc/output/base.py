"""Shared abstractions for buffered event output."""
from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("epc.output")


@dataclass(frozen=True, slots=True)
class QueueItem:
    """A single pending delivery: the payload and where it goes."""

    destination: str
    payload: str


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """Result reported by a transport for one send attempt."""

    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, status_code: Optional[int] = None) -> "DeliveryOutcome":
        return cls(ok=True, status_code=status_code)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> "DeliveryOutcome":
        return cls(ok=False, status_code=status_code, error=error)


class Transport(abc.ABC):
    """Capability that performs one outbound send."""

    @abc.abstractmethod
    def send(self, destination: str, payload: str) -> DeliveryOutcome:
        """Deliver ``payload`` to ``destination`` and report how it went."""

    def close(self) -> None:
        """Release any resources held by the transport."""


class FailurePolicy(abc.ABC):
    """Decides what happens to an item whose delivery failed."""

    @abc.abstractmethod
    def handle(self, item: QueueItem, outcome: DeliveryOutcome) -> None:
        """React to a failed delivery of ``item``."""


class DropFailedItems(FailurePolicy):
    """At-most-once delivery: log the failure and forget the item."""

    def __init__(self) -> None:
        self.dropped = 0

    def handle(self, item: QueueItem, outcome: DeliveryOutcome) -> None:
        self.dropped += 1
        logger.warning(
            "Dropping event for %s after failed delivery (status=%s): %s",
            item.destination,
            outcome.status_code,
            outcome.error,
        )
