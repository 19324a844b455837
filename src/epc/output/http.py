"""HTTP POST transport for the output buffer."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..core.config import Settings
from ..core.http import build_client
from .base import DeliveryOutcome, Transport

logger = logging.getLogger("epc.output.http")


class HttpTransport(Transport):
    """Sends each payload as the body of an HTTP POST to its destination."""

    def __init__(self, client: Optional[httpx.Client] = None, *, settings: Optional[Settings] = None) -> None:
        self._client = client or build_client(settings)

    def send(self, destination: str, payload: str) -> DeliveryOutcome:
        try:
            response = self._client.post(destination, content=payload)
        except httpx.HTTPError as exc:
            logger.debug("POST to %s failed: %s", destination, exc)
            return DeliveryOutcome.failure(str(exc) or type(exc).__name__)
        if response.is_error:
            return DeliveryOutcome.failure(f"HTTP {response.status_code}", status_code=response.status_code)
        return DeliveryOutcome.success(response.status_code)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
