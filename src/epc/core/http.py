"""HTTP client construction for outbound deliveries."""
from __future__ import annotations

from typing import Optional

import httpx

from .config import Settings, get_settings


def build_client(settings: Optional[Settings] = None, *, transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    """Create the synchronous client used by the delivery worker."""

    settings = settings or get_settings()
    limits = httpx.Limits(max_connections=settings.max_connections, max_keepalive_connections=settings.max_connections)
    headers = {"User-Agent": settings.user_agent}
    if settings.content_type:
        headers["Content-Type"] = settings.content_type
    return httpx.Client(
        timeout=settings.default_timeout_seconds,
        limits=limits,
        headers=headers,
        transport=transport,
    )
