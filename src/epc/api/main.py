"""FastAPI intake and control surface for the event platform client."""
from __future__ import annotations

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..core.config import Settings, get_settings
from ..core.logging import setup_logging
from ..identity.store import SessionStore, create_store
from ..identity.tokens import IdentifierProvider, Scope
from ..output.base import Transport
from ..output.buffer import OutputBuffer
from ..output.http import HttpTransport
from ..security.auth import verify_api_key
from ..security.rate_limiter import RateLimiter
from ..telemetry.events import Event, EventClient

logger = logging.getLogger("epc.api")


class EventIn(BaseModel):
    name: str = Field(min_length=1, description="Event name.")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Free-form event fields.")
    activity: Optional[str] = Field(default=None, description="Activity to stamp an activity token for.")
    scope: Scope = Field(default=Scope.PAGEVIEW, description="Scope the activity token is keyed to.")
    stream_url: Optional[str] = Field(default=None, description="Overrides the configured collector endpoint.")


class RawItemIn(BaseModel):
    destination: str = Field(min_length=1, description="Delivery target URL.")
    payload: str = Field(default="", description="Request body, sent verbatim.")


async def enforce_rate_limit(request: Request) -> None:
    identifier = request.client.host if request.client else "anonymous"
    wait = await request.app.state.rate_limiter.retry_after(identifier)
    if wait:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(max(1, math.ceil(wait)))},
        )


def _status(output: OutputBuffer) -> dict:
    return {
        "enabled": output.enabled,
        "pending": output.pending,
        "timer_armed": output.timer_armed,
        "stats": asdict(output.stats),
    }


def create_app(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[Transport] = None,
    store: Optional[SessionStore] = None,
    **buffer_options: Any,
) -> FastAPI:
    """Build the intake API around a fresh output buffer and token provider."""

    settings = settings or get_settings()
    transport = transport or HttpTransport(settings=settings)
    output = OutputBuffer.from_settings(transport, settings, **buffer_options)
    identifiers = IdentifierProvider.from_settings(settings, store or create_store(settings.session_store_url))
    events = EventClient(output, identifiers, stream_url=settings.stream_url, environment=settings.environment)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s (batch=%s, wait=%sms)", settings.app_name, settings.max_batch_size, settings.max_wait_ms)
        yield
        logger.info("Shutting down %s with %s queued event(s)", settings.app_name, output.pending)
        await asyncio.to_thread(output.close, flush=True)
        await asyncio.to_thread(transport.close)

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.output = output
    app.state.identifiers = identifiers
    app.state.events = events
    app.state.rate_limiter = RateLimiter(max_requests=settings.request_rate_per_minute)

    prefix = settings.api_v1_prefix
    guarded = [Depends(enforce_rate_limit), Depends(verify_api_key)]

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get(f"{prefix}/status", dependencies=[Depends(enforce_rate_limit)])
    async def get_status() -> dict:
        return _status(output)

    @app.post(f"{prefix}/events", status_code=status.HTTP_202_ACCEPTED, dependencies=guarded)
    def post_event(body: EventIn) -> dict:
        event = Event(name=body.name, attributes=body.attributes)
        events.record(event, activity=body.activity, scope=body.scope, stream_url=body.stream_url)
        return {"accepted": 1, "pending": output.pending}

    @app.post(f"{prefix}/raw", status_code=status.HTTP_202_ACCEPTED, dependencies=guarded)
    async def post_raw(body: RawItemIn) -> dict:
        output.schedule(body.destination, body.payload)
        return {"accepted": 1, "pending": output.pending}

    @app.post(f"{prefix}/sending/enable", dependencies=guarded)
    async def enable_sending() -> dict:
        output.enable()
        return _status(output)

    @app.post(f"{prefix}/sending/disable", dependencies=guarded)
    async def disable_sending() -> dict:
        output.disable()
        return _status(output)

    @app.post(f"{prefix}/flush", status_code=status.HTTP_202_ACCEPTED, dependencies=guarded)
    async def flush() -> dict:
        output.flush()
        return _status(output)

    return app


def build_default_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)
    return create_app(settings)
