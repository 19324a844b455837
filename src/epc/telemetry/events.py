"""Event construction and submission to the output buffer."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from ..identity.tokens import IdentifierProvider, Scope
from ..output.buffer import OutputBuffer

logger = logging.getLogger("epc.telemetry")


@dataclass(slots=True)
class Event:
    """Represents a single analytics data point."""

    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: time.time())


class EventClient:
    """Stamps events with identifiers and schedules them for delivery."""

    def __init__(
        self,
        output: OutputBuffer,
        identifiers: IdentifierProvider,
        *,
        stream_url: str,
        environment: Optional[str] = None,
    ) -> None:
        self.output = output
        self.identifiers = identifiers
        self.stream_url = stream_url
        self.environment = environment

    def build_payload(
        self,
        event: Event,
        *,
        activity: Optional[str] = None,
        scope: Union[Scope, str] = Scope.PAGEVIEW,
    ) -> str:
        document: Dict[str, Any] = dict(event.attributes)
        document.update(
            {
                "name": event.name,
                "dt": datetime.fromtimestamp(event.timestamp, tz=timezone.utc).isoformat(),
                "session_id": self.identifiers.session_id(),
                "pageview_id": self.identifiers.pageview_id(),
            }
        )
        if self.environment:
            document["environment"] = self.environment
        if activity:
            activity_id = self.identifiers.activity_id(activity, scope)
            if activity_id is None:
                logger.warning("Event %s names activity %s with unknown scope %r", event.name, activity, scope)
            else:
                document["activity_id"] = activity_id
        return json.dumps(document, default=str, sort_keys=True)

    def record(
        self,
        event: Event,
        *,
        activity: Optional[str] = None,
        scope: Union[Scope, str] = Scope.PAGEVIEW,
        stream_url: Optional[str] = None,
    ) -> None:
        payload = self.build_payload(event, activity=activity, scope=scope)
        self.output.schedule(stream_url or self.stream_url, payload)
