"""API key checks for the intake API."""
from __future__ import annotations

import secrets
from typing import Optional

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

api_key_header = APIKeyHeader(name="X-EPC-Key", auto_error=False)


def verify_api_key(request: Request, api_key: Optional[str] = Security(api_key_header)) -> None:
    keys = request.app.state.settings.api_keys
    if not keys:
        return
    if api_key and any(secrets.compare_digest(api_key, key) for key in keys):
        return
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
