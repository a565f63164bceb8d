"""
Caller identification for the API.

Tokens are issued elsewhere; this module only verifies them. A request is
authenticated by ``Authorization: Bearer <jwt>`` whose ``sub`` (or legacy
``userId``) claim is the user id.
"""

from __future__ import annotations

import uuid
from typing import Optional

import jwt
import structlog
from fastapi import HTTPException, Request

from foundly.core.config import get_settings

log = structlog.get_logger()


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    settings = get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


async def get_current_user_id(request: Request) -> uuid.UUID:
    """FastAPI dependency: the authenticated caller's user id."""
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail="Access token required")

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        # Bare user-id bearer (local development only)
        if get_settings().debug:
            try:
                return uuid.UUID(token)
            except ValueError:
                pass
        raise HTTPException(status_code=403, detail="Invalid token")

    subject = payload.get("sub") or payload.get("userId")
    try:
        user_id = uuid.UUID(str(subject))
    except ValueError:
        log.warning("auth.invalid_subject")
        raise HTTPException(status_code=403, detail="Invalid token")

    structlog.contextvars.bind_contextvars(user_id=str(user_id))
    return user_id
