"""FastAPI dependencies that hand the core its collaborators."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from app.config import settings
from app.services.identity import Identity, RequestOrigin, build_origin, resolve_identity
from app.services.record_store import RecordStore


def get_record_store(request: Request) -> RecordStore:
    """The store installed on ``app.state`` at application construction."""
    return request.app.state.record_store


def get_identity(request: Request) -> Optional[Identity]:
    """Authenticated header identity, else the anonymous cookie identity."""
    anonymous = getattr(request.state, "client_id", None) or request.cookies.get(settings.CLIENT_COOKIE)
    return resolve_identity(request.headers.get(settings.AUTH_IDENTITY_HEADER), anonymous)


def get_origin(request: Request) -> RequestOrigin:
    return build_origin(
        user_agent=request.headers.get("user-agent"),
        real_ip=request.headers.get("x-real-ip"),
        forwarded_for=request.headers.get("x-forwarded-for"),
        peer_host=request.client.host if request.client else None,
    )
