"""Routers for per-identity record history and administration:
    GET     /api/my/records
    DELETE  /api/admin/records
"""

from __future__ import annotations
import hmac
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from app.config import settings
from app.dependencies import get_identity, get_record_store
from app.models.schemas import CountResponse, RecordsResponse
from app.services.identity import Identity
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Records"],
)


@router.get(
    "/my/records",
    response_model=RecordsResponse,
    summary="Most recent calculations for the calling identity",
)
async def my_records(
    limit: int = Query(settings.DEFAULT_RECORD_LIMIT, ge=1, description="Capped at 100"),
    store: RecordStore = Depends(get_record_store),
    identity: Optional[Identity] = Depends(get_identity),
) -> RecordsResponse:
    if identity is None:
        return RecordsResponse(data=[])
    records = await store.list_by_identity(identity, limit)
    return RecordsResponse(data=records)


@router.delete(
    "/admin/records",
    response_model=CountResponse,
    summary="Delete every stored record (administrative reset)",
)
async def reset_records(
    x_admin_token: Optional[str] = Header(None),
    store: RecordStore = Depends(get_record_store),
) -> CountResponse:
    """Returns the number of records removed in ``data``."""
    if not settings.ADMIN_TOKEN:
        raise HTTPException(status_code=404, detail="Not Found")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        logger.warning("Rejected administrative reset with a bad token.")
        raise HTTPException(status_code=403, detail="Forbidden")
    removed = await store.reset()
    return CountResponse(data=removed)
