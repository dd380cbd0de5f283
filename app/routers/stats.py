"""Routers for aggregate statistics:
    GET  /api/count
    GET  /api/stats/overview
    GET  /api/stats/buckets
"""

from __future__ import annotations
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from app.dependencies import get_record_store
from app.models.schemas import CountResponse, HistogramResponse, OverviewResponse
from app.services.record_store import RecordStore
from app.utils.helpers import parse_edges

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Stats"],
)


@router.get(
    "/count",
    response_model=CountResponse,
    summary="Total number of stored records (0 when the store is down)",
)
async def count_records(store: RecordStore = Depends(get_record_store)) -> CountResponse:
    return CountResponse(data=await store.count_all())


@router.get(
    "/stats/overview",
    response_model=OverviewResponse,
    summary="Global averages and per-category breakdown",
)
async def stats_overview(store: RecordStore = Depends(get_record_store)) -> OverviewResponse:
    return OverviewResponse(data=await store.aggregate_overview())


@router.get(
    "/stats/buckets",
    response_model=HistogramResponse,
    summary="Rent histogram over half-open buckets",
)
async def stats_buckets(
    edges: Optional[str] = Query(
        None,
        description="Comma-separated ascending breakpoints starting at 0, e.g. 0,1000,2000",
    ),
    store: RecordStore = Depends(get_record_store),
) -> HistogramResponse:
    """Buckets are ``[a, b)`` between consecutive edges plus a final ``last+``."""
    return HistogramResponse(data=await store.rent_histogram(parse_edges(edges)))
