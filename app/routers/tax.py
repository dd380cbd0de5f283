"""Router for the tax calculator:
    POST  /api/tax/calc-simple
"""

from __future__ import annotations
import logging
from typing import Optional
from fastapi import APIRouter, Depends
from app.dependencies import get_identity, get_origin, get_record_store
from app.models.schemas import ErrorResponse, QuoteResponse, TaxCalcRequest
from app.services.identity import Identity, RequestOrigin
from app.services.quote_service import quote_and_record
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tax",
    tags=["Tax"],
)


@router.post(
    "/calc-simple",
    response_model=QuoteResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Compute the monthly property + income tax on a rent",
)
async def calc_simple(
    body: TaxCalcRequest,
    store: RecordStore = Depends(get_record_store),
    identity: Optional[Identity] = Depends(get_identity),
    origin: RequestOrigin = Depends(get_origin),
) -> QuoteResponse:
    """Return the tax breakdown and record it against the caller's identity.

    - Residential: property 4 % (2 % with ``propertyHalfRate``), income 10 %.
    - Non-residential: property 12 %, income 20 %.
    - The 800 deduction applies independently to each base.
    """
    quote = await quote_and_record(body, store, identity, origin)
    return QuoteResponse(data=quote)
