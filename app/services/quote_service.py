"""Compute a tax quote and record it.

Computation and durability are decoupled: a quote that was computed is always
returned, even when the record store rejects it.  Such persistence faults are
logged and counted so they stay visible through ``/api/diagnostics``.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from app.exceptions import StoreUnavailable
from app.models.schemas import TaxCalcRequest, TaxQuote
from app.services.identity import Identity, RequestOrigin
from app.services.record_store import RecordStore
from app.services.tax_service import compute_tax

logger = logging.getLogger(__name__)

# ── Module-level state ────────────────────────────────────────────────────
_persist_failures: int = 0
_persist_failures_lock = threading.Lock()


def record_persist_failure() -> None:
    global _persist_failures
    with _persist_failures_lock:
        _persist_failures += 1


def persist_failure_count() -> int:
    return _persist_failures


def reset_persist_failures() -> None:
    global _persist_failures
    with _persist_failures_lock:
        _persist_failures = 0


async def quote_and_record(
    body: TaxCalcRequest,
    store: RecordStore,
    identity: Optional[Identity],
    origin: RequestOrigin,
) -> TaxQuote:
    """Compute the quote, then try to persist it.

    ``InvalidInput`` propagates before anything is stored.  A
    ``StoreUnavailable`` from the store is logged and counted, and the quote
    is returned anyway.
    """
    quote = compute_tax(
        body.monthlyRent,
        body.houseCategory,
        property_deduction=body.propertyDeduction,
        income_deduction=body.incomeDeduction,
        property_half_rate=body.propertyHalfRate,
    )

    if identity is None:
        logger.error("Quote computed without a requester identity; not recorded.")
        record_persist_failure()
        return quote

    try:
        record_id = await store.persist(quote, identity, origin)
    except StoreUnavailable as exc:
        record_persist_failure()
        logger.error("Quote not recorded for %s identity: %s", identity.kind.value, exc)
    else:
        logger.debug("Recorded quote %d for %s identity.", record_id, identity.kind.value)
    return quote
