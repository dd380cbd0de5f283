"""Record store: append-only persistence of tax quotes plus aggregate queries.

Two implementations share the ``RecordStore`` contract:
  - ``SqlRecordStore``      → SQLAlchemy async engine (PostgreSQL in production)
  - ``InMemoryRecordStore`` → process-local list, used by tests and local runs

Driver and connection errors are surfaced as ``StoreUnavailable``; the raw
error text only goes to the log.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, List, Optional, Protocol, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import Database
from app.exceptions import InvalidInput, StoreUnavailable
from app.models.db_models import CalcRecordRow
from app.models.schemas import (
    CalcRecord,
    CategoryStats,
    HouseCategory,
    Histogram,
    IdentityKind,
    Overview,
    TaxQuote,
)
from app.services.identity import Identity, RequestOrigin
from app.utils.helpers import (
    Number,
    bucket_index,
    bucket_labels,
    round_currency,
    validate_edges,
)

logger = logging.getLogger(__name__)


def clamp_limit(limit: Optional[int]) -> int:
    """Default when ``None``, capped at ``MAX_RECORD_LIMIT``, ≥ 1 required."""
    if limit is None:
        limit = settings.DEFAULT_RECORD_LIMIT
    if limit < 1:
        raise InvalidInput("limit must be at least 1.")
    return min(limit, settings.MAX_RECORD_LIMIT)


class RecordStore(Protocol):
    async def persist(self, quote: TaxQuote, identity: Identity, origin: RequestOrigin) -> int: ...

    async def list_by_identity(self, identity: Identity, limit: Optional[int] = None) -> List[CalcRecord]: ...

    async def count_all(self) -> int: ...

    async def aggregate_overview(self) -> Overview: ...

    async def rent_histogram(self, edges: Optional[Sequence[Number]] = None) -> Histogram: ...

    async def reset(self) -> int: ...


def _edges_or_default(edges: Optional[Sequence[Number]]):
    return validate_edges(settings.RENT_BUCKET_EDGES if edges is None else edges)


# ── SQL-backed store ──────────────────────────────────────────────────────

class SqlRecordStore:
    """Record store on a SQLAlchemy async engine."""

    def __init__(self, database: Database):
        self.database = database

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self.database.session() as session:
                if session is None:
                    raise StoreUnavailable("record store not configured")
                yield session
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            logger.error("Record store error: %s", exc)
            raise StoreUnavailable() from exc

    @staticmethod
    def _to_row(quote: TaxQuote, identity: Identity, origin: RequestOrigin) -> CalcRecordRow:
        authenticated = identity.kind is IdentityKind.AUTHENTICATED
        return CalcRecordRow(
            client_id=None if authenticated else identity.value,
            openid=identity.value if authenticated else None,
            house_type=quote.houseCategory.value,
            monthly_rent=quote.monthlyRent,
            prop_deduction=quote.propertyDeductionApplied,
            inc_deduction=quote.incomeDeductionApplied,
            prop_half=quote.propertyHalfRateApplied,
            property_base=quote.propertyBase,
            income_base=quote.incomeBase,
            property_rate=quote.propertyRate,
            income_rate=quote.incomeRate,
            property_tax=quote.propertyTax,
            income_tax=quote.incomeTax,
            total_tax=quote.totalTax,
            ua=origin.user_agent,
            ip=origin.source_address,
        )

    @staticmethod
    def _to_record(row: CalcRecordRow) -> CalcRecord:
        authenticated = row.openid is not None
        return CalcRecord(
            id=row.id,
            clientIdentity=row.openid if authenticated else row.client_id,
            identityKind=IdentityKind.AUTHENTICATED if authenticated else IdentityKind.ANONYMOUS,
            houseCategory=HouseCategory(row.house_type),
            monthlyRent=row.monthly_rent,
            propertyDeductionApplied=row.prop_deduction,
            incomeDeductionApplied=row.inc_deduction,
            propertyHalfRateApplied=row.prop_half,
            propertyBase=row.property_base,
            incomeBase=row.income_base,
            propertyRate=row.property_rate,
            incomeRate=row.income_rate,
            propertyTax=row.property_tax,
            incomeTax=row.income_tax,
            totalTax=row.total_tax,
            userAgent=row.ua,
            sourceAddress=row.ip,
            createdAt=row.created_at,
        )

    async def persist(self, quote: TaxQuote, identity: Identity, origin: RequestOrigin) -> int:
        row = self._to_row(quote, identity, origin)
        async with self._session() as session:
            session.add(row)
            await session.flush()
            return row.id

    async def list_by_identity(self, identity: Identity, limit: Optional[int] = None) -> List[CalcRecord]:
        limit = clamp_limit(limit)
        column = (
            CalcRecordRow.openid
            if identity.kind is IdentityKind.AUTHENTICATED
            else CalcRecordRow.client_id
        )
        stmt = (
            select(CalcRecordRow)
            .where(column == identity.value)
            .order_by(CalcRecordRow.id.desc())
            .limit(limit)
        )
        async with self._session() as session:
            rows = (await session.scalars(stmt)).all()
            return [self._to_record(r) for r in rows]

    async def count_all(self) -> int:
        try:
            async with self._session() as session:
                return int(await session.scalar(select(func.count(CalcRecordRow.id))) or 0)
        except StoreUnavailable as exc:
            logger.warning("count_all degraded to 0: %s", exc)
            return 0

    async def aggregate_overview(self) -> Overview:
        totals_stmt = select(
            func.count(CalcRecordRow.id),
            func.avg(CalcRecordRow.monthly_rent),
            func.avg(CalcRecordRow.total_tax),
            func.sum(CalcRecordRow.total_tax),
        )
        by_type_stmt = (
            select(
                CalcRecordRow.house_type,
                func.count(CalcRecordRow.id),
                func.avg(CalcRecordRow.total_tax),
            )
            .group_by(CalcRecordRow.house_type)
            .order_by(CalcRecordRow.house_type)
        )
        async with self._session() as session:
            total, avg_rent, avg_tax, sum_tax = (await session.execute(totals_stmt)).one()
            by_type = (await session.execute(by_type_stmt)).all()

        return Overview(
            totalRecords=int(total or 0),
            avgRent=round_currency(avg_rent),
            avgTotalTax=round_currency(avg_tax),
            sumTotalTax=round_currency(sum_tax),
            perCategory=[
                CategoryStats(
                    category=HouseCategory(house_type),
                    count=int(count),
                    avgTax=round_currency(avg),
                )
                for house_type, count, avg in by_type
                if count
            ],
        )

    async def rent_histogram(self, edges: Optional[Sequence[Number]] = None) -> Histogram:
        values = _edges_or_default(edges)
        counts: list[int] = []
        async with self._session() as session:
            for i, lower in enumerate(values):
                stmt = select(func.count(CalcRecordRow.id)).where(CalcRecordRow.monthly_rent >= lower)
                if i + 1 < len(values):
                    stmt = stmt.where(CalcRecordRow.monthly_rent < values[i + 1])
                counts.append(int(await session.scalar(stmt) or 0))
        return Histogram(labels=bucket_labels(values), counts=counts)

    async def reset(self) -> int:
        async with self._session() as session:
            result = await session.execute(delete(CalcRecordRow))
            removed = result.rowcount or 0
        logger.warning("Administrative reset removed %d records.", removed)
        return removed


# ── In-memory store ───────────────────────────────────────────────────────

class InMemoryRecordStore:
    """Process-local store with the same contract as ``SqlRecordStore``."""

    def __init__(self) -> None:
        self._records: list[CalcRecord] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    async def persist(self, quote: TaxQuote, identity: Identity, origin: RequestOrigin) -> int:
        with self._lock:
            record = CalcRecord(
                **quote.model_dump(),
                id=next(self._ids),
                clientIdentity=identity.value,
                identityKind=identity.kind,
                userAgent=origin.user_agent,
                sourceAddress=origin.source_address,
                createdAt=datetime.now(timezone.utc),
            )
            self._records.append(record)
        return record.id

    async def list_by_identity(self, identity: Identity, limit: Optional[int] = None) -> List[CalcRecord]:
        limit = clamp_limit(limit)
        with self._lock:
            matches = [
                r for r in self._records
                if r.identityKind is identity.kind and r.clientIdentity == identity.value
            ]
        matches.sort(key=lambda r: r.id, reverse=True)
        return matches[:limit]

    async def count_all(self) -> int:
        return len(self._records)

    async def aggregate_overview(self) -> Overview:
        with self._lock:
            records = list(self._records)
        if not records:
            return Overview()

        per_category: list[CategoryStats] = []
        for category in sorted(HouseCategory, key=lambda c: c.value):
            taxes = [r.totalTax for r in records if r.houseCategory is category]
            if taxes:
                per_category.append(
                    CategoryStats(
                        category=category,
                        count=len(taxes),
                        avgTax=round_currency(sum(taxes) / len(taxes)),
                    )
                )

        total_tax = sum(r.totalTax for r in records)
        return Overview(
            totalRecords=len(records),
            avgRent=round_currency(sum(r.monthlyRent for r in records) / len(records)),
            avgTotalTax=round_currency(total_tax / len(records)),
            sumTotalTax=round_currency(total_tax),
            perCategory=per_category,
        )

    async def rent_histogram(self, edges: Optional[Sequence[Number]] = None) -> Histogram:
        values = _edges_or_default(edges)
        counts = [0] * len(values)
        with self._lock:
            rents = [r.monthlyRent for r in self._records]
        for rent in rents:
            counts[bucket_index(rent, values)] += 1
        return Histogram(labels=bucket_labels(values), counts=counts)

    async def reset(self) -> int:
        with self._lock:
            removed = len(self._records)
            self._records.clear()
        logger.warning("Administrative reset removed %d records.", removed)
        return removed
