"""SQLAlchemy ORM models for record persistence."""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from sqlalchemy import BigInteger, Boolean, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class CalcRecordRow(Base):
    """Append-only audit row for one computed tax quote.

    Exactly one of ``client_id`` (anonymous) and ``openid`` (authenticated)
    is populated.
    """

    __tablename__ = "calc_records"

    # BIGINT on PostgreSQL; SQLite only autoincrements INTEGER primary keys.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    client_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    openid: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    house_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    monthly_rent: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, index=True)
    prop_deduction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    inc_deduction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prop_half: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    property_base: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    income_base: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    property_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    income_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    property_tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    income_tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    ua: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
