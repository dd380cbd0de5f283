"""Shared utility functions: currency rounding, rent buckets, request metadata."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Sequence, Union

from app.exceptions import InvalidInput

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


# ── Financial helpers ─────────────────────────────────────────────────────

def to_decimal(value: object) -> Decimal:
    """Convert a caller-supplied number to ``Decimal``.

    Floats go through their shortest ``repr`` so ``0.1`` becomes
    ``Decimal("0.1")`` rather than its binary expansion.  Raises
    ``InvalidInput`` for booleans, non-numbers and non-finite values.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidInput(f"Expected a number, got {type(value).__name__}.")
    if isinstance(value, float) and not math.isfinite(value):
        raise InvalidInput("Amount must be a finite number.")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidInput(f"Invalid amount: {value!r}") from exc
    if not result.is_finite():
        raise InvalidInput("Amount must be a finite number.")
    return result


def round_currency(value: Union[Number, None]) -> Decimal:
    """Round to cents, half away from zero (standard currency rounding).

    ``None`` (e.g. ``AVG`` over an empty table) rounds to ``0.00``.
    """
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ── Rent buckets ──────────────────────────────────────────────────────────

def validate_edges(edges: Sequence[Number]) -> list[Decimal]:
    """Check histogram breakpoints and return them as decimals.

    Edges must be non-empty, start at 0 and be strictly ascending so the
    resulting buckets cover every non-negative rent exactly once.
    """
    if not edges:
        raise InvalidInput("At least one bucket edge is required.")
    values = [to_decimal(e) for e in edges]
    if values[0] != 0:
        raise InvalidInput("The first bucket edge must be 0.")
    for lower, upper in zip(values, values[1:]):
        if upper <= lower:
            raise InvalidInput("Bucket edges must be strictly ascending.")
    return values


def parse_edges(raw: Optional[str]) -> Optional[list[float]]:
    """Parse a comma-separated ``edges`` query value; blank means default."""
    if raw is None or not raw.strip():
        return None
    try:
        return [float(part) for part in raw.split(",")]
    except ValueError as exc:
        raise InvalidInput(f"Invalid bucket edges: '{raw}'.") from exc


def _format_edge(edge: Decimal) -> str:
    return format(edge.normalize(), "f") if edge != edge.to_integral_value() else str(int(edge))


def bucket_labels(edges: Sequence[Decimal]) -> list[str]:
    """``["0-1000", "1000-2000", "2000+"]`` style labels for *edges*."""
    labels = [
        f"{_format_edge(lower)}-{_format_edge(upper)}"
        for lower, upper in zip(edges, edges[1:])
    ]
    labels.append(f"{_format_edge(edges[-1])}+")
    return labels


def bucket_index(rent: Number, edges: Sequence[Decimal]) -> int:
    """Index of the half-open bucket ``[edges[i], edges[i+1])`` holding *rent*.

    The last bucket is open-ended.  Raises ``InvalidInput`` for negative rent.
    """
    value = to_decimal(rent)
    if value < 0:
        raise InvalidInput("Rent must be non-negative.")
    index = 0
    for i, edge in enumerate(edges):
        if value >= edge:
            index = i
        else:
            break
    return index


# ── Request metadata ──────────────────────────────────────────────────────

def clip(value: Optional[str], max_length: int) -> Optional[str]:
    """Strip and truncate a header value; blank becomes ``None``."""
    if value is None:
        return None
    value = value.strip()[:max_length]
    return value or None


def first_forwarded_address(header_value: str) -> str:
    """First hop of an ``X-Forwarded-For`` style list."""
    return header_value.split(",")[0].strip()
