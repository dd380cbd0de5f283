"""Pydantic request / response schemas for all API endpoints.

Naming follows the wire format of the calculator front-end:
  - TaxQuote   → ephemeral tax breakdown returned to the caller
  - CalcRecord → the persisted, immutable form of a quote
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PlainSerializer, StrictFloat, StrictInt

# Decimals go over the wire as JSON numbers, not strings.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class HouseCategory(str, Enum):
    """House-use category; selects the rate table row."""
    RESIDENTIAL = "residential"
    NON_RESIDENTIAL = "non_residential"


class IdentityKind(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


# ── Tax quote ─────────────────────────────────────────────────────────────

class TaxQuote(BaseModel):
    """Computed property + income tax breakdown for one month of rent."""
    model_config = ConfigDict(frozen=True)

    houseCategory: HouseCategory
    monthlyRent: Money = Field(..., description="Monthly rent, rounded to cents")
    propertyDeductionApplied: bool = False
    incomeDeductionApplied: bool = False
    propertyHalfRateApplied: bool = False
    propertyBase: Money
    incomeBase: Money
    propertyRate: Money
    incomeRate: Money
    propertyTax: Money
    incomeTax: Money
    totalTax: Money = Field(..., description="propertyTax + incomeTax, each rounded first")


class CalcRecord(TaxQuote):
    """A persisted quote with store-assigned id and attribution metadata."""
    id: int
    clientIdentity: str
    identityKind: IdentityKind
    userAgent: Optional[str] = None
    sourceAddress: Optional[str] = None
    createdAt: Optional[datetime] = None


# ── Calculation request ───────────────────────────────────────────────────

class TaxCalcRequest(BaseModel):
    """Inbound calculator body; the legacy field names are accepted as aliases."""
    monthlyRent: Union[StrictInt, StrictFloat] = Field(
        ...,
        validation_alias=AliasChoices("monthlyRent", "rent"),
        description="Monthly rent as a JSON number; 0.01 <= rent < 100000000",
    )
    houseCategory: str = Field(
        ...,
        validation_alias=AliasChoices("houseCategory", "houseType"),
        description="'residential' or 'non_residential'",
    )
    propertyDeduction: bool = Field(
        False, validation_alias=AliasChoices("propertyDeduction", "propDeduction")
    )
    incomeDeduction: bool = Field(
        False, validation_alias=AliasChoices("incomeDeduction", "incDeduction")
    )
    propertyHalfRate: bool = Field(
        False, validation_alias=AliasChoices("propertyHalfRate", "propHalf")
    )


# ── Aggregates ────────────────────────────────────────────────────────────

class CategoryStats(BaseModel):
    category: HouseCategory
    count: int
    avgTax: Money


class Overview(BaseModel):
    totalRecords: int = 0
    avgRent: Money = Decimal("0.00")
    avgTotalTax: Money = Decimal("0.00")
    sumTotalTax: Money = Decimal("0.00")
    perCategory: List[CategoryStats] = Field(default_factory=list)


class Histogram(BaseModel):
    labels: List[str]
    counts: List[int]


# ── Response envelopes ────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    code: int = 1
    msg: str


class QuoteResponse(BaseModel):
    code: int = 0
    data: TaxQuote


class RecordsResponse(BaseModel):
    code: int = 0
    data: List[CalcRecord]


class OverviewResponse(BaseModel):
    code: int = 0
    data: Overview


class HistogramResponse(BaseModel):
    code: int = 0
    data: Histogram


class CountResponse(BaseModel):
    code: int = 0
    data: int


class DiagnosticsResponse(BaseModel):
    uptime: str = Field(..., description="Process uptime (HH:mm:ss.SSS)")
    lastResponseTime: str = Field(..., description="Last response time (HH:mm:ss.SSS)")
    memory: str = Field(..., description="Current memory usage (e.g. '123.45 MB')")
    threads: int = Field(..., description="Number of active threads")
    persistFailures: int = Field(..., description="Quotes returned without being stored")
