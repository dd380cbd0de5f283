"""Simplified monthly rental tax (property tax + income tax).

Rate policy (fixed, keyed by house category):
    Residential      → property 4 % (2 % in half-rate mode), income 10 %
    Non-residential  → property 12 %,                          income 20 %

Each tax base may independently have a flat deduction (800 by default)
applied:  base = max(0, rent − 800).  Each tax is rounded to cents on its
own, and the total is the sum of the two already-rounded taxes.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, NamedTuple, Union
from app.config import settings
from app.exceptions import InvalidInput
from app.models.schemas import HouseCategory, TaxQuote
from app.utils.helpers import Number, round_currency, to_decimal


class RatePolicy(NamedTuple):
    property_rate: Decimal
    income_rate: Decimal


_RATE_TABLE: Dict[HouseCategory, RatePolicy] = {
    HouseCategory.RESIDENTIAL: RatePolicy(Decimal("0.04"), Decimal("0.10")),
    HouseCategory.NON_RESIDENTIAL: RatePolicy(Decimal("0.12"), Decimal("0.20")),
}

_RESIDENTIAL_HALF_PROPERTY_RATE = Decimal("0.02")

# Money columns are Numeric(10, 2).
MAX_MONTHLY_RENT = Decimal("100000000")


def parse_category(value: Union[HouseCategory, str]) -> HouseCategory:
    """Accept an enum member or its string value."""
    try:
        return HouseCategory(value)
    except ValueError:
        raise InvalidInput(
            f"Unknown house category: {value!r}. "
            f"Expected one of: {', '.join(c.value for c in HouseCategory)}."
        ) from None


def select_rates(category: HouseCategory, half_rate: bool = False) -> RatePolicy:
    """Look up the rate row; half-rate only affects residential property tax."""
    policy = _RATE_TABLE[category]
    if half_rate and category is HouseCategory.RESIDENTIAL:
        return policy._replace(property_rate=_RESIDENTIAL_HALF_PROPERTY_RATE)
    return policy


def taxable_base(rent: Decimal, deduction: bool) -> Decimal:
    if not deduction:
        return rent
    return max(Decimal("0"), rent - to_decimal(settings.DEDUCTION_AMOUNT))


def compute_tax(
    monthly_rent: Number,
    house_category: Union[HouseCategory, str],
    property_deduction: bool = False,
    income_deduction: bool = False,
    property_half_rate: bool = False,
) -> TaxQuote:
    """Compute the tax breakdown for one month of rent.

    Parameters
    ----------
    monthly_rent:
        Rent for the month, rounded to cents before any tax is computed.
        Must round to at least 0.01 and stay below ``MAX_MONTHLY_RENT``.
    house_category:
        ``HouseCategory`` member or its value (``"residential"`` /
        ``"non_residential"``).
    property_deduction, income_deduction:
        Apply the flat deduction to the property / income base.
    property_half_rate:
        Halve the residential property rate.

    Returns
    -------
    TaxQuote
        Rates, bases and taxes; money values rounded to 2 dp.

    Raises
    ------
    InvalidInput
        For out-of-range or non-finite rent, or an unknown category.
    """
    rent = round_currency(to_decimal(monthly_rent))
    if rent <= 0:
        raise InvalidInput("Monthly rent must be at least 0.01.")
    if rent >= MAX_MONTHLY_RENT:
        raise InvalidInput(f"Monthly rent must be below {MAX_MONTHLY_RENT}.")
    category = parse_category(house_category)

    half_rate_applied = bool(property_half_rate) and category is HouseCategory.RESIDENTIAL
    rates = select_rates(category, half_rate_applied)

    property_base = taxable_base(rent, property_deduction)
    income_base = taxable_base(rent, income_deduction)

    property_tax = round_currency(property_base * rates.property_rate)
    income_tax = round_currency(income_base * rates.income_rate)

    return TaxQuote(
        houseCategory=category,
        monthlyRent=rent,
        propertyDeductionApplied=bool(property_deduction),
        incomeDeductionApplied=bool(income_deduction),
        propertyHalfRateApplied=half_rate_applied,
        propertyBase=round_currency(property_base),
        incomeBase=round_currency(income_base),
        propertyRate=rates.property_rate,
        incomeRate=rates.income_rate,
        propertyTax=property_tax,
        incomeTax=income_tax,
        totalTax=round_currency(property_tax + income_tax),
    )
