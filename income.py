"""
Income normalizer.

Expresses an income stated at one frequency as the equivalent amount for one
instance of a budget period (e.g. a weekly paycheck inside a monthly budget).
The conversion table below is the only place the multipliers are defined.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Union

from models import PeriodType
from money import Number, round_to_cents, sum_monetary_values, to_decimal
from periods import coerce_period_type

WEEKS_PER_MONTH = Decimal("4.33")

# Occurrences per year for each recurring frequency. A weekly income converts
# to WEEKS_PER_MONTH per month, a monthly one to 3 per quarter and 12 per year.
PERIODS_PER_YEAR: Dict[PeriodType, Decimal] = {
    PeriodType.WEEKLY: WEEKS_PER_MONTH * 12,
    PeriodType.MONTHLY: Decimal(12),
    PeriodType.QUARTERLY: Decimal(4),
    PeriodType.YEARLY: Decimal(1),
}


@dataclass
class IncomeBreakdown:
    """
    Normalized income totals for one budget period.

    Attributes:
        total: All incomes, normalized
        planned: Incomes flagged as planned
        received: Incomes already received (not planned)
        by_source: Normalized amount per income source
    """
    total: float
    planned: float
    received: float
    by_source: Dict[str, float]


def conversion_factor(
    income_frequency: Union[PeriodType, str],
    budget_period: Union[PeriodType, str]
) -> Decimal:
    """
    Return how many times an income recurs within one budget period.

    ONE_TIME on either side yields 1: a one-time income counts once, and a
    one-time budget receives one occurrence of each recurring income.
    """
    income_frequency = coerce_period_type(income_frequency)
    budget_period = coerce_period_type(budget_period)

    if income_frequency is budget_period:
        return Decimal(1)
    if PeriodType.ONE_TIME in (income_frequency, budget_period):
        return Decimal(1)
    return PERIODS_PER_YEAR[income_frequency] / PERIODS_PER_YEAR[budget_period]


def calculate_adjusted_income(
    amount: Number,
    income_frequency: Union[PeriodType, str],
    budget_period: Union[PeriodType, str]
) -> float:
    """
    Convert an income amount into its equivalent for one budget period.

    Args:
        amount: Income amount at its own frequency
        income_frequency: How often the income is received
        budget_period: Cadence of the budget it is counted against

    Returns:
        Adjusted amount rounded to cents

    Example:
        >>> calculate_adjusted_income(250, PeriodType.WEEKLY, PeriodType.MONTHLY)
        1082.5
    """
    factor = conversion_factor(income_frequency, budget_period)
    return round_to_cents(to_decimal(amount) * factor)


def total_income(incomes: Iterable, budget_period: Union[PeriodType, str]) -> float:
    """Sum of every income normalized to ``budget_period``."""
    return sum_monetary_values(
        calculate_adjusted_income(income.amount, income.frequency, budget_period)
        for income in incomes
    )


def income_breakdown(incomes: Iterable, budget_period: Union[PeriodType, str]) -> IncomeBreakdown:
    """
    Normalize incomes and split them into planned vs received totals.

    Args:
        incomes: Objects exposing amount, frequency, is_planned and source
        budget_period: Budget cadence to normalize to

    Returns:
        IncomeBreakdown with totals and per-source amounts
    """
    planned: List[float] = []
    received: List[float] = []
    by_source: Dict[str, List[float]] = {}

    for income in incomes:
        adjusted = calculate_adjusted_income(income.amount, income.frequency, budget_period)
        if getattr(income, "is_planned", True):
            planned.append(adjusted)
        else:
            received.append(adjusted)
        source = (getattr(income, "source", "") or "").strip() or "Unspecified"
        by_source.setdefault(source, []).append(adjusted)

    return IncomeBreakdown(
        total=sum_monetary_values(planned + received),
        planned=sum_monetary_values(planned),
        received=sum_monetary_values(received),
        by_source={source: sum_monetary_values(values) for source, values in by_source.items()},
    )
