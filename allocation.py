"""
Budget allocation aggregator.

Rolls category-level allocations and spending plus normalized income up into
budget-level totals, and evaluates the budget against its strategy
(zero-sum, 50/30/20).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from income import income_breakdown
from ledger import (
    CategoryStatus,
    category_spent,
    classify_spending,
    summarize_category,
)
from models import CategoryGroup, SpendingStatus, StrategyType
from money import Number, format_currency, round_to_cents, sum_monetary_values, to_decimal

logger = logging.getLogger(__name__)

FIFTY_THIRTY_TWENTY_RULE: Dict[CategoryGroup, Decimal] = {
    CategoryGroup.NEEDS: Decimal("0.5"),
    CategoryGroup.WANTS: Decimal("0.3"),
    CategoryGroup.INVESTMENT: Decimal("0.2"),
}


@dataclass
class BudgetTotals:
    """
    Budget-level roll-up.

    Attributes:
        total_income: All incomes normalized to the budget period
        planned_income: Normalized planned incomes
        received_income: Normalized received incomes
        total_allocated: Sum of category allocations
        total_spent: Sum of category spending
        allocation_remaining: total_income - total_allocated (planning view)
        spending_remaining: total_income - total_spent (tracking view)
        spent_percent: total_spent as a percentage of total_income
        status: Tri-state spending progress
    """
    total_income: float
    planned_income: float
    received_income: float
    total_allocated: float
    total_spent: float
    allocation_remaining: float
    spending_remaining: float
    spent_percent: float
    status: SpendingStatus

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_income": self.total_income,
            "planned_income": self.planned_income,
            "received_income": self.received_income,
            "total_allocated": self.total_allocated,
            "total_spent": self.total_spent,
            "allocation_remaining": self.allocation_remaining,
            "spending_remaining": self.spending_remaining,
            "spent_percent": self.spent_percent,
            "status": self.status.value,
        }


@dataclass
class GroupAllocation:
    """Recommended versus actual allocation for one category group."""
    group: CategoryGroup
    share: float
    recommended: float
    allocated: float
    spent: float

    @property
    def is_over_recommended(self) -> bool:
        return self.allocated > self.recommended

    @property
    def difference(self) -> float:
        return round_to_cents(to_decimal(self.allocated) - to_decimal(self.recommended))


def _percent_of(part: Number, whole: Number) -> float:
    whole_dec = to_decimal(whole)
    if whole_dec <= 0:
        return 0.0
    return round_to_cents(to_decimal(part) / whole_dec * 100)


def budget_totals(budget) -> BudgetTotals:
    """
    Compute the totals for a budget.

    Args:
        budget: Object exposing period, incomes and categories (each with
            allocated_amount and transactions)

    Returns:
        BudgetTotals
    """
    categories = list(budget.categories or ())
    income = income_breakdown(budget.incomes or (), budget.period)

    total_allocated = sum_monetary_values(bc.allocated_amount for bc in categories)
    total_spent = sum_monetary_values(category_spent(bc.transactions or ()) for bc in categories)
    allocation_remaining = round_to_cents(to_decimal(income.total) - to_decimal(total_allocated))
    spending_remaining = round_to_cents(to_decimal(income.total) - to_decimal(total_spent))
    spent_percent = _percent_of(total_spent, income.total)

    totals = BudgetTotals(
        total_income=income.total,
        planned_income=income.planned,
        received_income=income.received,
        total_allocated=total_allocated,
        total_spent=total_spent,
        allocation_remaining=allocation_remaining,
        spending_remaining=spending_remaining,
        spent_percent=spent_percent,
        status=classify_spending(spent_percent, spending_remaining),
    )
    logger.debug("Budget %s totals: %s", getattr(budget, "id", None), totals)
    return totals


def category_statuses(budget) -> List[CategoryStatus]:
    """CategoryStatus for every category of the budget, sorted by group then name."""
    statuses = [summarize_category(bc) for bc in budget.categories or ()]
    group_order = {group: index for index, group in enumerate(CategoryGroup)}
    return sorted(
        statuses,
        key=lambda s: (group_order.get(s.group, len(group_order)), s.category.casefold()),
    )


def recommended_group_allocations(total_income: Number) -> Dict[CategoryGroup, float]:
    """Recommended 50/30/20 allocation per group for the given income."""
    income = to_decimal(total_income)
    return {group: round_to_cents(income * share) for group, share in FIFTY_THIRTY_TWENTY_RULE.items()}


def group_allocations(budget, totals: Optional[BudgetTotals] = None) -> List[GroupAllocation]:
    """
    Compare actual allocations per group with the 50/30/20 recommendation.

    Exceeding a recommendation is a soft warning; nothing is enforced.
    """
    totals = totals or budget_totals(budget)
    recommended = recommended_group_allocations(totals.total_income)
    allocated: Dict[CategoryGroup, List[float]] = {group: [] for group in CategoryGroup}
    spent: Dict[CategoryGroup, List[float]] = {group: [] for group in CategoryGroup}

    for bc in budget.categories or ():
        group = bc.category.group
        allocated[group].append(bc.allocated_amount)
        spent[group].append(category_spent(bc.transactions or ()))

    return [
        GroupAllocation(
            group=group,
            share=float(FIFTY_THIRTY_TWENTY_RULE[group]),
            recommended=recommended[group],
            allocated=sum_monetary_values(allocated[group]),
            spent=sum_monetary_values(spent[group]),
        )
        for group in CategoryGroup
    ]


def strategy_warnings(budget, totals: Optional[BudgetTotals] = None) -> List[str]:
    """
    Soft warnings about how the budget follows its strategy.

    Args:
        budget: Budget object or record
        totals: Precomputed totals (computed when omitted)

    Returns:
        List of human-readable warnings (empty when the budget is on track)
    """
    totals = totals or budget_totals(budget)
    warnings: List[str] = []

    if budget.strategy is StrategyType.ZERO_SUM:
        if totals.allocation_remaining > 0:
            warnings.append(
                f"{format_currency(totals.allocation_remaining)} of income is not allocated to any category."
            )
        elif totals.allocation_remaining < 0:
            warnings.append(
                f"Allocations exceed income by {format_currency(-totals.allocation_remaining)}."
            )
    elif budget.strategy is StrategyType.FIFTY_THIRTY_TWENTY:
        for group_allocation in group_allocations(budget, totals):
            if group_allocation.is_over_recommended:
                warnings.append(
                    f"{group_allocation.group.value.title()} allocations exceed the recommended "
                    f"{group_allocation.share * 100:.0f}% by {format_currency(group_allocation.difference)}."
                )

    if totals.spending_remaining < 0:
        warnings.append(f"Spending exceeds income by {format_currency(-totals.spending_remaining)}.")

    over = [status.category for status in category_statuses(budget) if status.is_over]
    if over:
        warnings.append(f"Overspent categories: {', '.join(over)}.")

    return warnings
