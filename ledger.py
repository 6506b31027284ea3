"""
Category ledger calculations.

Computes spent, remaining and utilization for a budget category from its
transactions, plus the running balance of a payment card. Callers pass live
(non-deleted) transactions only; soft-delete filtering belongs to the
persistence layer that builds the records.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from models import CategoryGroup, SpendingStatus, TransactionType
from money import Number, round_to_cents, to_decimal

DEFAULT_WARNING_THRESHOLD = 75.0
DEFAULT_CRITICAL_THRESHOLD = 90.0


@dataclass
class CategoryStatus:
    """
    Status of a budget category.

    Attributes:
        budget_category_id: BudgetCategory ID
        category: Category name
        group: Category group
        allocated: Amount allocated to the category
        spent: Net spending (purchases minus returns)
        remaining: allocated - spent
        percentage_used: Percentage of the allocation spent
        status: Tri-state progress
        transaction_count: Number of transactions counted
    """
    budget_category_id: Optional[int]
    category: str
    group: Optional[CategoryGroup]
    allocated: float
    spent: float
    remaining: float
    percentage_used: float
    status: SpendingStatus
    transaction_count: int = 0

    @property
    def is_over(self) -> bool:
        return self.status is SpendingStatus.OVER


def _signed_spend(transaction) -> Decimal:
    amount = to_decimal(transaction.amount)
    if transaction.transaction_type is TransactionType.RETURN:
        return -amount
    return amount


def category_spent(transactions: Iterable) -> float:
    """
    Net spending for a category.

    RETURN amounts are stored positive and subtracted; every other
    transaction type adds its amount.

    Args:
        transactions: Live transactions assigned to the category

    Returns:
        Spent amount rounded to cents (0.0 when empty)
    """
    total = sum((_signed_spend(t) for t in transactions), Decimal(0))
    return round_to_cents(total)


def category_remaining(allocated: Number, spent: Number) -> float:
    """Remaining allocation; negative when the category is overspent."""
    return round_to_cents(to_decimal(allocated) - to_decimal(spent))


def category_utilization_percent(allocated: Number, spent: Number) -> float:
    """
    Percentage of the allocation that has been spent.

    An allocation of zero yields 0.0; overspending on such a category shows up
    through a negative remaining amount instead.
    """
    allocated_dec = to_decimal(allocated)
    if allocated_dec <= 0:
        return 0.0
    return round_to_cents(to_decimal(spent) / allocated_dec * 100)


def classify_spending(percent: Number, remaining: Optional[Number] = None) -> SpendingStatus:
    """
    Classify progress as in-progress, complete or over.

    Args:
        percent: Utilization percentage
        remaining: Optional remaining amount; a negative value means OVER even
            when the percentage is undefined (zero allocation)

    Returns:
        SpendingStatus member
    """
    if remaining is not None and to_decimal(remaining) < 0:
        return SpendingStatus.OVER
    percent_dec = to_decimal(percent)
    if percent_dec > 100:
        return SpendingStatus.OVER
    if percent_dec == 100:
        return SpendingStatus.COMPLETE
    return SpendingStatus.IN_PROGRESS


def utilization_level(
    percent: Number,
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
    critical_threshold: float = DEFAULT_CRITICAL_THRESHOLD
) -> str:
    """Map a utilization percentage to 'ok', 'warning' or 'critical'."""
    value = float(percent)
    if value > critical_threshold:
        return "critical"
    if value > warning_threshold:
        return "warning"
    return "ok"


def summarize_category(budget_category) -> CategoryStatus:
    """
    Build the CategoryStatus for a budget category.

    Args:
        budget_category: Object exposing id, allocated_amount, transactions and
            a category with name and group

    Returns:
        CategoryStatus
    """
    transactions = list(budget_category.transactions or ())
    allocated = round_to_cents(budget_category.allocated_amount)
    spent = category_spent(transactions)
    remaining = category_remaining(allocated, spent)
    percent = category_utilization_percent(allocated, spent)
    category = budget_category.category

    return CategoryStatus(
        budget_category_id=budget_category.id,
        category=category.name if category is not None else "",
        group=category.group if category is not None else None,
        allocated=allocated,
        spent=spent,
        remaining=remaining,
        percentage_used=percent,
        status=classify_spending(percent, remaining),
        transaction_count=len(transactions),
    )


def card_amount_spent(transactions: Iterable) -> float:
    """
    Running spend on a card.

    REGULAR purchases add. RETURN refunds subtract. CARD_PAYMENT entries
    subtract their signed amount: the paying card carries a negative amount
    (outflow, spend goes up) and the card being paid off carries a positive
    amount (its balance goes down).
    """
    total = Decimal(0)
    for transaction in transactions:
        amount = to_decimal(transaction.amount)
        if transaction.transaction_type in (TransactionType.RETURN, TransactionType.CARD_PAYMENT):
            total -= amount
        else:
            total += amount
    return round_to_cents(total)


def card_available(spending_limit: Optional[Number], spent: Number) -> Optional[float]:
    """Remaining room under a card's limit, or None when the card has no limit."""
    if spending_limit is None:
        return None
    return round_to_cents(to_decimal(spending_limit) - to_decimal(spent))
