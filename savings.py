"""
Savings pocket calculations.

A savings plan groups named pockets; each pocket collects allocations. A
deposit adds its amount to the pocket and a withdrawal takes it out again,
so a pocket's balance is deposits minus withdrawals and a plan's balance is
the sum of its pockets. Like ``ledger``, this module only sees immutable
records built from live rows.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from models import PocketAllocationRecord, PocketRecord, SavingsRecord
from money import Number, round_to_cents, sum_monetary_values, to_decimal


@dataclass
class PocketSummary:
    """
    Balance and goal progress of one pocket.

    Attributes:
        pocket_id: Pocket ID
        name: Pocket name
        total: Deposits minus withdrawals
        deposited: Sum of deposits
        withdrawn: Sum of withdrawals
        goal_amount: Target balance, if any
        goal_date: Target date, if any
        goal_note: Free-form note about the goal
        progress_percent: total / goal_amount * 100 (None without a goal)
        remaining_to_goal: Amount still missing (None without a goal)
        allocation_count: Number of live allocations
    """
    pocket_id: Optional[int]
    name: str
    total: float
    deposited: float
    withdrawn: float
    goal_amount: Optional[float] = None
    goal_date: Optional[date] = None
    goal_note: Optional[str] = None
    progress_percent: Optional[float] = None
    remaining_to_goal: Optional[float] = None
    allocation_count: int = 0

    @property
    def goal_reached(self) -> bool:
        return self.goal_amount is not None and self.remaining_to_goal == 0


@dataclass
class SavingsSummary:
    """Balance of a savings plan and each of its pockets."""
    savings_id: Optional[int]
    name: str
    total: float
    budget_id: Optional[int] = None
    budget_name: Optional[str] = None
    pockets: List[PocketSummary] = field(default_factory=list)


def _signed(allocation: PocketAllocationRecord) -> Decimal:
    amount = to_decimal(allocation.amount)
    return -amount if allocation.is_withdrawal else amount


def pocket_total(allocations: Iterable[PocketAllocationRecord]) -> float:
    """
    Balance of a pocket.

    Allocation amounts are stored positive; withdrawals are subtracted.

    Returns:
        Balance rounded to cents (0.0 when empty)
    """
    return round_to_cents(sum((_signed(a) for a in allocations), Decimal(0)))


def goal_progress(total: Number, goal_amount: Optional[Number]) -> Optional[float]:
    """
    Percent of the goal reached, rounded to two places.

    Returns:
        None when there is no goal, 0.0 for a zero goal, may exceed 100
    """
    if goal_amount is None:
        return None
    goal = to_decimal(goal_amount)
    if goal == 0:
        return 0.0
    return round_to_cents(to_decimal(total) / goal * 100)


def remaining_to_goal(total: Number, goal_amount: Optional[Number]) -> Optional[float]:
    """Amount still needed to reach the goal; never negative."""
    if goal_amount is None:
        return None
    return max(round_to_cents(to_decimal(goal_amount) - to_decimal(total)), 0.0)


def summarize_pocket(pocket: PocketRecord) -> PocketSummary:
    deposits = [a.amount for a in pocket.allocations if not a.is_withdrawal]
    withdrawals = [a.amount for a in pocket.allocations if a.is_withdrawal]
    total = pocket_total(pocket.allocations)
    return PocketSummary(
        pocket_id=pocket.id,
        name=pocket.name,
        total=total,
        deposited=sum_monetary_values(deposits),
        withdrawn=sum_monetary_values(withdrawals),
        goal_amount=pocket.goal_amount,
        goal_date=pocket.goal_date,
        goal_note=pocket.goal_note,
        progress_percent=goal_progress(total, pocket.goal_amount),
        remaining_to_goal=remaining_to_goal(total, pocket.goal_amount),
        allocation_count=len(pocket.allocations),
    )


def savings_total(pockets: Iterable[PocketRecord]) -> float:
    """Balance of a savings plan: the sum of its pocket balances."""
    return sum_monetary_values(pocket_total(p.allocations) for p in pockets)


def summarize_savings(savings: SavingsRecord) -> SavingsSummary:
    pockets = [summarize_pocket(p) for p in savings.pockets]
    return SavingsSummary(
        savings_id=savings.id,
        name=savings.name,
        total=sum_monetary_values(p.total for p in pockets),
        budget_id=savings.budget_id,
        budget_name=savings.budget_name,
        pockets=pockets,
    )
