"""
Unit tests for budget-level aggregation and strategy warnings.
"""

from datetime import date

from allocation import (
    budget_totals,
    category_statuses,
    group_allocations,
    recommended_group_allocations,
    strategy_warnings,
)
from models import (
    BudgetCategoryRecord,
    BudgetRecord,
    CategoryGroup,
    CategoryRecord,
    IncomeRecord,
    PeriodType,
    SpendingStatus,
    StrategyType,
    TransactionRecord,
)


def _allocation(bc_id, name, group, allocated, *amounts):
    return BudgetCategoryRecord(
        id=bc_id,
        allocated_amount=allocated,
        category=CategoryRecord(id=bc_id, name=name, group=group),
        transactions=tuple(TransactionRecord(id=None, amount=a) for a in amounts),
    )


def _budget(strategy=StrategyType.ZERO_SUM, incomes=None, categories=()):
    return BudgetRecord(
        id=1,
        name="Test",
        strategy=strategy,
        period=PeriodType.MONTHLY,
        start_at=date(2024, 2, 1),
        end_at=date(2024, 2, 29),
        incomes=tuple(incomes if incomes is not None else (
            IncomeRecord(id=1, amount=1000, frequency=PeriodType.MONTHLY, source="Salary"),
        )),
        categories=tuple(categories),
    )


class TestBudgetTotals:
    """Test budget_totals."""

    def test_totals(self):
        budget = _budget(categories=[
            _allocation(1, "Rent", CategoryGroup.NEEDS, 600, 600),
            _allocation(2, "Fun", CategoryGroup.WANTS, 300, 120.5),
        ])
        totals = budget_totals(budget)
        assert totals.total_income == 1000.0
        assert totals.total_allocated == 900.0
        assert totals.total_spent == 720.5
        assert totals.allocation_remaining == 100.0
        assert totals.spending_remaining == 279.5
        assert totals.spent_percent == 72.05
        assert totals.status is SpendingStatus.IN_PROGRESS
        assert totals.to_dict()["status"] == "IN_PROGRESS"

    def test_mixed_income_frequencies(self):
        budget = _budget(incomes=[
            IncomeRecord(id=1, amount=1000, frequency=PeriodType.MONTHLY, source="Salary"),
            IncomeRecord(id=2, amount=250, frequency=PeriodType.WEEKLY, source="Side gig"),
        ])
        assert budget_totals(budget).total_income == 2082.5

    def test_no_income_does_not_divide_by_zero(self):
        budget = _budget(incomes=[], categories=[_allocation(1, "Rent", CategoryGroup.NEEDS, 0, 10)])
        totals = budget_totals(budget)
        assert totals.spent_percent == 0.0
        assert totals.status is SpendingStatus.OVER

    def test_exactly_spent_is_complete(self):
        budget = _budget(categories=[_allocation(1, "Rent", CategoryGroup.NEEDS, 1000, 1000)])
        assert budget_totals(budget).status is SpendingStatus.COMPLETE


class TestCategoryStatuses:
    """Test category_statuses ordering."""

    def test_sorted_by_group_then_name(self):
        budget = _budget(categories=[
            _allocation(1, "Stocks", CategoryGroup.INVESTMENT, 100),
            _allocation(2, "travel", CategoryGroup.WANTS, 100),
            _allocation(3, "Rent", CategoryGroup.NEEDS, 100),
            _allocation(4, "Concerts", CategoryGroup.WANTS, 100),
        ])
        assert [s.category for s in category_statuses(budget)] == ["Rent", "Concerts", "travel", "Stocks"]


class TestGroupAllocations:
    """Test 50/30/20 comparisons."""

    def test_recommended(self):
        assert recommended_group_allocations(1000) == {
            CategoryGroup.NEEDS: 500.0,
            CategoryGroup.WANTS: 300.0,
            CategoryGroup.INVESTMENT: 200.0,
        }

    def test_group_rollup(self):
        budget = _budget(strategy=StrategyType.FIFTY_THIRTY_TWENTY, categories=[
            _allocation(1, "Rent", CategoryGroup.NEEDS, 450, 450),
            _allocation(2, "Fun", CategoryGroup.WANTS, 350, 20),
        ])
        groups = {g.group: g for g in group_allocations(budget)}
        assert groups[CategoryGroup.NEEDS].allocated == 450.0
        assert not groups[CategoryGroup.NEEDS].is_over_recommended
        assert groups[CategoryGroup.WANTS].is_over_recommended
        assert groups[CategoryGroup.WANTS].difference == 50.0
        assert groups[CategoryGroup.INVESTMENT].allocated == 0.0


class TestStrategyWarnings:
    """Test strategy_warnings."""

    def test_zero_sum_unallocated(self):
        budget = _budget(categories=[_allocation(1, "Rent", CategoryGroup.NEEDS, 900)])
        assert strategy_warnings(budget) == ["$100.00 of income is not allocated to any category."]

    def test_zero_sum_balanced_has_no_warnings(self):
        budget = _budget(categories=[_allocation(1, "Rent", CategoryGroup.NEEDS, 1000, 200)])
        assert strategy_warnings(budget) == []

    def test_zero_sum_over_allocated(self):
        budget = _budget(categories=[_allocation(1, "Rent", CategoryGroup.NEEDS, 1200)])
        assert strategy_warnings(budget) == ["Allocations exceed income by $200.00."]

    def test_fifty_thirty_twenty_group_warning(self):
        budget = _budget(strategy=StrategyType.FIFTY_THIRTY_TWENTY, categories=[
            _allocation(1, "Fun", CategoryGroup.WANTS, 350),
        ])
        warnings = strategy_warnings(budget)
        assert len(warnings) == 1
        assert warnings[0].startswith("Wants allocations exceed the recommended 30%")

    def test_overspending_reported(self):
        budget = _budget(strategy=StrategyType.PERCENTAGE, categories=[
            _allocation(1, "Rent", CategoryGroup.NEEDS, 500, 1100),
        ])
        warnings = strategy_warnings(budget)
        assert "Spending exceeds income by $100.00." in warnings
        assert "Overspent categories: Rent." in warnings
