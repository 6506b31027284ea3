"""
Tests for SavingsManager: plans, pockets, allocations and summaries.
"""

from datetime import date

import pytest

from database_ops import PocketAllocation
from exceptions import NotFoundError, ValidationError


@pytest.fixture
def plan(savings_manager):
    return savings_manager.create_savings("Emergency fund")


@pytest.fixture
def pocket(savings_manager, plan):
    return savings_manager.create_pocket(plan.id, "Rainy day", goal_amount=1000)


class TestSavingsPlans:
    """Tests for savings plan CRUD."""

    def test_create_and_list_newest_first(self, savings_manager):
        first = savings_manager.create_savings("Emergency fund")
        second = savings_manager.create_savings("  Travel  ")

        assert second.name == "Travel"
        assert [s.id for s in savings_manager.list_savings()] == [second.id, first.id]

    def test_empty_name_rejected(self, savings_manager):
        with pytest.raises(ValidationError):
            savings_manager.create_savings("   ")

    def test_budget_link(self, savings_manager, monthly_budget):
        savings = savings_manager.create_savings("Funded", budget_id=monthly_budget.id)

        assert savings.budget_id == monthly_budget.id
        assert savings.budget_name == "February"

    def test_missing_budget_rejected(self, savings_manager):
        with pytest.raises(NotFoundError):
            savings_manager.create_savings("Funded", budget_id=404)

    def test_delete_hides_plan_and_pockets(self, savings_manager, plan, pocket):
        savings_manager.add_allocation(pocket.id, 100)

        assert savings_manager.delete_savings(plan.id) is True

        assert savings_manager.get_savings(plan.id) is None
        assert savings_manager.list_savings() == []
        assert savings_manager.list_pockets() == []
        with pytest.raises(NotFoundError):
            savings_manager.get_pocket_summary(pocket.id)


class TestPockets:
    """Tests for pocket CRUD."""

    def test_create_pocket_with_goal(self, savings_manager, plan):
        pocket = savings_manager.create_pocket(
            plan.id, "Vacation", goal_amount=2500.005, goal_date="2024-12-01", goal_note="Lisbon"
        )

        assert pocket.savings_id == plan.id
        assert pocket.goal_amount == 2500.01
        assert pocket.goal_date == date(2024, 12, 1)
        assert pocket.goal_note == "Lisbon"

    def test_pocket_requires_live_savings(self, savings_manager, plan):
        with pytest.raises(NotFoundError):
            savings_manager.create_pocket(404, "Orphan")

        savings_manager.delete_savings(plan.id)
        with pytest.raises(NotFoundError):
            savings_manager.create_pocket(plan.id, "Orphan")

    @pytest.mark.parametrize("goal", [0, -10])
    def test_goal_must_be_positive(self, savings_manager, plan, goal):
        with pytest.raises(ValidationError):
            savings_manager.create_pocket(plan.id, "Car", goal_amount=goal)

    def test_list_filters_by_savings(self, savings_manager, plan, pocket):
        other = savings_manager.create_savings("Other")
        savings_manager.create_pocket(other.id, "Elsewhere")

        assert [p.id for p in savings_manager.list_pockets(plan.id)] == [pocket.id]
        assert len(savings_manager.list_pockets()) == 2

    def test_update_and_clear_goal(self, savings_manager, pocket):
        updated = savings_manager.update_pocket(pocket.id, name="Buffer", goal_date=date(2025, 1, 1))
        assert updated.name == "Buffer"
        assert updated.goal_amount == 1000.0
        assert updated.goal_date == date(2025, 1, 1)

        cleared = savings_manager.update_pocket(pocket.id, clear_goal=True)
        assert cleared.goal_amount is None
        assert cleared.goal_date is None

    def test_delete_pocket_removes_allocations(self, savings_manager, db_manager, pocket):
        savings_manager.add_allocation(pocket.id, 40)

        savings_manager.delete_pocket(pocket.id)

        assert savings_manager.get_pocket(pocket.id) is None
        session = db_manager.get_session()
        try:
            assert session.query(PocketAllocation).filter(PocketAllocation.deleted.is_(None)).count() == 0
        finally:
            session.close()


class TestAllocations:
    """Tests for deposits and withdrawals."""

    def test_deposit_and_withdraw(self, savings_manager, pocket):
        savings_manager.add_allocation(pocket.id, 300, note="Bonus")
        withdrawal = savings_manager.add_allocation(pocket.id, 120.5, withdrawal=True)

        assert withdrawal.is_withdrawal
        assert withdrawal.amount == 120.5
        assert savings_manager.get_pocket_summary(pocket.id).total == 179.5

    @pytest.mark.parametrize("amount", [0, -5])
    def test_amount_must_be_positive(self, savings_manager, pocket, amount):
        with pytest.raises(ValidationError):
            savings_manager.add_allocation(pocket.id, amount)

    def test_withdrawal_cannot_exceed_balance(self, savings_manager, pocket):
        savings_manager.add_allocation(pocket.id, 50)

        with pytest.raises(ValidationError):
            savings_manager.add_allocation(pocket.id, 50.01, withdrawal=True)
        assert savings_manager.get_pocket_summary(pocket.id).total == 50.0

    def test_missing_pocket(self, savings_manager):
        with pytest.raises(NotFoundError):
            savings_manager.add_allocation(404, 10)

    def test_update_allocation(self, savings_manager, pocket):
        deposit = savings_manager.add_allocation(pocket.id, 100)
        savings_manager.add_allocation(pocket.id, 60, withdrawal=True)

        savings_manager.update_allocation(deposit.id, 80)
        assert savings_manager.get_pocket_summary(pocket.id).total == 20.0

        with pytest.raises(ValidationError):
            savings_manager.update_allocation(deposit.id, 59)

    def test_remove_deposit_backing_withdrawal_rejected(self, savings_manager, pocket):
        deposit = savings_manager.add_allocation(pocket.id, 100)
        withdrawal = savings_manager.add_allocation(pocket.id, 70, withdrawal=True)

        with pytest.raises(ValidationError):
            savings_manager.remove_allocation(deposit.id)

        assert savings_manager.remove_allocation(withdrawal.id) is True
        assert savings_manager.remove_allocation(deposit.id) is True
        assert savings_manager.get_pocket_summary(pocket.id).total == 0.0


class TestSummaries:
    """Tests for pocket and savings summaries."""

    def test_pocket_progress(self, savings_manager, pocket):
        savings_manager.add_allocation(pocket.id, 250)

        summary = savings_manager.get_pocket_summary(pocket.id)

        assert summary.progress_percent == 25.0
        assert summary.remaining_to_goal == 750.0
        assert summary.allocation_count == 1

    def test_savings_total_sums_pockets(self, savings_manager, plan, pocket):
        car = savings_manager.create_pocket(plan.id, "Car")
        savings_manager.add_allocation(pocket.id, 200)
        savings_manager.add_allocation(car.id, 75.25)
        savings_manager.add_allocation(car.id, 25, withdrawal=True)

        summary = savings_manager.get_savings_summary(plan.id)

        assert summary.total == 250.25
        assert {p.name: p.total for p in summary.pockets} == {"Rainy day": 200.0, "Car": 50.25}

    def test_missing_savings(self, savings_manager):
        with pytest.raises(NotFoundError):
            savings_manager.get_savings_summary(404)
