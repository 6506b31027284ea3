"""
Shared fixtures: a temporary SQLite database and the service managers bound to it.
"""

from datetime import date

import pytest

from budgeting import BudgetManager
from card_management import CardManager
from category_management import CategoryManager
from database_ops import DatabaseManager
from models import CardType, CategoryGroup, PeriodType, StrategyType
from savings_management import SavingsManager
from transaction_management import TransactionManager


@pytest.fixture
def db_manager(tmp_path):
    """DatabaseManager on a fresh SQLite file with all tables created."""
    manager = DatabaseManager(f"sqlite:///{(tmp_path / 'test_budget.db').as_posix()}")
    manager.create_tables()
    try:
        yield manager
    finally:
        manager.close()


@pytest.fixture
def budget_manager(db_manager):
    return BudgetManager(db_manager)


@pytest.fixture
def transaction_manager(db_manager):
    return TransactionManager(db_manager)


@pytest.fixture
def card_manager(db_manager):
    return CardManager(db_manager)


@pytest.fixture
def category_manager(db_manager):
    return CategoryManager(db_manager)


@pytest.fixture
def savings_manager(db_manager):
    return SavingsManager(db_manager)


@pytest.fixture
def monthly_budget(budget_manager):
    """February 2024 zero-sum budget with two incomes and two allocations."""
    return budget_manager.create_budget(
        name="February",
        start_at=date(2024, 2, 10),
        period=PeriodType.MONTHLY,
        strategy=StrategyType.ZERO_SUM,
        incomes=[
            {"amount": 1000, "frequency": PeriodType.MONTHLY, "source": "Salary"},
            {"amount": 250, "frequency": PeriodType.WEEKLY, "source": "Side gig"},
        ],
        allocations=[
            {"name": "Groceries", "group": CategoryGroup.NEEDS, "allocated_amount": 100},
            {"name": "Dining", "group": CategoryGroup.WANTS, "allocated_amount": 200},
        ],
    )


@pytest.fixture
def cards(card_manager):
    """A checking debit card and a credit card with a limit."""
    checking = card_manager.create_card("Checking", CardType.DEBIT)
    visa = card_manager.create_card("Visa", CardType.CREDIT, spending_limit=1000)
    return checking, visa
