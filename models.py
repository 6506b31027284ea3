"""
Domain enums and record types shared by the ledger engine.

The enums are closed sets; nothing in the engine falls back to a default
branch for an unknown member. Record types are immutable snapshots that the
persistence layer builds from non-deleted rows, so the pure calculation
modules never touch a database session.
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Tuple, Type, TypeVar, Union

from exceptions import ValidationError

E = TypeVar("E", bound=enum.Enum)


class PeriodType(enum.Enum):
    """Cadence of a budget or an income."""
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"
    ONE_TIME = "ONE_TIME"


class TransactionType(enum.Enum):
    """Kinds of ledger entries."""
    REGULAR = "REGULAR"
    RETURN = "RETURN"
    CARD_PAYMENT = "CARD_PAYMENT"
    INCOME = "INCOME"


class CategoryGroup(enum.Enum):
    """Spending groups used by the 50/30/20 rule."""
    NEEDS = "NEEDS"
    WANTS = "WANTS"
    INVESTMENT = "INVESTMENT"


class StrategyType(enum.Enum):
    """Budgeting strategies."""
    ZERO_SUM = "ZERO_SUM"
    PERCENTAGE = "PERCENTAGE"
    FIFTY_THIRTY_TWENTY = "FIFTY_THIRTY_TWENTY"


class BudgetStatus(enum.Enum):
    """Lifecycle state of a budget."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class SpendingStatus(enum.Enum):
    """Progress of spending against a ceiling."""
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"
    OVER = "OVER"


class CardType(enum.Enum):
    """Payment card kinds."""
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    CASH = "CASH"
    BUSINESS_CREDIT = "BUSINESS_CREDIT"
    BUSINESS_DEBIT = "BUSINESS_DEBIT"

    @property
    def is_credit(self) -> bool:
        return self in (CardType.CREDIT, CardType.BUSINESS_CREDIT)


@dataclass(frozen=True)
class TransactionRecord:
    """
    Snapshot of a ledger entry.

    Attributes:
        id: Transaction ID
        amount: Signed amount (RETURN amounts are stored positive)
        transaction_type: TransactionType member
        budget_id: Owning budget
        category_id: BudgetCategory the entry is assigned to, if any
        card_id: Card the entry was paid with, if any
        linked_transaction_id: Other side of a card payment
        name: Short label
        description: Free text
        occurred_at: When the purchase happened
        created_at: When the row was recorded
        deleted: Soft-delete timestamp (None for live rows)
    """
    id: Optional[int]
    amount: float
    transaction_type: TransactionType = TransactionType.REGULAR
    budget_id: Optional[int] = None
    category_id: Optional[int] = None
    card_id: Optional[int] = None
    linked_transaction_id: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    occurred_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    deleted: Optional[datetime] = None


@dataclass(frozen=True)
class IncomeRecord:
    """Snapshot of a budget income."""
    id: Optional[int]
    amount: float
    frequency: PeriodType
    source: str = ""
    description: Optional[str] = None
    is_planned: bool = True
    received_at: Optional[datetime] = None
    budget_id: Optional[int] = None


@dataclass(frozen=True)
class CategoryRecord:
    """Snapshot of a category template."""
    id: Optional[int]
    name: str
    group: CategoryGroup


@dataclass(frozen=True)
class BudgetCategoryRecord:
    """Snapshot of a budget/category allocation with its transactions."""
    id: Optional[int]
    allocated_amount: float
    category: CategoryRecord
    transactions: Tuple[TransactionRecord, ...] = ()
    budget_id: Optional[int] = None

    @property
    def name(self) -> str:
        return self.category.name

    @property
    def group(self) -> CategoryGroup:
        return self.category.group


@dataclass(frozen=True)
class BudgetRecord:
    """Snapshot of a budget with its live incomes and allocations."""
    id: Optional[int]
    name: str
    strategy: StrategyType
    period: PeriodType
    start_at: date
    end_at: date
    is_recurring: bool = False
    status: BudgetStatus = BudgetStatus.ACTIVE
    incomes: Tuple[IncomeRecord, ...] = ()
    categories: Tuple[BudgetCategoryRecord, ...] = ()


@dataclass(frozen=True)
class CardRecord:
    """Snapshot of a payment card."""
    id: Optional[int]
    name: str
    card_type: CardType
    spending_limit: Optional[float] = None
    transactions: Tuple[TransactionRecord, ...] = ()


@dataclass(frozen=True)
class PocketAllocationRecord:
    """Money moved into (or, for a withdrawal, out of) a savings pocket."""
    id: Optional[int]
    amount: float
    is_withdrawal: bool = False
    note: Optional[str] = None
    pocket_id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class PocketRecord:
    """Snapshot of a savings pocket with its live allocations."""
    id: Optional[int]
    name: str
    goal_amount: Optional[float] = None
    goal_date: Optional[date] = None
    goal_note: Optional[str] = None
    allocations: Tuple[PocketAllocationRecord, ...] = ()
    savings_id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class SavingsRecord:
    """Snapshot of a savings plan with its live pockets."""
    id: Optional[int]
    name: str
    budget_id: Optional[int] = None
    budget_name: Optional[str] = None
    pockets: Tuple[PocketRecord, ...] = ()
    created_at: Optional[datetime] = None


def parse_enum(enum_cls: Type[E], value: Union[E, str], field: Optional[str] = None) -> E:
    """
    Resolve an enum member from a member or its (case-insensitive) name.

    Args:
        enum_cls: Enum class to resolve against
        value: Member or name such as "monthly" or "FIFTY_THIRTY_TWENTY"
        field: Field name used in the error details

    Raises:
        ValidationError: If value does not name a member
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        if key in enum_cls.__members__:
            return enum_cls[key]
    raise ValidationError(
        f"Invalid {field or enum_cls.__name__}: {value!r}",
        details={"allowed": ", ".join(enum_cls.__members__)}
    )
