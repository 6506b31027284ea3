"""
Database operations module for budget ledger storage.

This module defines the relational schema (cards, categories, budgets,
budget categories, incomes, transactions, savings plans, pockets and pocket
allocations) with SQLAlchemy ORM, handles sessions and transactional units
of work, and converts live rows into the immutable records consumed by the
calculation modules. Nothing is hard-deleted; every table carries a
``deleted`` soft-delete timestamp.
"""

import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Iterator, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    create_engine,
    event,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from exceptions import DatabaseError, NotFoundError
from models import (
    BudgetCategoryRecord,
    BudgetRecord,
    BudgetStatus,
    CardRecord,
    CardType,
    CategoryGroup,
    CategoryRecord,
    IncomeRecord,
    PeriodType,
    PocketAllocationRecord,
    PocketRecord,
    SavingsRecord,
    StrategyType,
    TransactionRecord,
    TransactionType,
)
from money import round_to_cents

# Configure logging
logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone awareness.

    All timestamps in the database are stored in UTC.

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def Money(**kwargs: Any) -> Column:
    """Monetary column: two decimal places, surfaced to Python as float."""
    return Column(Numeric(14, 2, asdecimal=False), **kwargs)


# Base class for declarative models
Base = declarative_base()


class Card(Base):
    """
    SQLAlchemy model representing a payment card.

    Attributes:
        id: Auto-incrementing primary key
        name: Card name (e.g., "Visa Rewards")
        card_type: CardType enum
        spending_limit: Optional credit limit / spending cap
        deleted: Soft-delete timestamp
    """

    __tablename__ = "cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    card_type = Column(Enum(CardType), nullable=False, default=CardType.DEBIT)
    spending_limit = Money(nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    transactions = relationship("Transaction", back_populates="card")

    def __repr__(self) -> str:
        """String representation of the card."""
        return f"<Card(id={self.id}, name='{self.name}', type={self.card_type.value})>"

    def to_record(self, transactions: Optional[List["Transaction"]] = None) -> CardRecord:
        return CardRecord(
            id=self.id,
            name=self.name,
            card_type=self.card_type,
            spending_limit=self.spending_limit,
            transactions=tuple(t.to_record() for t in transactions or ()),
        )


class Category(Base):
    """
    SQLAlchemy model representing a reusable spending category template.

    Attributes:
        id: Auto-incrementing primary key
        name: Category name
        group: NEEDS, WANTS or INVESTMENT
        deleted: Soft-delete timestamp
    """

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, index=True)
    group = Column(Enum(CategoryGroup), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self) -> str:
        """String representation of the category."""
        return f"<Category(id={self.id}, name='{self.name}', group={self.group.value})>"

    def to_record(self) -> CategoryRecord:
        return CategoryRecord(id=self.id, name=self.name, group=self.group)


class Budget(Base):
    """
    SQLAlchemy model representing a budget.

    Attributes:
        id: Auto-incrementing primary key
        name: Budget name
        strategy: Budgeting strategy
        period: Budget cadence
        start_at: First day of the budget period
        end_at: Last day of the budget period
        is_recurring: Whether the budget rolls over into the next period
        status: ACTIVE, COMPLETED or ARCHIVED
        deleted: Soft-delete timestamp
    """

    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    strategy = Column(Enum(StrategyType), nullable=False, default=StrategyType.ZERO_SUM)
    period = Column(Enum(PeriodType), nullable=False, default=PeriodType.MONTHLY)
    start_at = Column(Date, nullable=False, index=True)
    end_at = Column(Date, nullable=False, index=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    status = Column(Enum(BudgetStatus), nullable=False, default=BudgetStatus.ACTIVE, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    incomes = relationship("Income", back_populates="budget")
    categories = relationship("BudgetCategory", back_populates="budget")

    def __repr__(self) -> str:
        """String representation of the budget."""
        return (
            f"<Budget(id={self.id}, name='{self.name}', period={self.period.value}, "
            f"{self.start_at} to {self.end_at}, status={self.status.value})>"
        )

    def to_record(self) -> BudgetRecord:
        """Snapshot of the budget with its live incomes, allocations and transactions."""
        return BudgetRecord(
            id=self.id,
            name=self.name,
            strategy=self.strategy,
            period=self.period,
            start_at=self.start_at,
            end_at=self.end_at,
            is_recurring=bool(self.is_recurring),
            status=self.status,
            incomes=tuple(i.to_record() for i in self.incomes if i.deleted is None),
            categories=tuple(bc.to_record() for bc in self.categories if bc.deleted is None),
        )


class BudgetCategory(Base):
    """
    SQLAlchemy model joining a budget and a category with an allocation.

    Attributes:
        id: Auto-incrementing primary key
        budget_id: Foreign key to budgets table
        category_id: Foreign key to categories table
        allocated_amount: Planned spending ceiling for this budget
        deleted: Soft-delete timestamp
    """

    __tablename__ = "budget_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    allocated_amount = Money(nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    budget = relationship("Budget", back_populates="categories")
    category = relationship("Category")
    transactions = relationship("Transaction", back_populates="budget_category")

    def __repr__(self) -> str:
        """String representation of the allocation."""
        return (
            f"<BudgetCategory(id={self.id}, budget_id={self.budget_id}, "
            f"category_id={self.category_id}, allocated={self.allocated_amount})>"
        )

    def to_record(self) -> BudgetCategoryRecord:
        return BudgetCategoryRecord(
            id=self.id,
            budget_id=self.budget_id,
            allocated_amount=self.allocated_amount,
            category=self.category.to_record(),
            transactions=tuple(t.to_record() for t in self.transactions if t.deleted is None),
        )


class Income(Base):
    """
    SQLAlchemy model representing an income counted toward a budget.

    Attributes:
        id: Auto-incrementing primary key
        budget_id: Foreign key to budgets table
        amount: Income amount at its own frequency
        source: Where the income comes from
        frequency: How often it is received
        is_planned: Planned (expected) vs received
        received_at: When it was received
        deleted: Soft-delete timestamp
    """

    __tablename__ = "incomes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=False, index=True)
    amount = Money(nullable=False)
    source = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    frequency = Column(Enum(PeriodType), nullable=False, default=PeriodType.MONTHLY)
    is_planned = Column(Boolean, nullable=False, default=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    budget = relationship("Budget", back_populates="incomes")

    def __repr__(self) -> str:
        """String representation of the income."""
        return f"<Income(id={self.id}, source='{self.source}', amount={self.amount}, frequency={self.frequency.value})>"

    def to_record(self) -> IncomeRecord:
        return IncomeRecord(
            id=self.id,
            budget_id=self.budget_id,
            amount=self.amount,
            frequency=self.frequency,
            source=self.source,
            description=self.description,
            is_planned=bool(self.is_planned),
            received_at=self.received_at,
        )


class Transaction(Base):
    """
    SQLAlchemy model representing a ledger entry.

    Attributes:
        id: Auto-incrementing primary key
        name: Short label
        description: Free text
        amount: Signed amount (RETURN amounts stored positive)
        transaction_type: REGULAR, RETURN, CARD_PAYMENT or INCOME
        budget_id: Foreign key to budgets table
        category_id: Foreign key to budget_categories table (None for card payments)
        card_id: Foreign key to cards table
        linked_transaction_id: Other side of a card payment pair
        occurred_at: When the purchase happened
        deleted: Soft-delete timestamp
    """

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=True)
    description = Column(String(500), nullable=True)
    amount = Money(nullable=False)
    transaction_type = Column(Enum(TransactionType), nullable=False, default=TransactionType.REGULAR, index=True)
    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("budget_categories.id"), nullable=True, index=True)
    card_id = Column(Integer, ForeignKey("cards.id"), nullable=True, index=True)
    linked_transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    budget_category = relationship("BudgetCategory", back_populates="transactions")
    card = relationship("Card", back_populates="transactions")

    __table_args__ = (
        Index('idx_transactions_budget_deleted', 'budget_id', 'deleted'),
        Index('idx_transactions_card_deleted', 'card_id', 'deleted'),
    )

    def __repr__(self) -> str:
        """String representation of the transaction."""
        return (
            f"<Transaction(id={self.id}, type={self.transaction_type.value}, "
            f"amount={self.amount}, budget_id={self.budget_id})>"
        )

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(
            id=self.id,
            amount=self.amount,
            transaction_type=self.transaction_type,
            budget_id=self.budget_id,
            category_id=self.category_id,
            card_id=self.card_id,
            linked_transaction_id=self.linked_transaction_id,
            name=self.name,
            description=self.description,
            occurred_at=self.occurred_at,
            created_at=self.created_at,
            deleted=self.deleted,
        )


class Savings(Base):
    """
    SQLAlchemy model representing a savings plan.

    Attributes:
        id: Auto-incrementing primary key
        name: Plan name (e.g., "Emergency fund")
        budget_id: Optional budget the plan is funded from
        deleted: Soft-delete timestamp
    """

    __tablename__ = "savings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    budget = relationship("Budget")
    pockets = relationship("Pocket", back_populates="savings")

    def __repr__(self) -> str:
        """String representation of the savings plan."""
        return f"<Savings(id={self.id}, name='{self.name}', budget_id={self.budget_id})>"

    def to_record(self) -> SavingsRecord:
        """Snapshot of the plan with its live pockets and their allocations."""
        return SavingsRecord(
            id=self.id,
            name=self.name,
            budget_id=self.budget_id,
            budget_name=self.budget.name if self.budget is not None else None,
            pockets=tuple(p.to_record() for p in self.pockets if p.deleted is None),
            created_at=self.created_at,
        )


class Pocket(Base):
    """
    SQLAlchemy model representing a named pocket inside a savings plan.

    Attributes:
        id: Auto-incrementing primary key
        savings_id: Foreign key to savings table
        name: Pocket name (e.g., "Vacation")
        goal_amount: Optional target balance
        goal_date: Optional target date
        goal_note: Optional note about the goal
        deleted: Soft-delete timestamp
    """

    __tablename__ = "pockets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    savings_id = Column(Integer, ForeignKey("savings.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    goal_amount = Money(nullable=True)
    goal_date = Column(Date, nullable=True)
    goal_note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    savings = relationship("Savings", back_populates="pockets")
    allocations = relationship("PocketAllocation", back_populates="pocket")

    def __repr__(self) -> str:
        """String representation of the pocket."""
        return f"<Pocket(id={self.id}, name='{self.name}', savings_id={self.savings_id})>"

    def to_record(self) -> PocketRecord:
        return PocketRecord(
            id=self.id,
            savings_id=self.savings_id,
            name=self.name,
            goal_amount=self.goal_amount,
            goal_date=self.goal_date,
            goal_note=self.goal_note,
            allocations=tuple(a.to_record() for a in self.allocations if a.deleted is None),
            created_at=self.created_at,
        )


class PocketAllocation(Base):
    """
    SQLAlchemy model representing a deposit into or withdrawal from a pocket.

    Attributes:
        id: Auto-incrementing primary key
        pocket_id: Foreign key to pockets table
        amount: Positive amount moved
        is_withdrawal: True when the amount leaves the pocket
        note: Optional note
        deleted: Soft-delete timestamp
    """

    __tablename__ = "pocket_allocations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pocket_id = Column(Integer, ForeignKey("pockets.id"), nullable=False, index=True)
    amount = Money(nullable=False)
    is_withdrawal = Column(Boolean, nullable=False, default=False)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    deleted = Column(DateTime(timezone=True), nullable=True, index=True)

    pocket = relationship("Pocket", back_populates="allocations")

    def __repr__(self) -> str:
        """String representation of the allocation."""
        kind = "withdrawal" if self.is_withdrawal else "deposit"
        return f"<PocketAllocation(id={self.id}, pocket_id={self.pocket_id}, {kind}={self.amount})>"

    def to_record(self) -> PocketAllocationRecord:
        return PocketAllocationRecord(
            id=self.id,
            pocket_id=self.pocket_id,
            amount=self.amount,
            is_withdrawal=bool(self.is_withdrawal),
            note=self.note,
            created_at=self.created_at,
        )


TRANSACTION_FIELDS = frozenset({
    "name",
    "description",
    "amount",
    "transaction_type",
    "budget_id",
    "category_id",
    "card_id",
    "linked_transaction_id",
    "occurred_at",
    "created_at",
})


class TransactionWriter:
    """
    Transaction writes bound to one open session.

    Every method flushes so generated IDs are available to the next write;
    commit/rollback is owned by ``DatabaseManager.atomic``.
    """

    def __init__(self, session: Session):
        self.session = session

    def _get_live(self, transaction_id: int) -> Optional[Transaction]:
        return self.session.query(Transaction).filter(
            Transaction.id == transaction_id,
            Transaction.deleted.is_(None)
        ).first()

    def _require_live(self, transaction_id: int) -> Transaction:
        row = self._get_live(transaction_id)
        if row is None:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
        return row

    def create_transaction(self, **fields: Any) -> TransactionRecord:
        unknown = set(fields) - TRANSACTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown transaction fields: {sorted(unknown)}")
        if "amount" in fields:
            fields["amount"] = round_to_cents(fields["amount"])
        if fields.get("created_at") is None:
            fields.pop("created_at", None)
        row = Transaction(**fields)
        self.session.add(row)
        self.session.flush()
        logger.debug("Created transaction %s", row.id)
        return row.to_record()

    def update_transaction(self, transaction_id: int, **fields: Any) -> TransactionRecord:
        unknown = set(fields) - TRANSACTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown transaction fields: {sorted(unknown)}")
        if "amount" in fields:
            fields["amount"] = round_to_cents(fields["amount"])
        row = self._require_live(transaction_id)
        for key, value in fields.items():
            setattr(row, key, value)
        row.updated_at = utc_now()
        self.session.flush()
        return row.to_record()

    def get_transaction(self, transaction_id: int) -> Optional[TransactionRecord]:
        row = self._get_live(transaction_id)
        return row.to_record() if row is not None else None

    def soft_delete_transaction(self, transaction_id: int) -> TransactionRecord:
        row = self._require_live(transaction_id)
        row.deleted = utc_now()
        self.session.flush()
        logger.debug("Soft-deleted transaction %s", transaction_id)
        return row.to_record()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """
    Manages database connections and units of work.

    This class handles engine creation, schema creation, session management
    and the atomic write boundary used by multi-row operations.
    """

    def __init__(self, connection_string: str):
        """
        Initialize the database manager.

        Args:
            connection_string: SQLAlchemy connection string (e.g., 'sqlite:///data/budget.db')

        Raises:
            SQLAlchemyError: If database connection fails
        """
        try:
            self.engine = create_engine(connection_string, echo=False)
            if self.engine.dialect.name == "sqlite":
                event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
            self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
            logger.info(f"Database manager initialized with connection: {connection_string}")
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def create_tables(self) -> None:
        """
        Create all database tables if they don't exist.

        Raises:
            SQLAlchemyError: If table creation fails
        """
        try:
            Base.metadata.create_all(self.engine)
            logger.info("Database tables created/verified successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise

    def get_session(self) -> Session:
        """
        Get a new database session.

        Returns:
            SQLAlchemy session object

        Note:
            Caller is responsible for closing the session.
        """
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Commits once when the block exits normally, rolls back on any
        exception. SQLAlchemy errors are re-raised as DatabaseError; domain
        errors propagate unchanged.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database transaction rolled back: {e}")
            raise DatabaseError("Database operation failed", original_error=e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def atomic(self) -> Iterator[TransactionWriter]:
        """Unit of work for transaction writes; all or nothing."""
        with self.session_scope() as session:
            yield TransactionWriter(session)

    def get_budget_row(self, session: Session, budget_id: int) -> Budget:
        """
        Return a live budget row or raise NotFoundError.

        Args:
            session: Open session
            budget_id: Budget ID
        """
        budget = session.query(Budget).filter(
            Budget.id == budget_id,
            Budget.deleted.is_(None)
        ).first()
        if budget is None:
            raise NotFoundError("Budget not found", details={"budget_id": budget_id})
        return budget

    def get_budget_record(self, budget_id: int, session: Optional[Session] = None) -> Optional[BudgetRecord]:
        """
        Load a budget snapshot with live incomes, allocations and transactions.

        Args:
            budget_id: Budget ID
            session: Optional existing session (creates new one if None)

        Returns:
            BudgetRecord or None if the budget does not exist
        """
        close_session = False
        if session is None:
            session = self.get_session()
            close_session = True

        try:
            budget = session.query(Budget).filter(
                Budget.id == budget_id,
                Budget.deleted.is_(None)
            ).first()
            if budget is None:
                logger.debug(f"Budget {budget_id} not found")
                return None
            return budget.to_record()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load budget {budget_id}: {e}")
            raise DatabaseError("Failed to load budget", details={"budget_id": budget_id}, original_error=e) from e
        finally:
            if close_session:
                session.close()

    def get_transactions(
        self,
        budget_id: Optional[int] = None,
        card_id: Optional[int] = None,
        transaction_type: Optional[TransactionType] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        session: Optional[Session] = None
    ) -> List[TransactionRecord]:
        """
        Get live transactions, newest first, with optional filters.

        Args:
            budget_id: Restrict to one budget
            card_id: Restrict to one card
            transaction_type: Restrict to one transaction type
            limit: Maximum number of records to return
            offset: Number of records to skip (for pagination)
            session: Optional existing session (creates new one if None)

        Returns:
            List of TransactionRecord
        """
        close_session = False
        if session is None:
            session = self.get_session()
            close_session = True

        try:
            query = session.query(Transaction).filter(Transaction.deleted.is_(None))
            if budget_id is not None:
                query = query.filter(Transaction.budget_id == budget_id)
            if card_id is not None:
                query = query.filter(Transaction.card_id == card_id)
            if transaction_type is not None:
                query = query.filter(Transaction.transaction_type == transaction_type)
            query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
            if offset:
                query = query.offset(offset)
            if limit:
                query = query.limit(limit)
            transactions = [row.to_record() for row in query.all()]
            logger.debug(f"Retrieved {len(transactions)} transactions")
            return transactions
        except SQLAlchemyError as e:
            logger.error(f"Failed to get transactions: {e}")
            raise DatabaseError("Failed to get transactions", original_error=e) from e
        finally:
            if close_session:
                session.close()

    def close(self) -> None:
        """Dispose of the engine and its connection pool."""
        self.engine.dispose()
        logger.info("Database connections closed")
