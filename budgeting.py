"""
Budgeting module for period budgets.

This module provides the BudgetManager, which owns the budget lifecycle:
creation with incomes and category allocations, editing, status changes,
duplication, rollover of recurring budgets into their next period and
cascading soft-deletes. Every figure it reports is computed by the pure
allocation/ledger/income modules from a BudgetRecord snapshot.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from allocation import BudgetTotals, budget_totals, category_statuses, group_allocations, strategy_warnings
from config_manager import get_budgeting_setting
from database_ops import (
    Budget,
    BudgetCategory,
    Category,
    DatabaseManager,
    Income,
    Transaction,
    utc_now,
)
from exceptions import InvalidOperationError, NotFoundError, ValidationError
from ledger import DEFAULT_CRITICAL_THRESHOLD, DEFAULT_WARNING_THRESHOLD, CategoryStatus, utilization_level
from models import (
    BudgetCategoryRecord,
    BudgetRecord,
    BudgetStatus,
    CategoryGroup,
    IncomeRecord,
    PeriodType,
    StrategyType,
    parse_enum,
)
from money import Number, require_non_negative, require_positive
from periods import next_period, period_contains, period_end, period_length_days
from utils import parse_date

# Configure logging
logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]
COPY_SUFFIX = " (Copy)"


def _require_name(name: Optional[str], field: str = "name") -> str:
    normalized = (name or "").strip()
    if not normalized:
        raise ValidationError(f"{field} cannot be empty")
    return normalized


class BudgetManager:
    """
    Manages budgets, their incomes and their category allocations.

    Reads return immutable records; writes run inside
    ``DatabaseManager.session_scope()`` so each operation commits once or
    not at all.
    """

    def __init__(self, db_manager: DatabaseManager, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the budget manager.

        Args:
            db_manager: DatabaseManager instance
            config: Optional application config; the ``budgeting`` section
                supplies defaults and alert thresholds
        """
        self.db_manager = db_manager
        config = config or {}
        self.default_strategy = parse_enum(
            StrategyType, get_budgeting_setting(config, "default_strategy", StrategyType.ZERO_SUM.value)
        )
        self.default_period = parse_enum(
            PeriodType, get_budgeting_setting(config, "default_period", PeriodType.MONTHLY.value)
        )
        self.warning_threshold = float(get_budgeting_setting(config, "warning_threshold", DEFAULT_WARNING_THRESHOLD))
        self.critical_threshold = float(get_budgeting_setting(config, "critical_threshold", DEFAULT_CRITICAL_THRESHOLD))
        logger.info("Budget manager initialized")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_end(
        start_at: date,
        period: PeriodType,
        end_at: Optional[DateLike]
    ) -> date:
        """End date for a budget: computed for periodic budgets, required for ONE_TIME."""
        if period is PeriodType.ONE_TIME:
            if end_at is None:
                raise ValidationError("A one-time budget needs an explicit end date")
            end = parse_date(end_at, "end date")
        else:
            end = period_end(start_at, period)
        if end < start_at:
            raise ValidationError(
                "Budget end date cannot be before its start date",
                details={"start_at": start_at, "end_at": end}
            )
        return end

    @staticmethod
    def _get_live(session: Session, model, row_id: int, label: str):
        row = session.query(model).filter(model.id == row_id, model.deleted.is_(None)).first()
        if row is None:
            raise NotFoundError(f"{label} not found", details={f"{label.lower().replace(' ', '_')}_id": row_id})
        return row

    @staticmethod
    def _build_income(entry: Dict[str, Any]) -> Income:
        return Income(
            amount=require_positive(entry.get("amount"), "income amount"),
            frequency=parse_enum(PeriodType, entry.get("frequency", PeriodType.MONTHLY), "frequency"),
            source=_require_name(entry.get("source"), "income source"),
            description=entry.get("description"),
            is_planned=bool(entry.get("is_planned", True)),
            received_at=entry.get("received_at"),
        )

    def _build_allocation(self, session: Session, budget: Budget, entry: Dict[str, Any]) -> BudgetCategory:
        """
        Build a BudgetCategory from an allocation entry.

        The entry names an existing category template by ``category_id`` or an
        ad-hoc category by ``name`` and ``group``. An ad-hoc name matching a
        live template reuses it; otherwise a new template is saved.
        """
        allocated = require_non_negative(entry.get("allocated_amount", 0), "allocated amount")
        category_id = entry.get("category_id")

        if category_id is not None:
            category = self._get_live(session, Category, category_id, "Category")
        else:
            name = _require_name(entry.get("name"), "category name")
            group = parse_enum(CategoryGroup, entry.get("group", CategoryGroup.NEEDS), "group")
            category = session.query(Category).filter(
                func.lower(Category.name) == name.lower(),
                Category.deleted.is_(None)
            ).first()
            if category is None:
                category = Category(name=name, group=group)
                session.add(category)
                session.flush()
            elif category.group is not group:
                logger.warning(
                    f"Category '{category.name}' already exists in {category.group.value}; "
                    f"ignoring requested group {group.value}"
                )

        duplicate = next(
            (bc for bc in budget.categories if bc.deleted is None and (bc.category is category or bc.category_id == category.id)),
            None
        )
        if duplicate is not None:
            raise ValidationError(
                "Category is already allocated in this budget",
                details={"budget_id": budget.id, "category": category.name}
            )

        allocation = BudgetCategory(category=category, allocated_amount=allocated)
        budget.categories.append(allocation)
        return allocation

    def _load_record(self, budget_id: int) -> BudgetRecord:
        record = self.db_manager.get_budget_record(budget_id)
        if record is None:
            raise NotFoundError("Budget not found", details={"budget_id": budget_id})
        return record

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def create_budget(
        self,
        name: str,
        start_at: DateLike,
        period: Optional[Union[PeriodType, str]] = None,
        strategy: Optional[Union[StrategyType, str]] = None,
        end_at: Optional[DateLike] = None,
        is_recurring: bool = False,
        incomes: Optional[Iterable[Dict[str, Any]]] = None,
        allocations: Optional[Iterable[Dict[str, Any]]] = None
    ) -> BudgetRecord:
        """
        Create a budget together with its incomes and allocations.

        Args:
            name: Budget name
            start_at: First day of the budget
            period: Budget cadence (defaults to the configured period)
            strategy: Budgeting strategy (defaults to the configured strategy)
            end_at: End date; required for ONE_TIME budgets, ignored otherwise
            is_recurring: Whether the budget rolls over at the end of its period
            incomes: Dicts with amount, frequency, source, description, is_planned
            allocations: Dicts with allocated_amount and either category_id or
                name and group

        Returns:
            The created BudgetRecord

        Raises:
            ValidationError: If any field is invalid (nothing is written)
            NotFoundError: If an allocation names a missing category
        """
        name = _require_name(name, "budget name")
        period = parse_enum(PeriodType, period or self.default_period, "period")
        strategy = parse_enum(StrategyType, strategy or self.default_strategy, "strategy")
        start = parse_date(start_at, "start date")
        end = self._resolve_end(start, period, end_at)

        with self.db_manager.session_scope() as session:
            budget = Budget(
                name=name,
                strategy=strategy,
                period=period,
                start_at=start,
                end_at=end,
                is_recurring=bool(is_recurring),
                status=BudgetStatus.ACTIVE,
            )
            session.add(budget)
            for income_entry in incomes or ():
                budget.incomes.append(self._build_income(income_entry))
            for allocation_entry in allocations or ():
                self._build_allocation(session, budget, allocation_entry)
            session.flush()
            budget_id = budget.id

        logger.info(f"Created budget {budget_id} '{name}' ({period.value}, {start} to {end})")
        return self._load_record(budget_id)

    def get_budget(self, budget_id: int) -> Optional[BudgetRecord]:
        """
        Get a budget snapshot.

        Args:
            budget_id: Budget ID

        Returns:
            BudgetRecord or None if not found (or deleted)
        """
        return self.db_manager.get_budget_record(budget_id)

    def list_budgets(self, status: Optional[Union[BudgetStatus, str]] = None) -> List[BudgetRecord]:
        """
        List live budgets, most recent start first.

        Args:
            status: Optional lifecycle filter

        Returns:
            List of BudgetRecord
        """
        with self.db_manager.session_scope() as session:
            query = session.query(Budget).filter(Budget.deleted.is_(None))
            if status is not None:
                query = query.filter(Budget.status == parse_enum(BudgetStatus, status, "status"))
            budgets = [b.to_record() for b in query.order_by(Budget.start_at.desc(), Budget.id.desc()).all()]
        logger.debug(f"Listed {len(budgets)} budgets")
        return budgets

    def update_budget(
        self,
        budget_id: int,
        name: Optional[str] = None,
        strategy: Optional[Union[StrategyType, str]] = None,
        period: Optional[Union[PeriodType, str]] = None,
        start_at: Optional[DateLike] = None,
        end_at: Optional[DateLike] = None,
        is_recurring: Optional[bool] = None
    ) -> BudgetRecord:
        """
        Update budget fields.

        The end date is recomputed from the period calculator whenever the
        start or the period changes; an explicit end date only applies to
        ONE_TIME budgets.

        Returns:
            Updated BudgetRecord
        """
        with self.db_manager.session_scope() as session:
            budget = self.db_manager.get_budget_row(session, budget_id)

            if name is not None:
                budget.name = _require_name(name, "budget name")
            if strategy is not None:
                budget.strategy = parse_enum(StrategyType, strategy, "strategy")
            if is_recurring is not None:
                budget.is_recurring = bool(is_recurring)

            new_period = parse_enum(PeriodType, period, "period") if period is not None else budget.period
            new_start = parse_date(start_at, "start date") if start_at is not None else budget.start_at
            if period is not None or start_at is not None or end_at is not None:
                explicit_end = end_at
                if explicit_end is None and new_period is PeriodType.ONE_TIME:
                    explicit_end = budget.end_at
                budget.end_at = self._resolve_end(new_start, new_period, explicit_end)
                budget.period = new_period
                budget.start_at = new_start

            budget.updated_at = utc_now()

        logger.info(f"Updated budget {budget_id}")
        return self._load_record(budget_id)

    def _set_status(self, budget_id: int, status: BudgetStatus) -> BudgetRecord:
        with self.db_manager.session_scope() as session:
            budget = self.db_manager.get_budget_row(session, budget_id)
            previous = budget.status
            budget.status = status
            budget.updated_at = utc_now()
        logger.info(f"Budget {budget_id} status {previous.value} -> {status.value}")
        return self._load_record(budget_id)

    def complete_budget(self, budget_id: int) -> BudgetRecord:
        """Mark a budget COMPLETED."""
        return self._set_status(budget_id, BudgetStatus.COMPLETED)

    def archive_budget(self, budget_id: int) -> BudgetRecord:
        """Mark a budget ARCHIVED."""
        return self._set_status(budget_id, BudgetStatus.ARCHIVED)

    def reactivate_budget(self, budget_id: int) -> BudgetRecord:
        """Return a completed or archived budget to ACTIVE."""
        return self._set_status(budget_id, BudgetStatus.ACTIVE)

    def delete_budget(self, budget_id: int) -> bool:
        """
        Soft-delete a budget with its incomes, allocations and transactions.

        Args:
            budget_id: Budget ID

        Returns:
            True once deleted

        Raises:
            NotFoundError: If the budget does not exist
        """
        with self.db_manager.session_scope() as session:
            budget = self.db_manager.get_budget_row(session, budget_id)
            now = utc_now()
            budget.deleted = now
            for model in (Income, BudgetCategory, Transaction):
                session.query(model).filter(
                    model.budget_id == budget_id,
                    model.deleted.is_(None)
                ).update({model.deleted: now}, synchronize_session=False)

        logger.info(f"Deleted budget {budget_id}")
        return True

    # ------------------------------------------------------------------
    # Incomes
    # ------------------------------------------------------------------

    def add_income(
        self,
        budget_id: int,
        amount: Number,
        source: str,
        frequency: Union[PeriodType, str] = PeriodType.MONTHLY,
        description: Optional[str] = None,
        is_planned: bool = True,
        received_at: Optional[datetime] = None
    ) -> IncomeRecord:
        """
        Add an income to a budget.

        Args:
            budget_id: Budget ID
            amount: Positive amount at the income's own frequency
            source: Where the income comes from
            frequency: How often it is received
            description: Optional note
            is_planned: Planned (expected) or already received
            received_at: When it was received

        Returns:
            Created IncomeRecord
        """
        income = self._build_income({
            "amount": amount,
            "source": source,
            "frequency": frequency,
            "description": description,
            "is_planned": is_planned,
            "received_at": received_at,
        })
        with self.db_manager.session_scope() as session:
            budget = self.db_manager.get_budget_row(session, budget_id)
            budget.incomes.append(income)
            session.flush()
            record = income.to_record()

        logger.info(f"Added income {record.id} ({record.source}: {record.amount} {record.frequency.value}) to budget {budget_id}")
        return record

    def update_income(self, income_id: int, **fields: Any) -> IncomeRecord:
        """
        Update an income.

        Args:
            income_id: Income ID
            **fields: Any of amount, source, frequency, description,
                is_planned, received_at

        Returns:
            Updated IncomeRecord
        """
        allowed = {"amount", "source", "frequency", "description", "is_planned", "received_at"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError("Unknown income fields", details={"fields": ", ".join(sorted(unknown))})

        with self.db_manager.session_scope() as session:
            income = self._get_live(session, Income, income_id, "Income")
            if "amount" in fields:
                income.amount = require_positive(fields["amount"], "income amount")
            if "source" in fields:
                income.source = _require_name(fields["source"], "income source")
            if "frequency" in fields:
                income.frequency = parse_enum(PeriodType, fields["frequency"], "frequency")
            for key in ("description", "is_planned", "received_at"):
                if key in fields:
                    setattr(income, key, fields[key])
            income.updated_at = utc_now()
            session.flush()
            record = income.to_record()

        logger.info(f"Updated income {income_id}")
        return record

    def remove_income(self, income_id: int) -> bool:
        """Soft-delete an income."""
        with self.db_manager.session_scope() as session:
            income = self._get_live(session, Income, income_id, "Income")
            income.deleted = utc_now()
        logger.info(f"Removed income {income_id}")
        return True

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def add_allocation(
        self,
        budget_id: int,
        allocated_amount: Number,
        category_id: Optional[int] = None,
        name: Optional[str] = None,
        group: Optional[Union[CategoryGroup, str]] = None
    ) -> BudgetCategoryRecord:
        """
        Allocate part of a budget to a category.

        Pass ``category_id`` for an existing category template, or ``name``
        and ``group`` to create one on the fly.

        Returns:
            Created BudgetCategoryRecord

        Raises:
            ValidationError: If the amount is negative or the category is
                already allocated in the budget
        """
        entry: Dict[str, Any] = {"allocated_amount": allocated_amount, "category_id": category_id, "name": name}
        if group is not None:
            entry["group"] = group

        with self.db_manager.session_scope() as session:
            budget = self.db_manager.get_budget_row(session, budget_id)
            allocation = self._build_allocation(session, budget, entry)
            session.flush()
            record = allocation.to_record()

        logger.info(f"Allocated {record.allocated_amount} to '{record.name}' in budget {budget_id}")
        return record

    def update_allocation(self, budget_category_id: int, allocated_amount: Number) -> BudgetCategoryRecord:
        """
        Change the amount allocated to a budget category.

        Raises:
            ValidationError: If the amount is negative
        """
        amount = require_non_negative(allocated_amount, "allocated amount")
        with self.db_manager.session_scope() as session:
            allocation = self._get_live(session, BudgetCategory, budget_category_id, "Budget category")
            allocation.allocated_amount = amount
            allocation.updated_at = utc_now()
            session.flush()
            record = allocation.to_record()

        logger.info(f"Updated allocation {budget_category_id} to {amount}")
        return record

    def remove_allocation(self, budget_category_id: int) -> bool:
        """Soft-delete a budget category and the transactions assigned to it."""
        with self.db_manager.session_scope() as session:
            allocation = self._get_live(session, BudgetCategory, budget_category_id, "Budget category")
            now = utc_now()
            allocation.deleted = now
            removed = session.query(Transaction).filter(
                Transaction.category_id == budget_category_id,
                Transaction.deleted.is_(None)
            ).update({Transaction.deleted: now}, synchronize_session=False)

        logger.info(f"Removed allocation {budget_category_id} ({removed} transactions)")
        return True

    # ------------------------------------------------------------------
    # Figures
    # ------------------------------------------------------------------

    def get_totals(self, budget_id: int) -> BudgetTotals:
        """Budget-level totals (income, allocated, spent, remaining, status)."""
        return budget_totals(self._load_record(budget_id))

    def get_category_statuses(self, budget_id: int) -> List[CategoryStatus]:
        """Per-category spent/remaining/utilization for a budget."""
        return category_statuses(self._load_record(budget_id))

    def get_warnings(self, budget_id: int) -> List[str]:
        """Strategy and overspending warnings for a budget."""
        return strategy_warnings(self._load_record(budget_id))

    def get_budget_summary(self, budget_id: int) -> Dict[str, Any]:
        """
        Everything needed to display a budget.

        Returns:
            Dict with keys budget, totals, categories (each with its alert
            level), groups and warnings
        """
        record = self._load_record(budget_id)
        totals = budget_totals(record)
        categories = [
            {
                "status": status,
                "level": utilization_level(status.percentage_used, self.warning_threshold, self.critical_threshold),
            }
            for status in category_statuses(record)
        ]
        return {
            "budget": record,
            "totals": totals,
            "categories": categories,
            "groups": group_allocations(record, totals),
            "warnings": strategy_warnings(record, totals),
        }

    # ------------------------------------------------------------------
    # Duplication and rollover
    # ------------------------------------------------------------------

    def _copy_budget(
        self,
        session: Session,
        source: Budget,
        name: str,
        start: date,
        end: date,
        recurring_incomes_only: bool
    ) -> Budget:
        copy = Budget(
            name=name,
            strategy=source.strategy,
            period=source.period,
            start_at=start,
            end_at=end,
            is_recurring=source.is_recurring,
            status=BudgetStatus.ACTIVE,
        )
        session.add(copy)
        for income in source.incomes:
            if income.deleted is not None:
                continue
            if recurring_incomes_only and income.frequency is PeriodType.ONE_TIME:
                continue
            copy.incomes.append(Income(
                amount=income.amount,
                source=income.source,
                description=income.description,
                frequency=income.frequency,
                is_planned=True,
            ))
        for allocation in source.categories:
            if allocation.deleted is None:
                copy.categories.append(BudgetCategory(
                    category_id=allocation.category_id,
                    allocated_amount=allocation.allocated_amount,
                ))
        session.flush()
        return copy

    def duplicate_budget(self, budget_id: int, start_at: Optional[DateLike] = None) -> BudgetRecord:
        """
        Copy a budget's settings, incomes and allocations into a new budget.

        Transactions are not copied. The copy is named "<name> (Copy)" and
        starts at ``start_at`` (today when omitted); ONE_TIME copies keep the
        source's length.

        Returns:
            The new BudgetRecord
        """
        start = parse_date(start_at, "start date") if start_at is not None else date.today()
        with self.db_manager.session_scope() as session:
            source = self.db_manager.get_budget_row(session, budget_id)
            if source.period is PeriodType.ONE_TIME:
                end = start + timedelta(days=period_length_days(source.start_at, source.end_at) - 1)
            else:
                end = period_end(start, source.period)
            copy = self._copy_budget(session, source, f"{source.name}{COPY_SUFFIX}", start, end, False)
            copy_id = copy.id

        logger.info(f"Duplicated budget {budget_id} as {copy_id}")
        return self._load_record(copy_id)

    def roll_over_budget(self, budget_id: int) -> BudgetRecord:
        """
        Start the next period of a recurring budget.

        Recurring incomes and all allocations are carried over; the current
        budget is marked COMPLETED.

        Returns:
            The BudgetRecord of the next period

        Raises:
            InvalidOperationError: If the budget is not recurring, is ONE_TIME,
                is no longer ACTIVE or already has a next-period budget
        """
        with self.db_manager.session_scope() as session:
            source = self.db_manager.get_budget_row(session, budget_id)
            if not source.is_recurring or source.period is PeriodType.ONE_TIME:
                raise InvalidOperationError(
                    "Only recurring periodic budgets can roll over",
                    details={"budget_id": budget_id, "period": source.period.value}
                )
            if source.status is not BudgetStatus.ACTIVE:
                raise InvalidOperationError(
                    "Only active budgets can roll over",
                    details={"budget_id": budget_id, "status": source.status.value}
                )
            following = next_period(source.start_at, source.period)
            successor = session.query(Budget).filter(
                Budget.deleted.is_(None),
                Budget.name == source.name,
                Budget.period == source.period,
                Budget.start_at == following.start,
            ).first()
            if successor is not None:
                raise InvalidOperationError(
                    "Budget has already been rolled over",
                    details={"budget_id": budget_id, "next_budget_id": successor.id}
                )
            copy = self._copy_budget(session, source, source.name, following.start, following.end, True)
            source.status = BudgetStatus.COMPLETED
            source.updated_at = utc_now()
            copy_id = copy.id

        logger.info(f"Rolled budget {budget_id} over into {copy_id} ({following.start} to {following.end})")
        return self._load_record(copy_id)

    def run_due_rollovers(self, as_of: Optional[DateLike] = None) -> List[BudgetRecord]:
        """
        Roll over every active recurring budget whose period has ended.

        A budget that is several periods behind is rolled forward until its
        latest period contains ``as_of``.

        Args:
            as_of: Reference date (defaults to today)

        Returns:
            The budgets created, in creation order
        """
        today = parse_date(as_of, "date") if as_of is not None else date.today()
        with self.db_manager.session_scope() as session:
            due_ids = [
                row.id for row in session.query(Budget.id).filter(
                    Budget.deleted.is_(None),
                    Budget.is_recurring.is_(True),
                    Budget.status == BudgetStatus.ACTIVE,
                    Budget.period != PeriodType.ONE_TIME,
                    Budget.end_at < today,
                ).order_by(Budget.id).all()
            ]

        created: List[BudgetRecord] = []
        for budget_id in due_ids:
            try:
                current = self.roll_over_budget(budget_id)
            except InvalidOperationError as e:
                logger.warning(f"Skipping rollover of budget {budget_id}: {e}")
                continue
            created.append(current)
            while current.end_at < today:
                current = self.roll_over_budget(current.id)
                created.append(current)

        if created:
            logger.info(f"Rolled over {len(due_ids)} budgets into {len(created)} new periods")
        return created

    def get_current_budgets(self, on: Optional[DateLike] = None) -> List[BudgetRecord]:
        """Active budgets whose period contains ``on`` (today by default)."""
        day = parse_date(on, "date") if on is not None else date.today()
        return [
            budget for budget in self.list_budgets(BudgetStatus.ACTIVE)
            if period_contains(budget.start_at, budget.end_at, day)
        ]


def days_left(budget: BudgetRecord, today: Optional[date] = None) -> int:
    """Days remaining in the budget period, inclusive of today (0 once ended)."""
    today = today or date.today()
    if today > budget.end_at:
        return 0
    return period_length_days(max(today, budget.start_at), budget.end_at)
