"""
Savings management module.

Savings plans hold named pockets, optionally with a goal amount and date.
Money is moved in and out of a pocket through allocations; a pocket can never
be drawn below zero. Plans may point at the budget they are funded from.
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from database_ops import DatabaseManager, Pocket, PocketAllocation, Savings, utc_now
from exceptions import DatabaseError, NotFoundError, ValidationError
from models import PocketAllocationRecord, PocketRecord, SavingsRecord
from money import Number, format_currency, require_positive
from savings import PocketSummary, SavingsSummary, pocket_total, summarize_pocket, summarize_savings
from utils import parse_date

# Configure logging
logger = logging.getLogger(__name__)

DateLike = Union[date, str]


class SavingsManager:
    """Manages savings plans, their pockets and pocket allocations."""

    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize the savings manager.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db_manager = db_manager
        logger.info("Savings manager initialized")

    @staticmethod
    def _normalize_name(name: Optional[str], what: str) -> str:
        normalized = (name or "").strip()
        if not normalized:
            raise ValidationError(f"{what} name cannot be empty")
        return normalized

    @staticmethod
    def _live_savings(session, savings_id: int) -> Savings:
        savings = session.query(Savings).filter(
            Savings.id == savings_id,
            Savings.deleted.is_(None)
        ).first()
        if savings is None:
            raise NotFoundError("Savings plan not found", details={"savings_id": savings_id})
        return savings

    @staticmethod
    def _live_pocket(session, pocket_id: int) -> Pocket:
        pocket = session.query(Pocket).join(Savings).filter(
            Pocket.id == pocket_id,
            Pocket.deleted.is_(None),
            Savings.deleted.is_(None)
        ).first()
        if pocket is None:
            raise NotFoundError("Pocket not found", details={"pocket_id": pocket_id})
        return pocket

    @staticmethod
    def _live_allocation(session, allocation_id: int) -> PocketAllocation:
        allocation = session.query(PocketAllocation).join(Pocket).filter(
            PocketAllocation.id == allocation_id,
            PocketAllocation.deleted.is_(None),
            Pocket.deleted.is_(None)
        ).first()
        if allocation is None:
            raise NotFoundError("Pocket allocation not found", details={"allocation_id": allocation_id})
        return allocation

    @staticmethod
    def _ensure_covered(pocket: Pocket, allocations: Iterable[PocketAllocationRecord]) -> None:
        balance = pocket_total(allocations)
        if balance < 0:
            raise ValidationError(
                f"Pocket '{pocket.name}' cannot go below zero",
                details={"pocket_id": pocket.id, "balance": balance}
            )

    @staticmethod
    def _goal_amount(goal_amount: Optional[Number]) -> Optional[float]:
        return require_positive(goal_amount, "goal_amount") if goal_amount is not None else None

    # Savings plans

    def create_savings(self, name: str, budget_id: Optional[int] = None) -> SavingsRecord:
        """
        Create a savings plan.

        Args:
            name: Plan name
            budget_id: Optional budget the plan is funded from

        Returns:
            Created SavingsRecord

        Raises:
            ValidationError: If the name is empty
            NotFoundError: If ``budget_id`` names a missing or deleted budget
        """
        name = self._normalize_name(name, "Savings")

        with self.db_manager.session_scope() as session:
            if budget_id is not None:
                self.db_manager.get_budget_row(session, budget_id)
            savings = Savings(name=name, budget_id=budget_id)
            session.add(savings)
            session.flush()
            record = savings.to_record()

        logger.info(f"Created savings plan {record.id}: {name}")
        return record

    def get_savings(self, savings_id: int) -> Optional[SavingsRecord]:
        """
        Get a savings plan with its live pockets.

        Returns:
            SavingsRecord or None if not found
        """
        with self.db_manager.session_scope() as session:
            savings = session.query(Savings).filter(
                Savings.id == savings_id,
                Savings.deleted.is_(None)
            ).first()
            return savings.to_record() if savings is not None else None

    def list_savings(self) -> List[SavingsRecord]:
        """List live savings plans, newest first."""
        session = self.db_manager.get_session()
        try:
            plans = session.query(Savings).filter(
                Savings.deleted.is_(None)
            ).order_by(Savings.created_at.desc(), Savings.id.desc()).all()
            return [s.to_record() for s in plans]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list savings plans: {e}")
            raise DatabaseError("Failed to list savings plans", original_error=e) from e
        finally:
            session.close()

    def delete_savings(self, savings_id: int) -> bool:
        """
        Soft-delete a savings plan together with its pockets and allocations.

        Raises:
            NotFoundError: If the plan does not exist
        """
        with self.db_manager.session_scope() as session:
            savings = self._live_savings(session, savings_id)
            now = utc_now()
            for pocket in savings.pockets:
                if pocket.deleted is None:
                    self._delete_pocket_row(pocket, now)
            savings.deleted = now

        logger.info(f"Deleted savings plan {savings_id}")
        return True

    # Pockets

    def create_pocket(
        self,
        savings_id: int,
        name: str,
        goal_amount: Optional[Number] = None,
        goal_date: Optional[DateLike] = None,
        goal_note: Optional[str] = None
    ) -> PocketRecord:
        """
        Add a pocket to a savings plan.

        Args:
            savings_id: Savings plan the pocket belongs to
            name: Pocket name
            goal_amount: Optional target balance (positive)
            goal_date: Optional target date
            goal_note: Optional note

        Returns:
            Created PocketRecord

        Raises:
            NotFoundError: If the savings plan is missing or deleted
            ValidationError: If the name, goal amount or goal date is invalid
        """
        name = self._normalize_name(name, "Pocket")
        goal = self._goal_amount(goal_amount)
        target_date = parse_date(goal_date, "goal date") if goal_date is not None else None

        with self.db_manager.session_scope() as session:
            self._live_savings(session, savings_id)
            pocket = Pocket(
                savings_id=savings_id,
                name=name,
                goal_amount=goal,
                goal_date=target_date,
                goal_note=goal_note,
            )
            session.add(pocket)
            session.flush()
            record = pocket.to_record()

        logger.info(f"Created pocket {record.id} '{name}' in savings plan {savings_id}")
        return record

    def get_pocket(self, pocket_id: int) -> Optional[PocketRecord]:
        """Get a live pocket with its allocations, or None."""
        with self.db_manager.session_scope() as session:
            try:
                return self._live_pocket(session, pocket_id).to_record()
            except NotFoundError:
                return None

    def list_pockets(self, savings_id: Optional[int] = None) -> List[PocketRecord]:
        """
        List live pockets of live savings plans, newest first.

        Args:
            savings_id: Optional savings plan filter
        """
        session = self.db_manager.get_session()
        try:
            query = session.query(Pocket).join(Savings).filter(
                Pocket.deleted.is_(None),
                Savings.deleted.is_(None)
            )
            if savings_id is not None:
                query = query.filter(Pocket.savings_id == savings_id)
            pockets = query.order_by(Pocket.created_at.desc(), Pocket.id.desc()).all()
            return [p.to_record() for p in pockets]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list pockets: {e}")
            raise DatabaseError("Failed to list pockets", original_error=e) from e
        finally:
            session.close()

    def update_pocket(
        self,
        pocket_id: int,
        name: Optional[str] = None,
        goal_amount: Optional[Number] = None,
        goal_date: Optional[DateLike] = None,
        goal_note: Optional[str] = None,
        clear_goal: bool = False
    ) -> PocketRecord:
        """
        Rename a pocket or change its goal.

        Fields left as None are unchanged. ``clear_goal`` removes the goal
        amount, date and note before any new goal values are applied.

        Returns:
            Updated PocketRecord
        """
        with self.db_manager.session_scope() as session:
            pocket = self._live_pocket(session, pocket_id)

            if name is not None:
                pocket.name = self._normalize_name(name, "Pocket")
            if clear_goal:
                pocket.goal_amount = None
                pocket.goal_date = None
                pocket.goal_note = None
            if goal_amount is not None:
                pocket.goal_amount = self._goal_amount(goal_amount)
            if goal_date is not None:
                pocket.goal_date = parse_date(goal_date, "goal date")
            if goal_note is not None:
                pocket.goal_note = goal_note

            pocket.updated_at = utc_now()
            session.flush()
            record = pocket.to_record()

        logger.info(f"Updated pocket {pocket_id}")
        return record

    @staticmethod
    def _delete_pocket_row(pocket: Pocket, now) -> None:
        for allocation in pocket.allocations:
            if allocation.deleted is None:
                allocation.deleted = now
        pocket.deleted = now

    def delete_pocket(self, pocket_id: int) -> bool:
        """Soft-delete a pocket and its allocations."""
        with self.db_manager.session_scope() as session:
            pocket = self._live_pocket(session, pocket_id)
            self._delete_pocket_row(pocket, utc_now())

        logger.info(f"Deleted pocket {pocket_id}")
        return True

    # Allocations

    def add_allocation(
        self,
        pocket_id: int,
        amount: Number,
        note: Optional[str] = None,
        withdrawal: bool = False
    ) -> PocketAllocationRecord:
        """
        Deposit into or withdraw from a pocket.

        Args:
            pocket_id: Pocket ID
            amount: Positive amount
            note: Optional note
            withdrawal: Take the amount out of the pocket instead

        Returns:
            Created PocketAllocationRecord

        Raises:
            ValidationError: If the amount is not positive or a withdrawal exceeds the balance
            NotFoundError: If the pocket does not exist
        """
        amount = require_positive(amount)

        with self.db_manager.session_scope() as session:
            pocket = self._live_pocket(session, pocket_id)
            if withdrawal:
                current = pocket.to_record().allocations
                self._ensure_covered(pocket, current + (PocketAllocationRecord(None, amount, is_withdrawal=True),))
            allocation = PocketAllocation(pocket_id=pocket_id, amount=amount, is_withdrawal=withdrawal, note=note)
            session.add(allocation)
            session.flush()
            record = allocation.to_record()

        kind = "Withdrew" if withdrawal else "Deposited"
        logger.info(f"{kind} {format_currency(amount)} {'from' if withdrawal else 'into'} pocket {pocket_id}")
        return record

    def update_allocation(
        self,
        allocation_id: int,
        amount: Number,
        withdrawal: Optional[bool] = None
    ) -> PocketAllocationRecord:
        """
        Change the amount (and optionally the direction) of an allocation.

        Raises:
            ValidationError: If the change would leave the pocket below zero
        """
        amount = require_positive(amount)

        with self.db_manager.session_scope() as session:
            allocation = self._live_allocation(session, allocation_id)
            changed = replace(
                allocation.to_record(),
                amount=amount,
                is_withdrawal=allocation.is_withdrawal if withdrawal is None else withdrawal,
            )
            others = tuple(a for a in allocation.pocket.to_record().allocations if a.id != allocation_id)
            self._ensure_covered(allocation.pocket, others + (changed,))

            allocation.amount = changed.amount
            allocation.is_withdrawal = changed.is_withdrawal
            allocation.updated_at = utc_now()
            session.flush()
            record = allocation.to_record()

        logger.info(f"Updated pocket allocation {allocation_id}")
        return record

    def remove_allocation(self, allocation_id: int) -> bool:
        """
        Soft-delete an allocation.

        Raises:
            ValidationError: If removing a deposit would leave the pocket below zero
        """
        with self.db_manager.session_scope() as session:
            allocation = self._live_allocation(session, allocation_id)
            others = [a for a in allocation.pocket.to_record().allocations if a.id != allocation_id]
            self._ensure_covered(allocation.pocket, others)
            allocation.deleted = utc_now()

        logger.info(f"Removed pocket allocation {allocation_id}")
        return True

    # Summaries

    def get_pocket_summary(self, pocket_id: int) -> PocketSummary:
        """
        Balance and goal progress of a pocket.

        Raises:
            NotFoundError: If the pocket does not exist
        """
        with self.db_manager.session_scope() as session:
            record = self._live_pocket(session, pocket_id).to_record()
        return summarize_pocket(record)

    def get_savings_summary(self, savings_id: int) -> SavingsSummary:
        """
        Balance of a savings plan and each of its pockets.

        Raises:
            NotFoundError: If the plan does not exist
        """
        with self.db_manager.session_scope() as session:
            record = self._live_savings(session, savings_id).to_record()
        return summarize_savings(record)
