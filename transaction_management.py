"""
Transaction management module.

Records purchases, returns and income entries against budget categories and
cards, and routes every card payment through the card-payment linker so both
sides are always written and removed together.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from card_payments import CardPayment, create_card_payment, delete_card_payment, ensure_copyable, ensure_editable
from database_ops import Budget, BudgetCategory, Card, DatabaseManager
from exceptions import InvalidOperationError, NotFoundError, ValidationError
from models import TransactionRecord, TransactionType, parse_enum
from money import Number, require_positive

# Configure logging
logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "name",
    "description",
    "amount",
    "transaction_type",
    "category_id",
    "card_id",
    "occurred_at",
})


class TransactionManager:
    """
    Manages ledger transactions for budgets and cards.

    REGULAR and RETURN entries must be assigned to a category of their
    budget; CARD_PAYMENT entries only come from ``create_card_payment`` and
    are never edited or copied.
    """

    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize the transaction manager.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db_manager = db_manager
        logger.info("Transaction manager initialized")

    @staticmethod
    def _check_references(
        session: Session,
        budget_id: int,
        transaction_type: TransactionType,
        category_id: Optional[int],
        card_id: Optional[int]
    ) -> None:
        """
        Verify the budget, category and card a transaction points at.

        Raises:
            NotFoundError: If a referenced row does not exist
            ValidationError: If the category is missing or belongs to another budget
        """
        budget = session.query(Budget).filter(Budget.id == budget_id, Budget.deleted.is_(None)).first()
        if budget is None:
            raise NotFoundError("Budget not found", details={"budget_id": budget_id})

        if transaction_type in (TransactionType.REGULAR, TransactionType.RETURN) and category_id is None:
            raise ValidationError(
                f"{transaction_type.value} transactions need a budget category",
                details={"budget_id": budget_id}
            )

        if category_id is not None:
            allocation = session.query(BudgetCategory).filter(
                BudgetCategory.id == category_id,
                BudgetCategory.deleted.is_(None)
            ).first()
            if allocation is None:
                raise NotFoundError("Budget category not found", details={"category_id": category_id})
            if allocation.budget_id != budget_id:
                raise ValidationError(
                    "Budget category belongs to a different budget",
                    details={"category_id": category_id, "budget_id": budget_id}
                )

        if card_id is not None:
            card = session.query(Card).filter(Card.id == card_id, Card.deleted.is_(None)).first()
            if card is None:
                raise NotFoundError("Card not found", details={"card_id": card_id})

    @staticmethod
    def _regular_type(value: Union[TransactionType, str]) -> TransactionType:
        transaction_type = parse_enum(TransactionType, value, "transaction type")
        if transaction_type is TransactionType.CARD_PAYMENT:
            raise InvalidOperationError(
                "Card payments must be created with create_card_payment",
                details={"transaction_type": transaction_type.value}
            )
        return transaction_type

    def create_transaction(
        self,
        budget_id: int,
        amount: Number,
        transaction_type: Union[TransactionType, str] = TransactionType.REGULAR,
        category_id: Optional[int] = None,
        card_id: Optional[int] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        occurred_at: Optional[datetime] = None
    ) -> TransactionRecord:
        """
        Record a purchase, return or income entry.

        Args:
            budget_id: Budget the entry belongs to
            amount: Positive amount (RETURN amounts are stored positive and
                subtracted from spending)
            transaction_type: REGULAR, RETURN or INCOME
            category_id: BudgetCategory ID (required for REGULAR and RETURN)
            card_id: Optional card used
            name: Short label
            description: Free text
            occurred_at: When it happened

        Returns:
            Created TransactionRecord

        Raises:
            InvalidOperationError: If transaction_type is CARD_PAYMENT
            ValidationError: If the amount or category is invalid
            NotFoundError: If the budget, category or card does not exist
        """
        transaction_type = self._regular_type(transaction_type)
        amount = require_positive(amount, "transaction amount")

        with self.db_manager.atomic() as writer:
            self._check_references(writer.session, budget_id, transaction_type, category_id, card_id)
            record = writer.create_transaction(
                amount=amount,
                transaction_type=transaction_type,
                budget_id=budget_id,
                category_id=category_id,
                card_id=card_id,
                name=name,
                description=description,
                occurred_at=occurred_at,
            )

        logger.info(
            f"Created {record.transaction_type.value} transaction {record.id} "
            f"of {record.amount} in budget {budget_id}"
        )
        return record

    def get_transaction(self, transaction_id: int) -> Optional[TransactionRecord]:
        """
        Get a live transaction.

        Returns:
            TransactionRecord or None if not found (or deleted)
        """
        with self.db_manager.atomic() as writer:
            return writer.get_transaction(transaction_id)

    def _require(self, writer, transaction_id: int) -> TransactionRecord:
        record = writer.get_transaction(transaction_id)
        if record is None:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
        return record

    def update_transaction(self, transaction_id: int, **fields: Any) -> TransactionRecord:
        """
        Update a transaction.

        Args:
            transaction_id: Transaction ID
            **fields: Any of name, description, amount, transaction_type,
                category_id, card_id, occurred_at

        Returns:
            Updated TransactionRecord

        Raises:
            InvalidOperationError: If the transaction is a card payment, or the
                update would turn it into one
            ValidationError: If a field is unknown or invalid
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError("Unknown transaction fields", details={"fields": ", ".join(sorted(unknown))})

        changes: Dict[str, Any] = dict(fields)
        if "transaction_type" in changes:
            changes["transaction_type"] = self._regular_type(changes["transaction_type"])
        if "amount" in changes:
            changes["amount"] = require_positive(changes["amount"], "transaction amount")

        with self.db_manager.atomic() as writer:
            existing = self._require(writer, transaction_id)
            ensure_editable(existing)
            self._check_references(
                writer.session,
                existing.budget_id,
                changes.get("transaction_type", existing.transaction_type),
                changes.get("category_id", existing.category_id),
                changes.get("card_id", existing.card_id),
            )
            record = writer.update_transaction(transaction_id, **changes)

        logger.info(f"Updated transaction {transaction_id}: {', '.join(sorted(changes))}")
        return record

    def delete_transaction(self, transaction_id: int) -> List[TransactionRecord]:
        """
        Soft-delete a transaction.

        Deleting either side of a card payment deletes both sides.

        Returns:
            The soft-deleted records
        """
        existing = self.get_transaction(transaction_id)
        if existing is None:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
        if existing.transaction_type is TransactionType.CARD_PAYMENT:
            return delete_card_payment(self.db_manager, transaction_id)

        with self.db_manager.atomic() as writer:
            deleted = writer.soft_delete_transaction(transaction_id)
        logger.info(f"Deleted transaction {transaction_id}")
        return [deleted]

    def duplicate_transaction(self, transaction_id: int) -> TransactionRecord:
        """
        Copy a transaction as a new entry dated now.

        Raises:
            InvalidOperationError: If the transaction is a card payment
        """
        with self.db_manager.atomic() as writer:
            existing = self._require(writer, transaction_id)
            ensure_copyable(existing)
            self._check_references(
                writer.session,
                existing.budget_id,
                existing.transaction_type,
                existing.category_id,
                existing.card_id,
            )
            record = writer.create_transaction(
                amount=existing.amount,
                transaction_type=existing.transaction_type,
                budget_id=existing.budget_id,
                category_id=existing.category_id,
                card_id=existing.card_id,
                name=existing.name,
                description=existing.description,
                occurred_at=existing.occurred_at,
            )

        logger.info(f"Duplicated transaction {transaction_id} as {record.id}")
        return record

    def list_transactions(
        self,
        budget_id: Optional[int] = None,
        card_id: Optional[int] = None,
        transaction_type: Optional[Union[TransactionType, str]] = None,
        limit: Optional[int] = None
    ) -> List[TransactionRecord]:
        """List live transactions, newest first."""
        if transaction_type is not None:
            transaction_type = parse_enum(TransactionType, transaction_type, "transaction type")
        return self.db_manager.get_transactions(
            budget_id=budget_id,
            card_id=card_id,
            transaction_type=transaction_type,
            limit=limit,
        )

    def create_card_payment(
        self,
        from_card_id: int,
        to_card_id: int,
        amount: Number,
        budget_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        occurred_at: Optional[datetime] = None
    ) -> CardPayment:
        """
        Record a payment from one card to another.

        Both cards and the budget must exist. They are checked inside the
        same unit of work that writes the linked pair.

        Returns:
            CardPayment with both linked records
        """
        def check_references(writer) -> None:
            session = writer.session
            for card_id in (from_card_id, to_card_id):
                if session.query(Card).filter(Card.id == card_id, Card.deleted.is_(None)).first() is None:
                    raise NotFoundError("Card not found", details={"card_id": card_id})
            self.db_manager.get_budget_row(session, budget_id)

        metadata = {"name": name, "description": description, "occurred_at": occurred_at}
        return create_card_payment(
            self.db_manager, from_card_id, to_card_id, amount, budget_id, metadata, check=check_references
        )

    def delete_card_payment(self, transaction_id: int) -> List[TransactionRecord]:
        """Soft-delete both sides of a card payment."""
        return delete_card_payment(self.db_manager, transaction_id)
