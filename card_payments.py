"""
Card-payment linker.

A card payment (e.g. paying a credit card from a checking/debit card) is a
pair of CARD_PAYMENT transactions that reference each other through
``linked_transaction_id``. The source side carries the amount as a negative
value (money leaving the card) and the destination side as a positive value
(balance paid down). Pairs are created and deleted together inside a single
atomic unit of work provided by the persistence layer, and are never edited
in place.
"""

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable, Dict, List, Optional, Protocol

from exceptions import (
    CardPaymentError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from models import TransactionRecord, TransactionType
from money import Number, quantize_cents

logger = logging.getLogger(__name__)

IMMUTABLE_MESSAGE = "card payment transactions are immutable; delete and recreate instead"


class TransactionWriter(Protocol):
    """Writes available inside one atomic unit of work."""

    def create_transaction(self, **fields: Any) -> TransactionRecord:  # pragma: no cover - interface
        ...

    def update_transaction(self, transaction_id: int, **fields: Any) -> TransactionRecord:  # pragma: no cover - interface
        ...

    def get_transaction(self, transaction_id: int) -> Optional[TransactionRecord]:  # pragma: no cover - interface
        ...

    def soft_delete_transaction(self, transaction_id: int) -> TransactionRecord:  # pragma: no cover - interface
        ...


class TransactionStore(Protocol):
    """Persistence collaborator offering transactional multi-write."""

    def atomic(self) -> AbstractContextManager:  # pragma: no cover - interface
        """Yield a TransactionWriter; commit on success, roll back on any error."""
        ...


@dataclass(frozen=True)
class CardPayment:
    """The two linked sides of a card payment."""
    from_transaction: TransactionRecord
    to_transaction: TransactionRecord


def is_card_payment(transaction) -> bool:
    return transaction.transaction_type is TransactionType.CARD_PAYMENT


def ensure_editable(transaction) -> None:
    """
    Reject edits to card payment transactions.

    Raises:
        InvalidOperationError: If the transaction is a CARD_PAYMENT
    """
    if is_card_payment(transaction):
        raise InvalidOperationError(
            IMMUTABLE_MESSAGE,
            details={"transaction_id": transaction.id, "operation": "edit"}
        )


def ensure_copyable(transaction) -> None:
    """
    Reject copying a card payment transaction.

    Raises:
        InvalidOperationError: If the transaction is a CARD_PAYMENT
    """
    if is_card_payment(transaction):
        raise InvalidOperationError(
            IMMUTABLE_MESSAGE,
            details={"transaction_id": transaction.id, "operation": "copy"}
        )


def _validate(from_card_id: int, to_card_id: int, amount: Number, budget_id: int) -> float:
    if from_card_id is None or to_card_id is None:
        raise ValidationError("Both cards are required for a card payment")
    if from_card_id == to_card_id:
        raise ValidationError(
            "A card payment needs two different cards",
            details={"card_id": from_card_id}
        )
    if budget_id is None:
        raise ValidationError("Budget is required for a card payment")
    magnitude = abs(quantize_cents(amount))
    if magnitude == 0:
        raise ValidationError("Card payment amount must be non-zero", details={"amount": amount})
    return float(magnitude)


def create_card_payment(
    store: TransactionStore,
    from_card_id: int,
    to_card_id: int,
    amount: Number,
    budget_id: int,
    metadata: Optional[Dict[str, Any]] = None,
    check: Optional[Callable[[TransactionWriter], None]] = None
) -> CardPayment:
    """
    Create a linked pair of card payment transactions.

    The source transaction always stores ``-abs(amount)`` and the destination
    ``+abs(amount)``, whichever sign the caller supplied. All three writes
    (create source, create destination, link source back) happen inside one
    ``store.atomic()`` block. ``check`` runs first in that same block, so a
    referenced card or budget cannot disappear between the check and the
    writes.

    Args:
        store: Persistence collaborator
        from_card_id: Card the money leaves
        to_card_id: Card being paid
        amount: Payment amount (sign is normalized)
        budget_id: Budget the payment belongs to
        metadata: Optional name, description, occurred_at, created_at
        check: Optional callable given the writer before anything is written

    Returns:
        CardPayment with both records, already linked

    Raises:
        ValidationError: If the cards, budget or amount are invalid
        NotFoundError: If ``check`` finds a missing card or budget
        CardPaymentError: If any write fails (nothing is persisted)
    """
    magnitude = _validate(from_card_id, to_card_id, amount, budget_id)
    metadata = dict(metadata or {})
    created_at = metadata.get("created_at") or datetime.now(UTC)
    occurred_at = metadata.get("occurred_at")
    name = metadata.get("name")
    description = metadata.get("description")

    common = {
        "transaction_type": TransactionType.CARD_PAYMENT,
        "budget_id": budget_id,
        "category_id": None,
        "occurred_at": occurred_at,
        "created_at": created_at,
    }

    try:
        with store.atomic() as writer:
            if check is not None:
                check(writer)
            source = writer.create_transaction(
                amount=-magnitude,
                card_id=from_card_id,
                name=name or f"Payment from card {from_card_id}",
                description=description or f"Card payment to card {to_card_id}",
                **common,
            )
            destination = writer.create_transaction(
                amount=magnitude,
                card_id=to_card_id,
                linked_transaction_id=source.id,
                name=name or f"Payment to card {to_card_id}",
                description=description or f"Card payment from card {from_card_id}",
                **common,
            )
            source = writer.update_transaction(source.id, linked_transaction_id=destination.id)
    except (CardPaymentError, NotFoundError, ValidationError):
        raise
    except Exception as exc:
        logger.error("Card payment from card %s to card %s failed: %s", from_card_id, to_card_id, exc)
        raise CardPaymentError(
            "Card payment could not be recorded",
            details={"from_card_id": from_card_id, "to_card_id": to_card_id},
            original_error=exc
        ) from exc

    logger.info(
        "Recorded card payment %s -> %s of %.2f (transactions %s/%s)",
        from_card_id, to_card_id, magnitude, source.id, destination.id
    )
    return CardPayment(from_transaction=source, to_transaction=destination)


def delete_card_payment(store: TransactionStore, transaction_id: int) -> List[TransactionRecord]:
    """
    Soft-delete both sides of a card payment.

    Either side's ID may be given. Both deletions share one atomic unit.

    Returns:
        The soft-deleted records (the given side first)

    Raises:
        NotFoundError: If the transaction does not exist
        InvalidOperationError: If the transaction is not a card payment
    """
    with store.atomic() as writer:
        transaction = writer.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
        if not is_card_payment(transaction):
            raise InvalidOperationError(
                "Transaction is not a card payment",
                details={"transaction_id": transaction_id}
            )

        deleted = [writer.soft_delete_transaction(transaction.id)]
        if transaction.linked_transaction_id is not None:
            counterpart = writer.get_transaction(transaction.linked_transaction_id)
            if counterpart is not None:
                deleted.append(writer.soft_delete_transaction(counterpart.id))
            else:
                logger.warning(
                    "Card payment %s points at missing transaction %s",
                    transaction.id, transaction.linked_transaction_id
                )

    logger.info("Deleted card payment %s (linked %s)", transaction_id, transaction.linked_transaction_id)
    return deleted
