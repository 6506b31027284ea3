"""
Card management module for payment cards.

This module provides CRUD operations for credit, debit, cash and business
cards, plus the running spend/available summary built from each card's
transactions.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from database_ops import Card, DatabaseManager, Transaction, utc_now
from exceptions import DatabaseError, NotFoundError, ValidationError
from ledger import card_amount_spent, card_available, category_utilization_percent
from models import CardRecord, CardType, parse_enum
from money import Number, require_non_negative

# Configure logging
logger = logging.getLogger(__name__)


class CardManager:
    """
    Manages payment cards.

    Provides CRUD operations and spend calculations for cards.
    """

    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize the card manager.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db_manager = db_manager
        logger.info("Card manager initialized")

    @staticmethod
    def _limit(spending_limit: Optional[Number]) -> Optional[float]:
        if spending_limit is None:
            return None
        return require_non_negative(spending_limit, "spending limit")

    def _live_card(self, session, card_id: int) -> Card:
        card = session.query(Card).filter(Card.id == card_id, Card.deleted.is_(None)).first()
        if card is None:
            raise NotFoundError("Card not found", details={"card_id": card_id})
        return card

    def _name_taken(self, session, name: str, exclude_id: Optional[int] = None) -> bool:
        query = session.query(Card).filter(
            func.lower(Card.name) == name.lower(),
            Card.deleted.is_(None)
        )
        if exclude_id is not None:
            query = query.filter(Card.id != exclude_id)
        return query.first() is not None

    def create_card(
        self,
        name: str,
        card_type: Union[CardType, str] = CardType.DEBIT,
        spending_limit: Optional[Number] = None
    ) -> CardRecord:
        """
        Create a new card.

        Args:
            name: Card name (unique among live cards, case-insensitive)
            card_type: CardType member or name
            spending_limit: Optional credit limit / spending cap

        Returns:
            Created CardRecord

        Raises:
            ValidationError: If the name is empty or already used, or the limit is negative
            DatabaseError: If the write fails
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Card name cannot be empty")
        card_type = parse_enum(CardType, card_type, "card type")
        limit = self._limit(spending_limit)

        session = self.db_manager.get_session()

        try:
            if self._name_taken(session, name):
                raise ValidationError(f"Card with name '{name}' already exists", details={"name": name})

            card = Card(name=name, card_type=card_type, spending_limit=limit)
            session.add(card)
            session.commit()
            session.refresh(card)
            record = card.to_record()

            logger.info(f"Created card: {name} ({card_type.value}) limit={limit}")
            return record

        except ValidationError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to create card: {e}")
            raise DatabaseError("Failed to create card", details={"name": name}, original_error=e) from e
        finally:
            session.close()

    def get_card(self, card_id: int, include_transactions: bool = False) -> Optional[CardRecord]:
        """
        Get a card by ID.

        Args:
            card_id: Card ID
            include_transactions: Attach the card's live transactions

        Returns:
            CardRecord or None if not found
        """
        session = self.db_manager.get_session()
        try:
            card = session.query(Card).filter(Card.id == card_id, Card.deleted.is_(None)).first()
            if card is None:
                return None
            transactions = None
            if include_transactions:
                transactions = session.query(Transaction).filter(
                    Transaction.card_id == card_id,
                    Transaction.deleted.is_(None)
                ).order_by(Transaction.created_at, Transaction.id).all()
            return card.to_record(transactions)
        except SQLAlchemyError as e:
            logger.error(f"Failed to get card {card_id}: {e}")
            raise DatabaseError("Failed to get card", details={"card_id": card_id}, original_error=e) from e
        finally:
            session.close()

    def list_cards(self, card_type: Optional[Union[CardType, str]] = None) -> List[CardRecord]:
        """
        List live cards, optionally filtered by type.

        Args:
            card_type: Optional filter by card type

        Returns:
            List of CardRecord ordered by name
        """
        session = self.db_manager.get_session()
        try:
            query = session.query(Card).filter(Card.deleted.is_(None))
            if card_type is not None:
                query = query.filter(Card.card_type == parse_enum(CardType, card_type, "card type"))
            return [card.to_record() for card in query.order_by(Card.name).all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list cards: {e}")
            raise DatabaseError("Failed to list cards", original_error=e) from e
        finally:
            session.close()

    def update_card(
        self,
        card_id: int,
        name: Optional[str] = None,
        card_type: Optional[Union[CardType, str]] = None,
        spending_limit: Optional[Number] = None,
        clear_limit: bool = False
    ) -> CardRecord:
        """
        Update card information.

        Args:
            card_id: Card ID
            name: New name (optional)
            card_type: New type (optional)
            spending_limit: New limit (optional)
            clear_limit: Remove the spending limit

        Returns:
            Updated CardRecord
        """
        session = self.db_manager.get_session()

        try:
            card = self._live_card(session, card_id)

            if name is not None:
                name = name.strip()
                if not name:
                    raise ValidationError("Card name cannot be empty")
                if self._name_taken(session, name, exclude_id=card_id):
                    raise ValidationError(f"Card with name '{name}' already exists", details={"name": name})
                card.name = name
            if card_type is not None:
                card.card_type = parse_enum(CardType, card_type, "card type")
            if clear_limit:
                card.spending_limit = None
            elif spending_limit is not None:
                card.spending_limit = self._limit(spending_limit)

            card.updated_at = utc_now()
            session.commit()
            session.refresh(card)
            logger.info(f"Updated card {card_id}")
            return card.to_record()

        except (ValidationError, NotFoundError):
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to update card: {e}")
            raise DatabaseError("Failed to update card", details={"card_id": card_id}, original_error=e) from e
        finally:
            session.close()

    def delete_card(self, card_id: int) -> bool:
        """
        Soft-delete a card.

        Transactions paid with the card stay in their budgets.

        Args:
            card_id: Card ID

        Returns:
            True once deleted
        """
        session = self.db_manager.get_session()

        try:
            card = self._live_card(session, card_id)
            card.deleted = utc_now()
            session.commit()
            logger.info(f"Deleted card: {card.name} (ID: {card_id})")
            return True

        except NotFoundError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to delete card: {e}")
            raise DatabaseError("Failed to delete card", details={"card_id": card_id}, original_error=e) from e
        finally:
            session.close()

    def get_card_summary(self, card_id: int) -> Dict[str, Any]:
        """
        Get a summary of card spending.

        Args:
            card_id: Card ID

        Returns:
            Dictionary with card details, amount spent, available credit and
            limit utilization

        Raises:
            NotFoundError: If the card does not exist
        """
        card = self.get_card(card_id, include_transactions=True)
        if card is None:
            raise NotFoundError("Card not found", details={"card_id": card_id})

        spent = card_amount_spent(card.transactions)
        available = card_available(card.spending_limit, spent)
        utilization = (
            category_utilization_percent(card.spending_limit, spent)
            if card.spending_limit is not None else None
        )

        return {
            "id": card.id,
            "name": card.name,
            "card_type": card.card_type.value,
            "is_credit": card.card_type.is_credit,
            "spending_limit": card.spending_limit,
            "amount_spent": spent,
            "available": available,
            "utilization_percent": utilization,
            "transaction_count": len(card.transactions),
        }
