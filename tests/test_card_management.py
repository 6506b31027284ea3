"""
Tests for CardManager CRUD and spending summaries.
"""

import pytest

from exceptions import NotFoundError, ValidationError
from models import CardType


class TestCardCrud:
    """Tests for card CRUD operations."""

    def test_create_and_get(self, card_manager):
        card = card_manager.create_card("Amex", "business_credit", spending_limit=5000)
        assert card.card_type is CardType.BUSINESS_CREDIT
        assert card.card_type.is_credit
        assert card_manager.get_card(card.id).spending_limit == 5000.0

    def test_duplicate_name_rejected(self, card_manager):
        card_manager.create_card("Visa", CardType.CREDIT)
        with pytest.raises(ValidationError):
            card_manager.create_card("visa", CardType.DEBIT)

    def test_invalid_input(self, card_manager):
        with pytest.raises(ValidationError):
            card_manager.create_card("", CardType.DEBIT)
        with pytest.raises(ValidationError):
            card_manager.create_card("Gift", "PREPAID")
        with pytest.raises(ValidationError):
            card_manager.create_card("Gift", CardType.DEBIT, spending_limit=-1)

    def test_list_and_filter(self, card_manager, cards):
        assert [c.name for c in card_manager.list_cards()] == ["Checking", "Visa"]
        assert [c.name for c in card_manager.list_cards(CardType.CREDIT)] == ["Visa"]

    def test_update(self, card_manager, cards):
        _, visa = cards
        updated = card_manager.update_card(visa.id, name="Visa Rewards", spending_limit=2000)
        assert (updated.name, updated.spending_limit) == ("Visa Rewards", 2000.0)
        assert card_manager.update_card(visa.id, clear_limit=True).spending_limit is None

    def test_delete(self, card_manager, cards):
        checking, _ = cards
        assert card_manager.delete_card(checking.id) is True
        assert card_manager.get_card(checking.id) is None
        with pytest.raises(NotFoundError):
            card_manager.delete_card(checking.id)
        # the name is free again once the card is deleted
        assert card_manager.create_card("Checking", CardType.DEBIT).id != checking.id


class TestCardSummary:
    """Tests for get_card_summary."""

    def test_summary_without_transactions(self, card_manager, cards):
        checking, visa = cards
        summary = card_manager.get_card_summary(visa.id)
        assert summary["amount_spent"] == 0.0
        assert summary["available"] == 1000.0
        assert summary["utilization_percent"] == 0.0
        assert summary["is_credit"] is True

        no_limit = card_manager.get_card_summary(checking.id)
        assert no_limit["available"] is None
        assert no_limit["utilization_percent"] is None

    def test_summary_counts_returns(self, card_manager, transaction_manager, monthly_budget, cards):
        _, visa = cards
        groceries = next(bc for bc in monthly_budget.categories if bc.name == "Groceries")
        transaction_manager.create_transaction(monthly_budget.id, 300, category_id=groceries.id, card_id=visa.id)
        transaction_manager.create_transaction(
            monthly_budget.id, 50, "RETURN", category_id=groceries.id, card_id=visa.id
        )

        summary = card_manager.get_card_summary(visa.id)
        assert summary["amount_spent"] == 250.0
        assert summary["available"] == 750.0
        assert summary["utilization_percent"] == 25.0
        assert summary["transaction_count"] == 2

    def test_missing_card(self, card_manager):
        with pytest.raises(NotFoundError):
            card_manager.get_card_summary(404)
