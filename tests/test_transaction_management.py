"""
Tests for TransactionManager: regular entries and card payments.
"""

from unittest.mock import patch

import pytest

from exceptions import InvalidOperationError, NotFoundError, ValidationError
from ledger import card_amount_spent
from models import TransactionType


def _groceries(budget):
    return next(bc for bc in budget.categories if bc.name == "Groceries")


class TestCreateTransaction:
    """Tests for create_transaction."""

    def test_regular_purchase(self, transaction_manager, monthly_budget, cards):
        checking, _ = cards
        txn = transaction_manager.create_transaction(
            monthly_budget.id, 42.129, category_id=_groceries(monthly_budget).id, card_id=checking.id, name="Market"
        )
        assert txn.id is not None
        assert txn.amount == 42.13
        assert txn.transaction_type is TransactionType.REGULAR
        assert txn.card_id == checking.id

    def test_regular_requires_category(self, transaction_manager, monthly_budget):
        with pytest.raises(ValidationError):
            transaction_manager.create_transaction(monthly_budget.id, 10)

    def test_income_without_category(self, transaction_manager, monthly_budget):
        txn = transaction_manager.create_transaction(monthly_budget.id, 100, TransactionType.INCOME)
        assert txn.category_id is None

    @pytest.mark.parametrize("amount", [0, -5])
    def test_amount_must_be_positive(self, transaction_manager, monthly_budget, amount):
        with pytest.raises(ValidationError):
            transaction_manager.create_transaction(monthly_budget.id, amount, category_id=_groceries(monthly_budget).id)

    def test_card_payment_type_rejected(self, transaction_manager, monthly_budget):
        with pytest.raises(InvalidOperationError):
            transaction_manager.create_transaction(monthly_budget.id, 10, "CARD_PAYMENT")

    def test_category_from_other_budget_rejected(self, budget_manager, transaction_manager, monthly_budget):
        other = budget_manager.create_budget(
            "Other", "2024-03-01", allocations=[{"name": "Fuel", "allocated_amount": 50}]
        )
        with pytest.raises(ValidationError):
            transaction_manager.create_transaction(monthly_budget.id, 10, category_id=other.categories[0].id)

    def test_missing_references(self, transaction_manager, monthly_budget):
        with pytest.raises(NotFoundError):
            transaction_manager.create_transaction(404, 10, TransactionType.INCOME)
        with pytest.raises(NotFoundError):
            transaction_manager.create_transaction(monthly_budget.id, 10, category_id=404)
        with pytest.raises(NotFoundError):
            transaction_manager.create_transaction(monthly_budget.id, 10, TransactionType.INCOME, card_id=404)


class TestEditDeleteCopy:
    """Tests for update, delete and duplicate."""

    def test_update_and_duplicate(self, transaction_manager, monthly_budget):
        txn = transaction_manager.create_transaction(monthly_budget.id, 10, category_id=_groceries(monthly_budget).id)

        updated = transaction_manager.update_transaction(txn.id, amount=12, name="Bakery")
        assert (updated.amount, updated.name) == (12.0, "Bakery")

        copy = transaction_manager.duplicate_transaction(txn.id)
        assert copy.id != txn.id
        assert (copy.amount, copy.name, copy.category_id) == (12.0, "Bakery", txn.category_id)

    def test_update_to_card_payment_rejected(self, transaction_manager, monthly_budget):
        txn = transaction_manager.create_transaction(monthly_budget.id, 10, category_id=_groceries(monthly_budget).id)
        with pytest.raises(InvalidOperationError):
            transaction_manager.update_transaction(txn.id, transaction_type=TransactionType.CARD_PAYMENT)

    def test_update_unknown_field(self, transaction_manager, monthly_budget):
        txn = transaction_manager.create_transaction(monthly_budget.id, 10, category_id=_groceries(monthly_budget).id)
        with pytest.raises(ValidationError):
            transaction_manager.update_transaction(txn.id, budget_id=99)

    def test_delete_regular(self, transaction_manager, monthly_budget):
        txn = transaction_manager.create_transaction(monthly_budget.id, 10, category_id=_groceries(monthly_budget).id)
        deleted = transaction_manager.delete_transaction(txn.id)
        assert [t.id for t in deleted] == [txn.id]
        assert transaction_manager.list_transactions(budget_id=monthly_budget.id) == []
        with pytest.raises(NotFoundError):
            transaction_manager.delete_transaction(txn.id)


class TestCardPayments:
    """Tests for card payments through the manager."""

    def test_payment_pair(self, transaction_manager, card_manager, monthly_budget, cards):
        checking, visa = cards
        transaction_manager.create_transaction(
            monthly_budget.id, 80, category_id=_groceries(monthly_budget).id, card_id=visa.id
        )

        payment = transaction_manager.create_card_payment(checking.id, visa.id, -50, monthly_budget.id)

        assert payment.from_transaction.amount == -50.0
        assert payment.to_transaction.amount == 50.0
        assert payment.from_transaction.linked_transaction_id == payment.to_transaction.id
        assert payment.to_transaction.linked_transaction_id == payment.from_transaction.id

        visa_summary = card_manager.get_card_summary(visa.id)
        assert visa_summary["amount_spent"] == 30.0
        assert visa_summary["available"] == 970.0
        checking_txns = transaction_manager.list_transactions(card_id=checking.id)
        assert card_amount_spent(checking_txns) == 50.0

    def test_card_payment_is_immutable(self, transaction_manager, monthly_budget, cards):
        checking, visa = cards
        payment = transaction_manager.create_card_payment(checking.id, visa.id, 50, monthly_budget.id)

        with pytest.raises(InvalidOperationError):
            transaction_manager.update_transaction(payment.from_transaction.id, name="Edited")
        with pytest.raises(InvalidOperationError):
            transaction_manager.duplicate_transaction(payment.to_transaction.id)

    def test_deleting_one_side_deletes_both(self, transaction_manager, monthly_budget, cards):
        checking, visa = cards
        payment = transaction_manager.create_card_payment(checking.id, visa.id, 50, monthly_budget.id)

        deleted = transaction_manager.delete_transaction(payment.from_transaction.id)

        assert len(deleted) == 2
        assert transaction_manager.list_transactions(
            budget_id=monthly_budget.id, transaction_type=TransactionType.CARD_PAYMENT
        ) == []

    def test_missing_card(self, transaction_manager, monthly_budget, cards):
        checking, _ = cards
        with pytest.raises(NotFoundError):
            transaction_manager.create_card_payment(checking.id, 404, 50, monthly_budget.id)

    def test_references_checked_in_same_unit_of_work(self, transaction_manager, db_manager, monthly_budget, cards):
        checking, visa = cards
        with patch.object(db_manager, "session_scope", wraps=db_manager.session_scope) as scope:
            transaction_manager.create_card_payment(checking.id, visa.id, 50, monthly_budget.id)
        assert scope.call_count == 1

    def test_deleted_card_writes_nothing(self, transaction_manager, card_manager, monthly_budget, cards):
        checking, visa = cards
        card_manager.delete_card(visa.id)

        with pytest.raises(NotFoundError):
            transaction_manager.create_card_payment(checking.id, visa.id, 50, monthly_budget.id)
        assert transaction_manager.list_transactions(budget_id=monthly_budget.id) == []
