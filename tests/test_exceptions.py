"""
Unit tests for the exception hierarchy.
"""

import pytest

from exceptions import (
    BudgetError,
    CardPaymentError,
    ConfigError,
    DatabaseError,
    FinanceAppError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)


class TestFinanceAppError:
    """Test base FinanceAppError."""

    def test_message_only(self):
        error = FinanceAppError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details == {}
        assert error.original_error is None

    def test_with_details(self):
        error = FinanceAppError("Budget not found", details={"budget_id": 7})
        assert str(error) == "Budget not found (budget_id=7)"

    def test_with_original_error(self):
        cause = ValueError("bad value")
        error = FinanceAppError("Wrapped", original_error=cause)
        assert error.original_error is cause


@pytest.mark.parametrize("error_cls", [
    BudgetError,
    CardPaymentError,
    ConfigError,
    DatabaseError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
])
def test_subclasses_are_caught_as_base(error_cls):
    with pytest.raises(FinanceAppError) as exc_info:
        raise error_cls("failure", details={"key": "value"})
    assert isinstance(exc_info.value, error_cls)
    assert exc_info.value.details == {"key": "value"}
