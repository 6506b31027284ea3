"""
Unified exception hierarchy for the budget ledger.

This module defines the exception hierarchy with FinanceAppError as the base
exception, so callers (CLI, request handlers) can catch every domain failure
in one place while still distinguishing validation problems, forbidden
operations and missing records.
"""

from typing import Optional


class FinanceAppError(Exception):
    """
    Base exception class for all budget ledger errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional error context
        original_error: Optional original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        original_error: Optional[Exception] = None
    ) -> None:
        """
        Initialize FinanceAppError.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
            original_error: Optional original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        msg = self.message
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            msg = f"{msg} ({detail_str})"
        return msg


class ConfigError(FinanceAppError):
    """Raised when configuration loading or validation fails."""
    pass


class DatabaseError(FinanceAppError):
    """Raised when database operations fail."""
    pass


class ValidationError(FinanceAppError):
    """Raised when numeric or field input is invalid (e.g. a negative allocation)."""
    pass


class InvalidOperationError(FinanceAppError):
    """Raised when an operation is not allowed on a record, such as editing a card payment."""
    pass


class NotFoundError(FinanceAppError):
    """Raised when a referenced budget, category, card or transaction does not exist."""
    pass


class BudgetError(FinanceAppError):
    """Raised when budget management operations fail."""
    pass


class CardPaymentError(FinanceAppError):
    """Raised when the linked card-payment writes could not be applied atomically."""
    pass
