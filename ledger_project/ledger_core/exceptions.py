from decimal import Decimal

from django.core.exceptions import ObjectDoesNotExist, ValidationError


class LedgerValidationError(ValidationError):
    """Raised when ledger input breaks a business rule (never retried)."""
    pass


class UnbalancedJournalError(LedgerValidationError):
    """Raised when a JournalEntry fails double-entry balance check."""

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.difference = total_debit - total_credit
        super().__init__(
            f"Journal not balanced: debits={total_debit}, credits={total_credit}, "
            f"difference={self.difference}"
        )


class StateConflictError(Exception):
    """Raised when an operation is not allowed from the object's current status."""
    pass


class ReconciliationImbalanceError(StateConflictError):
    """Raised when completing a reconciliation whose difference is not zero."""

    def __init__(self, difference: Decimal):
        self.difference = difference
        super().__init__(
            f"Reconciliation is not balanced: difference={difference}"
        )


class ConcurrencyError(Exception):
    """Raised when a concurrent writer won the race; safe to retry once."""
    pass


class NotFoundError(ObjectDoesNotExist):
    """Raised for an unknown account / entry / template / bank account id."""
    pass
