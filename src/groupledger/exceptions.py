"""Custom exceptions for groupledger."""


class GroupLedgerError(Exception):
    """Base exception for all groupledger errors."""

    pass


class ConfigurationError(GroupLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class RecordSourceError(GroupLedgerError):
    """Raised when ledger records cannot be loaded."""

    pass


# ============================================================================
# Money errors
# ============================================================================


class InvalidAmountError(GroupLedgerError, ValueError):
    """Raised when a value cannot be interpreted as a monetary amount."""

    pass


class MoneyArithmeticError(GroupLedgerError, ArithmeticError):
    """Base class for malformed arguments to Money operations."""

    pass


class DivisionByZeroError(MoneyArithmeticError, ZeroDivisionError):
    """Raised when dividing an amount by zero."""

    def __init__(self, message: str | None = None):
        super().__init__(message or "Division by zero")


class InvalidSplitCountError(MoneyArithmeticError, ValueError):
    """Raised when an amount is split into a non-positive number of parts."""

    def __init__(self, count: int, message: str | None = None):
        self.count = count
        super().__init__(message or f"Count must be positive, got {count}")


class InvalidWeightsError(MoneyArithmeticError, ValueError):
    """Raised when split weights sum to zero."""

    pass


# ============================================================================
# Ledger invariant errors
# ============================================================================


class InvariantViolationError(GroupLedgerError):
    """Base class for inconsistent ledger data.

    These indicate a defect in the record snapshot handed to the core and
    fail the whole computation.
    """

    pass


class CurrencyMismatchError(InvariantViolationError):
    """Raised when amounts in different currencies meet in one computation."""

    def __init__(self, currencies: set[str], message: str | None = None):
        self.currencies = currencies
        super().__init__(
            message
            or f"Expected a single currency, got {', '.join(sorted(currencies))}"
        )


class LedgerImbalanceError(InvariantViolationError):
    """Raised when credits and debits in a currency do not cancel out."""

    def __init__(self, currency: str, residual_cents: int, message: str | None = None):
        self.currency = currency
        self.residual_cents = residual_cents
        super().__init__(
            message
            or f"Ledger for {currency} does not balance: "
            f"residual of {residual_cents} minor units"
        )


class OrphanedSplitError(InvariantViolationError):
    """Raised when a split references an expense missing from the snapshot."""

    def __init__(self, expense_id: str, user_id: str):
        self.expense_id = expense_id
        self.user_id = user_id
        super().__init__(
            f"Split for user {user_id} references unknown expense {expense_id}"
        )


class SplitMismatchError(InvariantViolationError):
    """Raised when split amounts don't add up to the expense amount."""

    pass
