"""Pydantic domain models for groupledger."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .money import Money

DEFAULT_CURRENCY = "USD"


def normalize_currency(currency: str | None, default: str = DEFAULT_CURRENCY) -> str:
    """Return an upper-case currency code, falling back to ``default``."""
    if not currency:
        return default.upper()
    return currency.upper()


class LedgerModel(BaseModel):
    """Base for immutable ledger models."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    @field_validator("currency", mode="before", check_fields=False)
    @classmethod
    def _clean_currency(cls, value: Any) -> Any:
        """Strip and upper-case currency codes; blank codes become None."""
        if isinstance(value, str):
            value = value.strip().upper()
            return value or None
        return value


# ============================================================================
# Raw records (supplied by the record source)
# ============================================================================


class ExpenseRecord(LedgerModel):
    """One payment made by ``payer_id`` on behalf of a group."""

    id: str
    payer_id: str
    amount: Money
    currency: str | None = None  # None = default currency
    group_id: str | None = None
    trip_id: str | None = None
    description: str | None = None
    is_personal: bool = False
    deleted: bool = False  # soft delete


class SplitRecord(LedgerModel):
    """The share of an expense attributed to one user."""

    expense_id: str
    user_id: str
    amount: Money


class SettlementRecord(LedgerModel):
    """A direct payment from one user to another outside the expense flow."""

    from_user_id: str
    to_user_id: str
    amount: Money
    currency: str | None = None
    group_id: str | None = None
    trip_id: str | None = None


class LedgerSnapshot(BaseModel):
    """A time-consistent set of records for one group."""

    expenses: list[ExpenseRecord] = Field(default_factory=list)
    splits: list[SplitRecord] = Field(default_factory=list)
    settlements: list[SettlementRecord] = Field(default_factory=list)


# ============================================================================
# Derived values (produced by the core)
# ============================================================================


class Balance(LedgerModel):
    """Net position of a user in one currency.

    Positive means the group owes this user, negative means the user owes
    the group.
    """

    user_id: str
    currency: str
    amount: Money


class Transaction(LedgerModel):
    """A suggested payment that settles part of the ledger."""

    from_user_id: str
    to_user_id: str
    amount: Money
    currency: str

    def to_settlement(
        self, group_id: str | None = None, trip_id: str | None = None
    ) -> SettlementRecord:
        """Build the settlement record to store once the payment is confirmed."""
        return SettlementRecord(
            from_user_id=self.from_user_id,
            to_user_id=self.to_user_id,
            amount=self.amount,
            currency=self.currency,
            group_id=group_id,
            trip_id=trip_id,
        )
