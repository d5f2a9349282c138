"""Fold raw ledger records into per-user, per-currency net balances."""

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping

from .exceptions import LedgerImbalanceError, OrphanedSplitError
from .models import (
    DEFAULT_CURRENCY,
    Balance,
    ExpenseRecord,
    SettlementRecord,
    SplitRecord,
    normalize_currency,
)
from .money import Money

logger = logging.getLogger(__name__)

# Rows whose magnitude is below one minor unit are never emitted
BALANCE_EPSILON = Money.from_cents(1)

# Splits of one expense may miss its amount by this much
SPLIT_ROUNDING_CENTS = 1


def expense_currencies(
    expenses: Iterable[ExpenseRecord], default_currency: str = DEFAULT_CURRENCY
) -> dict[str, str]:
    """Map each expense id to its normalized currency."""
    return {
        expense.id: normalize_currency(expense.currency, default_currency)
        for expense in expenses
    }


def in_scope(expense: ExpenseRecord, trip_id: str | None) -> bool:
    """Whether an expense is folded into the balances of a trip (or no trip)."""
    return (
        not expense.deleted
        and not expense.is_personal
        and expense.trip_id == trip_id
    )


def rounding_allowance(
    expenses: Iterable[ExpenseRecord],
    trip_id: str | None = None,
    default_currency: str = DEFAULT_CURRENCY,
) -> dict[str, int]:
    """
    Residual each currency may carry from split rounding.

    Splits that divide an amount independently, such as ``10.00`` stored as
    three splits of ``3.33``, miss the expense by one minor unit. Every
    in-scope expense therefore allows ``SPLIT_ROUNDING_CENTS``.
    """
    counts = Counter(
        normalize_currency(expense.currency, default_currency)
        for expense in expenses
        if in_scope(expense, trip_id)
    )
    return {
        currency: count * SPLIT_ROUNDING_CENTS for currency, count in counts.items()
    }


def aggregate_balances(
    expenses: Iterable[ExpenseRecord],
    splits: Iterable[SplitRecord],
    settlements: Iterable[SettlementRecord],
    trip_id: str | None = None,
    default_currency: str = DEFAULT_CURRENCY,
    tolerance_cents: int = 0,
) -> list[Balance]:
    """
    Compute net balances per user and currency for one scope.

    With ``trip_id`` only records of that trip are folded; without it only
    records that belong to no trip. Currencies are never netted against each
    other.

    Payers are credited with the full expense amount and every split debits
    its user. A settlement moves value from the receiver back to the payer:
    ``from_user_id`` is credited and ``to_user_id`` is debited.

    Args:
        expenses: Expense records (deleted and personal ones are skipped)
        splits: Split records for those expenses
        settlements: Settlement records
        trip_id: Trip to scope to, or None for trip-less records
        default_currency: Currency used when a record has none
        tolerance_cents: Per-currency residual tolerated beyond split rounding

    Returns:
        Balances with magnitude >= 0.01, ordered by currency then user id

    Raises:
        OrphanedSplitError: If a split references an expense not supplied
        LedgerImbalanceError: If a currency's balances miss zero by more than
            its split rounding allowance plus ``tolerance_cents``
    """
    expenses = list(expenses)
    currencies = expense_currencies(expenses, default_currency)
    scoped_ids = {expense.id for expense in expenses if in_scope(expense, trip_id)}

    totals: defaultdict[tuple[str, str], Money] = defaultdict(Money.zero)

    for expense in expenses:
        if expense.id not in scoped_ids:
            continue
        key = (expense.payer_id, currencies[expense.id])
        totals[key] = totals[key] + expense.amount

    for split in splits:
        if split.expense_id not in currencies:
            raise OrphanedSplitError(split.expense_id, split.user_id)
        if split.expense_id not in scoped_ids:
            continue
        key = (split.user_id, currencies[split.expense_id])
        totals[key] = totals[key] - split.amount

    for settlement in settlements:
        if settlement.trip_id != trip_id:
            continue
        currency = normalize_currency(settlement.currency, default_currency)
        payer_key = (settlement.from_user_id, currency)
        receiver_key = (settlement.to_user_id, currency)
        totals[payer_key] = totals[payer_key] + settlement.amount
        totals[receiver_key] = totals[receiver_key] - settlement.amount

    balances = [
        Balance(user_id=user_id, currency=currency, amount=amount)
        for (user_id, currency), amount in sorted(
            totals.items(), key=lambda item: (item[0][1], item[0][0])
        )
        if amount.abs() >= BALANCE_EPSILON
    ]

    check_zero_sum(
        balances,
        tolerance_cents,
        rounding_allowance(expenses, trip_id, default_currency),
    )

    logger.debug(
        f"Aggregated {len(expenses)} expenses and {len(totals)} user/currency "
        f"pairs into {len(balances)} balances (trip: {trip_id or 'none'})"
    )

    return balances


def currency_totals(balances: Iterable[Balance]) -> dict[str, Money]:
    """Sum balances per currency. A consistent ledger sums to zero everywhere."""
    totals: dict[str, Money] = {}
    for balance in balances:
        totals[balance.currency] = (
            totals.get(balance.currency, Money.zero()) + balance.amount
        )
    return totals


def check_zero_sum(
    balances: Iterable[Balance],
    tolerance_cents: int = 0,
    allowance: Mapping[str, int] | None = None,
) -> None:
    """
    Verify that every currency's balances cancel out.

    Args:
        balances: Balances to check
        tolerance_cents: Configured residual tolerated per currency
        allowance: Split rounding residual expected per currency, see
            ``rounding_allowance``

    Raises:
        LedgerImbalanceError: If a residual exceeds allowance plus tolerance
    """
    allowance = allowance or {}
    for currency, residual in currency_totals(balances).items():
        excess = abs(residual.cents) - allowance.get(currency, 0)
        if excess > tolerance_cents:
            raise LedgerImbalanceError(currency, residual.cents)
        if excess > 0:
            logger.warning(
                f"Tolerated residual of {residual.cents} minor units in {currency}"
            )
        elif not residual.is_zero():
            logger.debug(
                f"Residual of {residual.cents} minor units in {currency} "
                f"from split rounding"
            )


def group_by_currency(balances: Iterable[Balance]) -> dict[str, list[Balance]]:
    """Partition balances by currency, keeping their order within each group."""
    grouped: dict[str, list[Balance]] = {}
    for balance in balances:
        grouped.setdefault(balance.currency, []).append(balance)
    return grouped


def personal_totals(
    expenses: Iterable[ExpenseRecord],
    user_id: str,
    default_currency: str = DEFAULT_CURRENCY,
) -> list[Balance]:
    """
    Total a user's personal (unshared) expenses per currency.

    Returns:
        One row per currency with a total of at least 0.01, ordered by currency
    """
    totals: dict[str, Money] = {}
    for expense in expenses:
        if expense.deleted or not expense.is_personal or expense.payer_id != user_id:
            continue
        currency = normalize_currency(expense.currency, default_currency)
        totals[currency] = totals.get(currency, Money.zero()) + expense.amount

    return [
        Balance(user_id=user_id, currency=currency, amount=total)
        for currency, total in sorted(totals.items())
        if total >= BALANCE_EPSILON
    ]


class LedgerAggregator:
    """Aggregator bound to a default currency and imbalance tolerance."""

    def __init__(
        self, default_currency: str = DEFAULT_CURRENCY, tolerance_cents: int = 0
    ):
        self.default_currency = default_currency
        self.tolerance_cents = tolerance_cents

    def aggregate(
        self,
        expenses: Iterable[ExpenseRecord],
        splits: Iterable[SplitRecord],
        settlements: Iterable[SettlementRecord],
        trip_id: str | None = None,
    ) -> list[Balance]:
        return aggregate_balances(
            expenses,
            splits,
            settlements,
            trip_id=trip_id,
            default_currency=self.default_currency,
            tolerance_cents=self.tolerance_cents,
        )

    def rounding_allowance(
        self, expenses: Iterable[ExpenseRecord], trip_id: str | None = None
    ) -> dict[str, int]:
        return rounding_allowance(expenses, trip_id, self.default_currency)
