"""Greedy debt simplification.

Turns the net balances of one currency into a short list of point-to-point
payments. Creditors and debtors are each sorted by amount (largest first,
ties by user id) and matched with two pointers. The result is deterministic
for a given set of balances but not guaranteed to be the global minimum
number of payments.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .aggregator import check_zero_sum, group_by_currency
from .exceptions import CurrencyMismatchError
from .models import Balance, Transaction
from .money import Money

logger = logging.getLogger(__name__)

SETTLE_EPSILON = Money.from_cents(1)


@dataclass
class _Party:
    """Working copy of one side of the matching; ``remaining`` shrinks."""

    user_id: str
    remaining: Money


def _by_amount_desc(party: _Party) -> tuple[int, str]:
    return (-party.remaining.cents, party.user_id)


def simplify_debts(
    balances: Iterable[Balance],
    tolerance_cents: int = 0,
    allowance: Mapping[str, int] | None = None,
) -> list[Transaction]:
    """
    Produce the payments that settle the balances of a single currency.

    Args:
        balances: Net balances, all in the same currency
        tolerance_cents: Residual tolerated when checking the balances cancel
        allowance: Split rounding residual expected per currency, as computed
            by ``rounding_allowance`` for the records behind the balances

    Returns:
        Transactions in the order the greedy walk emits them

    Raises:
        CurrencyMismatchError: If the balances span several currencies
        LedgerImbalanceError: If credits and debits don't cancel out
    """
    balances = list(balances)
    if not balances:
        return []

    currencies = {balance.currency for balance in balances}
    if len(currencies) > 1:
        raise CurrencyMismatchError(currencies)
    currency = currencies.pop()

    check_zero_sum(balances, tolerance_cents, allowance)

    creditors = [
        _Party(balance.user_id, balance.amount)
        for balance in balances
        if balance.amount > SETTLE_EPSILON
    ]
    debtors = [
        _Party(balance.user_id, balance.amount.abs())
        for balance in balances
        if balance.amount < -SETTLE_EPSILON
    ]
    creditors.sort(key=_by_amount_desc)
    debtors.sort(key=_by_amount_desc)

    transactions: list[Transaction] = []
    i = j = 0
    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        settle_amount = min(creditor.remaining, debtor.remaining)
        if settle_amount > SETTLE_EPSILON:
            transactions.append(
                Transaction(
                    from_user_id=debtor.user_id,
                    to_user_id=creditor.user_id,
                    amount=settle_amount,
                    currency=currency,
                )
            )

        creditor.remaining = creditor.remaining - settle_amount
        debtor.remaining = debtor.remaining - settle_amount

        if creditor.remaining < SETTLE_EPSILON:
            i += 1
        if debtor.remaining < SETTLE_EPSILON:
            j += 1

    unmatched = [
        party
        for party in creditors[i:] + debtors[j:]
        if not party.remaining.is_zero()
    ]
    if unmatched:
        logger.debug(
            f"{len(unmatched)} {currency} balances left within one minor unit "
            f"after matching"
        )

    logger.info(
        f"Simplified {len(balances)} {currency} balances into "
        f"{len(transactions)} payments"
    )

    return transactions


def simplify_all(
    balances: Iterable[Balance],
    tolerance_cents: int = 0,
    allowance: Mapping[str, int] | None = None,
) -> dict[str, list[Transaction]]:
    """Run the simplifier independently for every currency present."""
    return {
        currency: simplify_debts(currency_balances, tolerance_cents, allowance)
        for currency, currency_balances in sorted(group_by_currency(balances).items())
    }


class DebtSimplifier:
    """Simplifier bound to an imbalance tolerance."""

    def __init__(self, tolerance_cents: int = 0):
        self.tolerance_cents = tolerance_cents

    def simplify(
        self,
        balances: Iterable[Balance],
        allowance: Mapping[str, int] | None = None,
    ) -> list[Transaction]:
        return simplify_debts(balances, self.tolerance_cents, allowance)

    def simplify_all(
        self,
        balances: Iterable[Balance],
        allowance: Mapping[str, int] | None = None,
    ) -> dict[str, list[Transaction]]:
        return simplify_all(balances, self.tolerance_cents, allowance)
