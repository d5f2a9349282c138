"""Net balance between exactly two users in one currency."""

import logging
from collections.abc import Iterable

from .aggregator import expense_currencies
from .models import (
    DEFAULT_CURRENCY,
    ExpenseRecord,
    LedgerSnapshot,
    SettlementRecord,
    SplitRecord,
    normalize_currency,
)
from .money import Money, sum_money

logger = logging.getLogger(__name__)


def net_balance(
    expenses: Iterable[ExpenseRecord],
    splits: Iterable[SplitRecord],
    settlements: Iterable[SettlementRecord],
    group_id: str | None,
    user_a: str,
    user_b: str,
    currency: str,
    default_currency: str = DEFAULT_CURRENCY,
) -> Money:
    """
    Compute what ``user_b`` owes ``user_a`` in one currency of a group.

    This is the aggregator's fold restricted to the two users: shares of
    expenses one paid for the other, plus settlements one paid the other.
    Records from every trip of the group are included.

    Returns:
        Positive if B owes A, negative if A owes B, zero if settled
    """
    currency = normalize_currency(currency, default_currency)
    expenses = list(expenses)
    currencies = expense_currencies(expenses, default_currency)
    payers = {
        expense.id: expense.payer_id
        for expense in expenses
        if expense.group_id == group_id
        and not expense.deleted
        and not expense.is_personal
        and currencies[expense.id] == currency
    }

    a_paid_for_b: list[Money] = []
    b_paid_for_a: list[Money] = []
    for split in splits:
        payer = payers.get(split.expense_id)
        if payer == user_a and split.user_id == user_b:
            a_paid_for_b.append(split.amount)
        elif payer == user_b and split.user_id == user_a:
            b_paid_for_a.append(split.amount)

    a_settled_to_b: list[Money] = []
    b_settled_to_a: list[Money] = []
    for settlement in settlements:
        if settlement.group_id != group_id:
            continue
        if normalize_currency(settlement.currency, default_currency) != currency:
            continue
        if settlement.from_user_id == user_a and settlement.to_user_id == user_b:
            a_settled_to_b.append(settlement.amount)
        elif settlement.from_user_id == user_b and settlement.to_user_id == user_a:
            b_settled_to_a.append(settlement.amount)

    a_position = sum_money(a_paid_for_b) + sum_money(a_settled_to_b)
    b_position = sum_money(b_paid_for_a) + sum_money(b_settled_to_a)
    net = a_position - b_position

    logger.debug(f"Net {currency} between {user_a} and {user_b}: {net}")

    return net


class PairwiseNetter:
    """Two-party view over one group's ledger snapshot."""

    def __init__(
        self, snapshot: LedgerSnapshot, default_currency: str = DEFAULT_CURRENCY
    ):
        self.snapshot = snapshot
        self.default_currency = default_currency

    def net_balance(
        self, group_id: str | None, user_a: str, user_b: str, currency: str
    ) -> Money:
        return net_balance(
            self.snapshot.expenses,
            self.snapshot.splits,
            self.snapshot.settlements,
            group_id=group_id,
            user_a=user_a,
            user_b=user_b,
            currency=currency,
            default_currency=self.default_currency,
        )
