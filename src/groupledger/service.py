"""Service layer that composes a record source with the ledger core.

The core functions are pure; this module fetches a snapshot for a group,
applies the configured currency and tolerance, and hands the records over.
"""

import hashlib
import logging

from .aggregator import LedgerAggregator, personal_totals
from .config import Settings
from .exceptions import InvalidAmountError
from .models import Balance, SettlementRecord, Transaction, normalize_currency
from .money import Money, validate_amount
from .pairwise import PairwiseNetter
from .simplifier import DebtSimplifier
from .source import RecordSource

logger = logging.getLogger(__name__)


class LedgerService:
    """Balances, settlement plans and pairwise views for one record source."""

    def __init__(self, settings: Settings, source: RecordSource):
        """Initialize the ledger service."""
        self.settings = settings
        self.source = source
        self.aggregator = LedgerAggregator(
            default_currency=settings.default_currency,
            tolerance_cents=settings.balance_tolerance_cents,
        )
        self.simplifier = DebtSimplifier(
            tolerance_cents=settings.balance_tolerance_cents
        )

    def balances(
        self, group_id: str | None, trip_id: str | None = None
    ) -> list[Balance]:
        """
        Compute net balances for a group, or one trip of it.

        Args:
            group_id: The group to load
            trip_id: Trip to scope to; None means expenses outside any trip

        Returns:
            Balances per user and currency
        """
        snapshot = self.source.load(group_id)
        balances = self.aggregator.aggregate(
            snapshot.expenses, snapshot.splits, snapshot.settlements, trip_id=trip_id
        )

        logger.info(
            f"Computed {len(balances)} balances for group {group_id}"
            + (f" trip {trip_id}" if trip_id else "")
        )

        return balances

    def settlement_plan(
        self, group_id: str | None, trip_id: str | None = None
    ) -> dict[str, list[Transaction]]:
        """
        Compute the payments that settle a group, per currency.

        Returns:
            Mapping of currency code to the payments for that currency
        """
        snapshot = self.source.load(group_id)
        balances = self.aggregator.aggregate(
            snapshot.expenses, snapshot.splits, snapshot.settlements, trip_id=trip_id
        )
        plan = self.simplifier.simplify_all(
            balances,
            allowance=self.aggregator.rounding_allowance(snapshot.expenses, trip_id),
        )

        logger.info(
            f"Settlement plan for group {group_id}: "
            f"{sum(len(txns) for txns in plan.values())} payments "
            f"across {len(plan)} currencies"
        )

        return plan

    def net_between(
        self,
        group_id: str | None,
        user_a: str,
        user_b: str,
        currency: str | None = None,
    ) -> Money:
        """
        Net balance between two users; positive means ``user_b`` owes ``user_a``.
        """
        netter = PairwiseNetter(
            self.source.load(group_id), default_currency=self.settings.default_currency
        )
        return netter.net_balance(
            group_id,
            user_a,
            user_b,
            normalize_currency(currency, self.settings.default_currency),
        )

    def personal_totals(self, user_id: str) -> list[Balance]:
        """Totals of a user's personal expenses per currency."""
        return personal_totals(
            self.source.load_personal(user_id),
            user_id,
            default_currency=self.settings.default_currency,
        )

    def confirm_transaction(
        self,
        transaction: Transaction,
        group_id: str | None,
        trip_id: str | None = None,
    ) -> SettlementRecord:
        """
        Turn a confirmed suggested payment into a settlement record.

        The caller is responsible for storing the returned record.

        Raises:
            InvalidAmountError: If the amount is outside the configured range
        """
        if not validate_amount(
            transaction.amount, self.settings.min_amount, self.settings.max_amount
        ):
            raise InvalidAmountError(
                f"Settlement amount {transaction.amount} outside allowed range "
                f"{self.settings.min_amount}..{self.settings.max_amount}"
            )

        settlement = transaction.to_settlement(group_id=group_id, trip_id=trip_id)
        logger.info(
            f"Confirmed payment {transaction.from_user_id} -> "
            f"{transaction.to_user_id}: {transaction.amount} {transaction.currency}"
        )
        return settlement


def compute_plan_id(
    group_id: str | None,
    trip_id: str | None,
    plan: dict[str, list[Transaction]],
) -> str:
    """
    Compute a deterministic identifier for a settlement plan.

    The same scope and payments always give the same id, which lets a caller
    recognise a plan it has already confirmed.

    Returns:
        SHA256 hex digest
    """
    parts = [f"group:{group_id or ''}", f"trip:{trip_id or ''}"]
    for currency in sorted(plan):
        for txn in plan[currency]:
            parts.append(
                f"{currency}:{txn.from_user_id}>{txn.to_user_id}:{txn.amount.cents}"
            )

    combined = "|".join(parts)
    return hashlib.sha256(combined.encode()).hexdigest()
