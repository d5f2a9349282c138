"""groupledger - Shared expense balances and settlement plans in exact money."""

__version__ = "0.1.0"

from .aggregator import LedgerAggregator, aggregate_balances, group_by_currency
from .config import Settings, load_settings
from .models import (
    Balance,
    ExpenseRecord,
    LedgerSnapshot,
    SettlementRecord,
    SplitRecord,
    Transaction,
)
from .money import Money, parse_money, validate_amount
from .pairwise import PairwiseNetter, net_balance
from .service import LedgerService
from .simplifier import DebtSimplifier, simplify_all, simplify_debts

__all__ = [
    "Settings",
    "load_settings",
    "Money",
    "parse_money",
    "validate_amount",
    "Balance",
    "ExpenseRecord",
    "LedgerSnapshot",
    "SettlementRecord",
    "SplitRecord",
    "Transaction",
    "LedgerAggregator",
    "aggregate_balances",
    "group_by_currency",
    "PairwiseNetter",
    "net_balance",
    "DebtSimplifier",
    "simplify_debts",
    "simplify_all",
    "LedgerService",
]
