"""Record sources that hand ledger snapshots to the core."""

import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .exceptions import RecordSourceError
from .models import ExpenseRecord, LedgerSnapshot

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    """Anything that can produce a consistent snapshot of a group's records."""

    def load(self, group_id: str | None) -> LedgerSnapshot:
        """Return the group's non-deleted expenses, their splits and settlements."""
        ...

    def load_personal(self, user_id: str) -> list[ExpenseRecord]:
        """Return a user's non-deleted personal expenses."""
        ...


def filter_group(snapshot: LedgerSnapshot, group_id: str | None) -> LedgerSnapshot:
    """
    Narrow a snapshot to one group, dropping soft-deleted expenses.

    Splits are kept only for the expenses that survive.
    """
    expenses = [
        expense
        for expense in snapshot.expenses
        if expense.group_id == group_id and not expense.deleted
    ]
    expense_ids = {expense.id for expense in expenses}

    return LedgerSnapshot(
        expenses=expenses,
        splits=[split for split in snapshot.splits if split.expense_id in expense_ids],
        settlements=[
            settlement
            for settlement in snapshot.settlements
            if settlement.group_id == group_id
        ],
    )


class InMemoryRecordSource:
    """Record source over a snapshot held in memory."""

    def __init__(self, snapshot: LedgerSnapshot):
        self.snapshot = snapshot

    def load(self, group_id: str | None) -> LedgerSnapshot:
        return filter_group(self.snapshot, group_id)

    def load_personal(self, user_id: str) -> list[ExpenseRecord]:
        return [
            expense
            for expense in self.snapshot.expenses
            if expense.is_personal
            and expense.payer_id == user_id
            and not expense.deleted
        ]


class JsonFileRecordSource:
    """Record source backed by a JSON ledger file.

    The file holds one ``LedgerSnapshot`` object with ``expenses``, ``splits``
    and ``settlements`` arrays. It is re-read on every load so each call sees
    a single consistent version of the file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def read_snapshot(self) -> LedgerSnapshot:
        """
        Read and validate the whole ledger file.

        Raises:
            RecordSourceError: If the file is missing, unreadable or invalid
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise RecordSourceError(f"Cannot read ledger file {self.path}: {e}") from e

        try:
            snapshot = LedgerSnapshot.model_validate_json(raw)
        except ValidationError as e:
            raise RecordSourceError(f"Invalid ledger file {self.path}:\n{e}") from e

        logger.info(
            f"Loaded {len(snapshot.expenses)} expenses, {len(snapshot.splits)} splits "
            f"and {len(snapshot.settlements)} settlements from {self.path}"
        )
        return snapshot

    def load(self, group_id: str | None) -> LedgerSnapshot:
        return filter_group(self.read_snapshot(), group_id)

    def load_personal(self, user_id: str) -> list[ExpenseRecord]:
        return InMemoryRecordSource(self.read_snapshot()).load_personal(user_id)
