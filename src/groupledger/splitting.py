"""Build split records for an expense and keep them reconciled with its amount."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

from .exceptions import (
    DivisionByZeroError,
    InvalidSplitCountError,
    SplitMismatchError,
)
from .models import ExpenseRecord, SplitRecord
from .money import Money, Real, sum_money

logger = logging.getLogger(__name__)

MAX_SPLITS = 50

# Fixed splits entered by hand may be off by this much before we refuse them
FIXED_SPLIT_TOLERANCE_CENTS = 1


def _check_participants(user_ids: Sequence[str], max_splits: int) -> None:
    """Validate participant count and uniqueness."""
    if len(user_ids) <= 0:
        raise InvalidSplitCountError(len(user_ids))
    if len(user_ids) > max_splits:
        raise InvalidSplitCountError(
            len(user_ids), f"Too many splits (max {max_splits})"
        )

    duplicates = sorted({uid for uid in user_ids if user_ids.count(uid) > 1})
    if duplicates:
        raise SplitMismatchError(f"Duplicate participants: {', '.join(duplicates)}")


def absorb_residual(splits: list[SplitRecord], target: Money) -> list[SplitRecord]:
    """
    Make splits add up to ``target`` by adjusting the largest one.

    Args:
        splits: Split records whose total is close to the target
        target: Amount the splits must sum to

    Returns:
        New list of split records summing exactly to target
    """
    residual = target - sum_money(split.amount for split in splits)
    if residual.is_zero() or not splits:
        return list(splits)

    largest_idx = max(range(len(splits)), key=lambda idx: splits[idx].amount.abs())
    largest = splits[largest_idx]

    adjusted = list(splits)
    adjusted[largest_idx] = largest.model_copy(
        update={"amount": largest.amount + residual}
    )

    logger.info(
        f"Applied rounding adjustment: {residual.cents} minor units "
        f"to split of user {largest.user_id} on expense {largest.expense_id}"
    )

    return adjusted


def even_splits(
    expense: ExpenseRecord, user_ids: Iterable[str], max_splits: int = MAX_SPLITS
) -> list[SplitRecord]:
    """
    Split an expense equally, front-loading leftover cents.

    The first participants in ``user_ids`` receive the extra minor units.
    """
    user_ids = list(user_ids)
    _check_participants(user_ids, max_splits)

    parts = expense.amount.split_evenly(len(user_ids))
    return [
        SplitRecord(expense_id=expense.id, user_id=user_id, amount=part)
        for user_id, part in zip(user_ids, parts, strict=True)
    ]


def weighted_splits(
    expense: ExpenseRecord,
    weights: Mapping[str, Real],
    max_splits: int = MAX_SPLITS,
) -> list[SplitRecord]:
    """
    Split an expense by shares or percentages.

    The last participant (in mapping order) absorbs rounding.

    Args:
        expense: The expense being split
        weights: user_id -> share, e.g. ``{"ann": 2, "bob": 1}`` or percentages
    """
    user_ids = list(weights)
    _check_participants(user_ids, max_splits)

    parts = expense.amount.split_weighted([weights[user_id] for user_id in user_ids])
    return [
        SplitRecord(expense_id=expense.id, user_id=user_id, amount=part)
        for user_id, part in zip(user_ids, parts, strict=True)
    ]


def fixed_splits(
    expense: ExpenseRecord,
    amounts: Mapping[str, Money],
    max_splits: int = MAX_SPLITS,
    tolerance_cents: int = FIXED_SPLIT_TOLERANCE_CENTS,
) -> list[SplitRecord]:
    """
    Build splits from explicit per-user amounts.

    Raises:
        SplitMismatchError: If the amounts miss the expense total by more
            than ``tolerance_cents``
    """
    user_ids = list(amounts)
    _check_participants(user_ids, max_splits)

    total = sum_money(amounts.values())
    residual = expense.amount - total
    if abs(residual.cents) > tolerance_cents:
        raise SplitMismatchError(
            f"Split amounts total {total} but expense {expense.id} is "
            f"{expense.amount} (off by {residual.abs()})"
        )

    splits = [
        SplitRecord(expense_id=expense.id, user_id=user_id, amount=amounts[user_id])
        for user_id in user_ids
    ]
    return absorb_residual(splits, expense.amount)


def rescale_splits(
    splits: Sequence[SplitRecord], old_amount: Money, new_amount: Money
) -> list[SplitRecord]:
    """
    Rescale splits proportionally after an expense amount is edited.

    Each split is multiplied by ``new_amount / old_amount``. When the old
    splits reconciled with the old amount, the new ones are adjusted to
    reconcile exactly with the new amount.

    Raises:
        DivisionByZeroError: If old_amount is zero
    """
    if old_amount.is_zero():
        raise DivisionByZeroError("Cannot rescale splits of a zero-amount expense")

    exact_ratio = Decimal(new_amount.cents) / Decimal(old_amount.cents)
    logger.debug(f"Rescaling {len(splits)} splits by {exact_ratio}")

    rescaled = [
        split.model_copy(update={"amount": split.amount.multiply(exact_ratio)})
        for split in splits
    ]

    old_total = sum_money(split.amount for split in splits)
    target = new_amount if old_total == old_amount else old_total.multiply(exact_ratio)
    return absorb_residual(rescaled, target)
