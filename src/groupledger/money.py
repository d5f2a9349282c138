"""Exact money arithmetic in integer minor units.

Amounts are stored as a signed integer count of cents. Every construction
path goes through ``Decimal`` and rounds half a cent toward positive
infinity, so floating point never enters the arithmetic path.
"""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic_core import core_schema

from .exceptions import (
    DivisionByZeroError,
    InvalidAmountError,
    InvalidSplitCountError,
    InvalidWeightsError,
)

CENTS_PER_UNIT = 100

# Range accepted for a single ledger entry: 0.01 .. 999999.99
MIN_AMOUNT_CENTS = 1
MAX_AMOUNT_CENTS = 99_999_999

# Smallest positive major-unit value that rounds to a non-zero amount
HALF_MINOR_UNIT = Decimal("0.005")

Real = int | float | Decimal

_CURRENCY_NOISE = re.compile(r"[$€£¥₹,\s]")


def to_decimal(value: Any) -> Decimal:
    """
    Convert a number or numeric string to an exact Decimal.

    Floats go through their shortest ``repr`` so that ``0.1`` becomes
    ``Decimal("0.1")`` rather than its binary expansion.

    Raises:
        InvalidAmountError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Cannot interpret {value!r} as an amount")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as e:
            raise InvalidAmountError(f"Invalid amount: {value!r}") from e
    else:
        raise InvalidAmountError(f"Cannot interpret {value!r} as an amount")

    if not result.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")

    return result


def round_half_up(value: Decimal, shift: int = 0) -> int:
    """
    Round ``value * 10**shift`` to the nearest integer, halves toward +infinity.

    ``-0.5`` rounds to ``0`` and ``-1.5`` to ``-1``, i.e. ``floor(x + 0.5)``.
    Works on the exact digits, so the result does not depend on the decimal
    context precision.
    """
    sign, digits, exponent = value.as_tuple()
    coefficient = int("".join(str(digit) for digit in digits))
    if sign:
        coefficient = -coefficient

    exponent += shift
    if exponent >= 0:
        return coefficient * 10**exponent

    scale = 10**-exponent
    return (2 * coefficient + scale) // (2 * scale)


@dataclass(frozen=True, slots=True, order=True)
class Money:
    """
    Immutable monetary amount in integer minor units.

    Use ``Money.of`` to build from major units (``"12.34"``, ``12.34``,
    ``12``) and ``Money.from_cents`` to build from a minor-unit count.
    Equality, ordering and hashing only look at ``cents``.
    """

    cents: int

    def __post_init__(self):
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise TypeError(
                f"Money stores integer minor units, got {type(self.cents).__name__}"
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def of(cls, value: "Money | str | Real") -> "Money":
        """
        Build from a decimal string, a number in major units, or another Money.

        Stores ``round(value * 100)``. No range validation happens here, see
        ``validate_amount``.
        """
        if isinstance(value, Money):
            return cls(value.cents)
        return cls(round_half_up(to_decimal(value), shift=2))

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        """Build from an integer count of minor units."""
        return cls(cents)

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: Any
    ) -> core_schema.CoreSchema:
        """Validate from strings or numbers, serialize as a decimal string."""
        return core_schema.no_info_plain_validator_function(
            cls.of,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda money: money.to_decimal_string()
            ),
        )

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def add(self, other: "Money") -> "Money":
        return Money(self.cents + other.cents)

    def subtract(self, other: "Money") -> "Money":
        return Money(self.cents - other.cents)

    def multiply(self, factor: Real) -> "Money":
        """Scale by a real factor, rounding to the nearest minor unit."""
        return Money(round_half_up(Decimal(self.cents) * to_decimal(factor)))

    def divide(self, divisor: Real) -> "Money":
        """
        Divide by a real number, rounding to the nearest minor unit.

        Raises:
            DivisionByZeroError: If divisor is zero
        """
        exact_divisor = to_decimal(divisor)
        if exact_divisor == 0:
            raise DivisionByZeroError()
        return Money(round_half_up(Decimal(self.cents) / exact_divisor))

    def split_evenly(self, count: int) -> list["Money"]:
        """
        Split into ``count`` parts that sum exactly to this amount.

        The remainder is front-loaded: the first ``cents % count`` parts get
        one extra minor unit. ``Money.of("10.00").split_evenly(3)`` gives
        ``[3.34, 3.33, 3.33]``.

        Raises:
            InvalidSplitCountError: If count is not positive
        """
        if count <= 0:
            raise InvalidSplitCountError(count)

        base, remainder = divmod(self.cents, count)
        return [Money(base + 1) if i < remainder else Money(base) for i in range(count)]

    def split_weighted(self, weights: Sequence[Real]) -> list["Money"]:
        """
        Split proportionally to ``weights``.

        Every part except the last is rounded independently; the last part
        receives whatever is left so the total always reconciles.

        Raises:
            InvalidWeightsError: If there are no weights or they sum to zero
        """
        exact_weights = [to_decimal(weight) for weight in weights]
        total_weight = sum(exact_weights, Decimal(0))
        if not exact_weights or total_weight == 0:
            raise InvalidWeightsError("Total weight must be positive")

        parts: list[Money] = []
        allocated = 0
        for weight in exact_weights[:-1]:
            share = round_half_up(Decimal(self.cents) * weight / total_weight)
            parts.append(Money(share))
            allocated += share

        parts.append(Money(self.cents - allocated))
        return parts

    def abs(self) -> "Money":
        return Money(abs(self.cents))

    def negate(self) -> "Money":
        return Money(-self.cents)

    def __add__(self, other: object) -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __radd__(self, other: object) -> "Money":
        # Lets the builtin sum() start from its integer 0
        if isinstance(other, int) and not isinstance(other, bool) and other == 0:
            return self
        return NotImplemented

    def __sub__(self, other: object) -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __mul__(self, factor: object) -> "Money":
        if isinstance(factor, Money | bool) or not isinstance(factor, Real):
            return NotImplemented
        return self.multiply(factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: object) -> "Money":
        if isinstance(divisor, Money | bool) or not isinstance(divisor, Real):
            return NotImplemented
        return self.divide(divisor)

    def __neg__(self) -> "Money":
        return self.negate()

    def __abs__(self) -> "Money":
        return self.abs()

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def is_zero(self) -> bool:
        return self.cents == 0

    def is_positive(self) -> bool:
        return self.cents > 0

    def is_negative(self) -> bool:
        return self.cents < 0

    # ------------------------------------------------------------------
    # Exits
    # ------------------------------------------------------------------

    def to_decimal_string(self) -> str:
        """Lossless two-decimal string, the form used for storage and display."""
        sign = "-" if self.cents < 0 else ""
        major, minor = divmod(abs(self.cents), CENTS_PER_UNIT)
        return f"{sign}{major}.{minor:02d}"

    def to_decimal(self) -> Decimal:
        return Decimal(self.to_decimal_string())

    def to_float(self) -> float:
        """Lossy conversion for display code that insists on floats."""
        return self.cents / CENTS_PER_UNIT

    def __str__(self) -> str:
        return self.to_decimal_string()

    def __repr__(self) -> str:
        return f"Money('{self.to_decimal_string()}')"


def validate_amount(
    amount: Money,
    min_amount: Money = Money(MIN_AMOUNT_CENTS),
    max_amount: Money = Money(MAX_AMOUNT_CENTS),
) -> bool:
    """Check that an amount is acceptable for a new ledger entry."""
    return min_amount <= amount <= max_amount


def parse_money(
    value: str | Real, max_amount: Money = Money(MAX_AMOUNT_CENTS)
) -> Money | None:
    """
    Parse a user-entered amount such as ``"$1,234.50"``.

    Currency symbols, thousands separators and whitespace are ignored.

    Returns:
        The parsed amount, or None if it is not a positive amount within range
    """
    cleaned = _CURRENCY_NOISE.sub("", str(value))
    if not cleaned:
        return None

    try:
        exact = to_decimal(cleaned)
    except InvalidAmountError:
        return None

    # Reject before rounding so extreme exponents never expand into integers
    if not HALF_MINOR_UNIT <= exact <= max_amount.to_decimal() + 1:
        return None

    money = Money.of(exact)
    if not money.is_positive() or money > max_amount:
        return None

    return money


def sum_money(amounts: Iterable[Money]) -> Money:
    """Sum amounts, returning zero for an empty iterable."""
    return Money(sum(amount.cents for amount in amounts))


def percentage_of(amount: Money, percentage: Real) -> Money:
    """Compute ``percentage`` percent of an amount (tips, service charges)."""
    return amount.multiply(to_decimal(percentage) / 100)
