"""
Money Module

Fixed-point helpers for monetary amounts.

All amounts are Decimal values with two decimal places. Rounding is always
ROUND_HALF_UP. Proration is done on integer cents so a share is rounded
exactly once.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Sequence

from .exceptions import InvalidAmount

Money = Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(value: Decimal) -> Decimal:
    """Round a Decimal to cents using ROUND_HALF_UP."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value: Any, field: str = "value") -> Decimal:
    """Parse an amount into Money.

    Args:
        value: Decimal, int, float or numeric string
        field: Field name used in error messages

    Returns:
        Decimal with two decimal places

    Raises:
        InvalidAmount: If the value is missing, non-numeric, non-finite or
            carries precision finer than one cent
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount(value, "amount is required", field)

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmount(value, "not a number", field)

    if not amount.is_finite():
        raise InvalidAmount(value, "not a finite number", field)

    rounded = quantize_money(amount)
    if rounded != amount:
        raise InvalidAmount(value, "precision finer than one cent", field)

    return rounded


def to_cents(value: Decimal) -> int:
    """Convert Money to integer minor units."""
    return int(quantize_money(value) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer minor units back to Money."""
    return quantize_money(Decimal(cents) / 100)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    """Sum amounts exactly, returning Money."""
    return quantize_money(sum(values, ZERO))


def prorate(amount: Decimal, numerator: Decimal, denominator: Decimal) -> Decimal:
    """Return amount * numerator / denominator rounded half-up to cents.

    The product is computed on integer cents, so the only rounding is the
    final one.

    Args:
        amount: Amount being split
        numerator: Share weight
        denominator: Total weight

    Returns:
        Prorated share as Money
    """
    den = to_cents(denominator)
    if den == 0:
        raise ZeroDivisionError("Cannot prorate against a zero total")

    num = to_cents(amount) * to_cents(numerator)
    sign = -1 if (num < 0) != (den < 0) else 1
    quotient, remainder = divmod(abs(num), abs(den))
    if 2 * remainder >= abs(den):
        quotient += 1

    return from_cents(sign * quotient)


def split_proportionally(amount: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
    """Split amount across weights so the parts add up to amount exactly.

    Every part is floored on integer cents, then the leftover cents go one
    at a time to the parts with the largest remainder (ties to the later
    weight). With 0 <= amount <= sum(weights) each part stays within
    0 <= part <= weight.

    Args:
        amount: Amount being split
        weights: Positive share weights

    Returns:
        One Money part per weight, in order
    """
    total = sum(to_cents(w) for w in weights)
    if total == 0:
        raise ZeroDivisionError("Cannot split against a zero total")

    cents = to_cents(amount)
    floors = []
    remainders = []
    for weight in weights:
        quotient, remainder = divmod(cents * to_cents(weight), total)
        floors.append(quotient)
        remainders.append(remainder)

    leftover = cents - sum(floors)
    ranked = sorted(range(len(weights)), key=lambda i: (remainders[i], i), reverse=True)
    for i in ranked[:leftover]:
        floors[i] += 1

    return [from_cents(c) for c in floors]


def percent(part: Decimal, whole: Decimal) -> Decimal:
    """Return part / whole * 100 rounded to two places (0 when whole is 0)."""
    if whole == 0:
        return ZERO
    return quantize_money(part * 100 / whole)
