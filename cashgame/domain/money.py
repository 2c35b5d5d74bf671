"""Currency arithmetic.

Every addition, subtraction and rounding of an amount goes through this module.
Amounts are ``Decimal`` values quantized to cents with round-half-up, so
``175.50 - 100`` is exactly ``75.50``.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .result import Fail, Ok, Result

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
EPSILON = CENT

Amount = Decimal | int | float | str


def _as_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() gives the shortest repr, so 0.1 stays 0.1 rather than its binary expansion
        return Decimal(str(value))
    return Decimal(value)


def to_money(value: Amount) -> Decimal:
    return _as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def add_amounts(*values: Amount) -> Decimal:
    return sum_amounts(values)


def subtract_amounts(minuend: Amount, subtrahend: Amount) -> Decimal:
    return to_money(to_money(minuend) - to_money(subtrahend))


def sum_amounts(values: Iterable[Amount]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_money(value)
    return to_money(total)


def is_valid_amount(value: Amount) -> bool:
    """True when the value is finite and needs no more than two decimal places."""
    try:
        decimal_value = _as_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return False
    if not decimal_value.is_finite():
        return False
    return decimal_value.normalize().as_tuple().exponent >= -2


def within_tolerance(left: Amount, right: Amount, tolerance: Decimal = EPSILON) -> bool:
    return abs(_as_decimal(left) - _as_decimal(right)) <= tolerance


def parse_amount(raw: Amount) -> Result[Decimal]:
    try:
        value = _as_decimal(raw)
    except (InvalidOperation, ValueError, TypeError):
        return Fail(code="INVALID_AMOUNT", message=f"not a number: {raw!r}", details={"raw": str(raw)})

    if not value.is_finite():
        return Fail(code="INVALID_AMOUNT", message="amount must be finite", details={"raw": str(raw)})
    if not is_valid_amount(value):
        return Fail(
            code="INVALID_AMOUNT",
            message="amount must have at most two decimal places",
            details={"raw": str(raw)},
        )
    return Ok(to_money(value))
