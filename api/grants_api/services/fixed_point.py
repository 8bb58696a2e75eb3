"""Fixed-point helpers for monetary values.

Every monetary output is re-quantized to ``MONEY_PLACES`` fractional digits,
rounding toward zero so a distribution can never pay out more than its pot.
"""

from __future__ import annotations

import math
from decimal import ROUND_DOWN, Context, Decimal, DivisionByZero, InvalidOperation, Overflow

from grants_api.errors import PrecisionError

MONEY_PLACES = 18
MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_PLACES)
UINT256_MAX = 2**256 - 1

# Wide enough for uint256 base units plus the fractional scale.
MONEY_CONTEXT = Context(
    prec=120,
    rounding=ROUND_DOWN,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


def to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        dec = value
    else:
        try:
            dec = Decimal(str(value))
        except InvalidOperation as exc:
            raise PrecisionError(f"not_a_number:{value!r}") from exc
    if not dec.is_finite():
        raise PrecisionError(f"non_finite_amount:{value!r}")
    return dec


def quantize_money(value: object) -> Decimal:
    dec = to_decimal(value)
    try:
        return dec.quantize(MONEY_QUANTUM, rounding=ROUND_DOWN, context=MONEY_CONTEXT)
    except InvalidOperation as exc:
        raise PrecisionError(f"amount_exceeds_fixed_point_range:{dec}") from exc


def sqrt_money(value: Decimal) -> Decimal:
    """Square root through float, immediately re-quantized."""
    if value < 0:
        raise PrecisionError(f"negative_amount:{value}")
    as_float = float(value)
    if not math.isfinite(as_float):
        raise PrecisionError(f"amount_exceeds_float_range:{value}")
    return quantize_money(Decimal(math.sqrt(as_float)))


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Convert a token amount to its smallest unit, dropping sub-unit dust."""
    dec = to_decimal(amount)
    if dec < 0:
        raise PrecisionError(f"negative_amount:{dec}")
    try:
        scaled = dec.scaleb(decimals, context=MONEY_CONTEXT).to_integral_value(
            rounding=ROUND_DOWN, context=MONEY_CONTEXT
        )
    except InvalidOperation as exc:
        raise PrecisionError(f"amount_exceeds_fixed_point_range:{dec}") from exc
    units = int(scaled)
    if units > UINT256_MAX:
        raise PrecisionError(f"amount_exceeds_uint256:{units}")
    return units


def from_base_units(amount: int, decimals: int) -> Decimal:
    try:
        return Decimal(amount).scaleb(-decimals, context=MONEY_CONTEXT)
    except InvalidOperation as exc:
        raise PrecisionError(f"amount_exceeds_fixed_point_range:{amount}") from exc
