from __future__ import annotations

from decimal import Decimal

import pytest

from grants_api.errors import PrecisionError
from grants_api.services.fixed_point import (
    UINT256_MAX,
    from_base_units,
    quantize_money,
    sqrt_money,
    to_base_units,
)


def test_quantize_rounds_toward_zero_at_eighteen_places() -> None:
    assert quantize_money(Decimal("1") / Decimal("3")) == Decimal("0.333333333333333333")
    assert quantize_money("2.9999999999999999999") == Decimal("2.999999999999999999")


def test_quantize_rejects_non_finite() -> None:
    with pytest.raises(PrecisionError):
        quantize_money(Decimal("NaN"))
    with pytest.raises(PrecisionError):
        quantize_money("not-a-number")


def test_sqrt_is_requantized() -> None:
    assert sqrt_money(Decimal("400")) == Decimal("20")
    assert sqrt_money(Decimal("2")).as_tuple().exponent == -18


def test_sqrt_out_of_float_range_fails() -> None:
    with pytest.raises(PrecisionError):
        sqrt_money(Decimal("1e400"))


def test_base_units_drop_dust() -> None:
    assert to_base_units(Decimal("1.2345678"), 6) == 1_234_567
    assert to_base_units(Decimal("500"), 18) == 500 * 10**18
    assert from_base_units(1_500_000, 6) == Decimal("1.5")


def test_base_units_reject_negative_and_overflow() -> None:
    with pytest.raises(PrecisionError):
        to_base_units(Decimal("-1"), 18)
    with pytest.raises(PrecisionError):
        to_base_units(Decimal(UINT256_MAX + 1), 0)
