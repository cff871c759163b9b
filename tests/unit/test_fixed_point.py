"""Tests for pm_common.fixed_point — checked 256-bit integer arithmetic."""

import pytest

from src.pm_common.errors import ArithmeticOverflowError, InvalidAmountError
from src.pm_common.fixed_point import (
    MAX_AMOUNT,
    calc_fee,
    ceil_div,
    checked_add,
    checked_mul,
    checked_sub,
    format_units,
    mul_div,
    parse_units,
    validate_amount,
    validate_fee_bps,
)


class TestCheckedArithmetic:
    def test_add_at_limit(self) -> None:
        assert checked_add(MAX_AMOUNT - 1, 1) == MAX_AMOUNT

    def test_add_past_limit_raises(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            checked_add(MAX_AMOUNT, 1)

    def test_sub_below_zero_raises(self) -> None:
        with pytest.raises(ArithmeticOverflowError, match="below zero"):
            checked_sub(1, 2)

    def test_sub_to_zero(self) -> None:
        assert checked_sub(7, 7) == 0

    def test_mul_past_limit_raises(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            checked_mul(2**128, 2**128)

    def test_mul_div_floors(self) -> None:
        # 10 * 2 / 3 = 6.67 → 6
        assert mul_div(10, 2, 3) == 6

    def test_mul_div_rejects_zero_denominator(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            mul_div(1, 1, 0)

    def test_mul_div_bounds_intermediate_product(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            mul_div(MAX_AMOUNT, 2, 2)

    def test_ceil_div_rounds_up(self) -> None:
        assert ceil_div(7, 2) == 4
        assert ceil_div(8, 2) == 4
        assert ceil_div(0, 5) == 0


class TestCalcFee:
    def test_basic(self) -> None:
        # 100 * 200 / 10000 = 2
        assert calc_fee(100, 200) == 2

    def test_ceiling_rounds_up(self) -> None:
        # 101 * 200 / 10000 = 2.02 → 3
        assert calc_fee(101, 200) == 3

    def test_smallest_amount_pays_one_unit(self) -> None:
        assert calc_fee(1, 200) == 1

    def test_zero_rate(self) -> None:
        assert calc_fee(10**18, 0) == 0

    def test_zero_amount(self) -> None:
        assert calc_fee(0, 200) == 0


class TestValidateAmount:
    def test_positive_ok(self) -> None:
        validate_amount(1)
        validate_amount(MAX_AMOUNT)

    def test_zero_raises(self) -> None:
        with pytest.raises(InvalidAmountError, match="positive"):
            validate_amount(0)

    def test_negative_raises(self) -> None:
        with pytest.raises(InvalidAmountError):
            validate_amount(-1)

    def test_float_raises(self) -> None:
        with pytest.raises(InvalidAmountError, match="float"):
            validate_amount(1.5)  # type: ignore[arg-type]

    def test_bool_raises(self) -> None:
        with pytest.raises(InvalidAmountError):
            validate_amount(True)

    def test_above_max_is_overflow(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            validate_amount(MAX_AMOUNT + 1)

    def test_label_in_message(self) -> None:
        with pytest.raises(InvalidAmountError, match="seed_amount"):
            validate_amount(0, "seed_amount")


class TestValidateFeeBps:
    def test_bounds(self) -> None:
        validate_fee_bps(0)
        validate_fee_bps(9999)

    def test_full_fee_rejected(self) -> None:
        with pytest.raises(InvalidAmountError):
            validate_fee_bps(10_000)


class TestUnits:
    def test_parse_whole(self) -> None:
        assert parse_units("10") == 10 * 10**18

    def test_parse_fraction(self) -> None:
        assert parse_units("1.5") == 1_500_000_000_000_000_000

    def test_parse_smallest_unit(self) -> None:
        assert parse_units("0.000000000000000001") == 1

    def test_parse_too_many_decimals(self) -> None:
        with pytest.raises(InvalidAmountError, match="decimal places"):
            parse_units("0.0000000000000000001")

    def test_parse_custom_decimals(self) -> None:
        assert parse_units("2.25", decimals=2) == 225

    def test_parse_garbage(self) -> None:
        with pytest.raises(InvalidAmountError):
            parse_units("ten")

    def test_parse_infinity(self) -> None:
        with pytest.raises(InvalidAmountError):
            parse_units("Infinity")

    def test_parse_negative_is_overflow(self) -> None:
        with pytest.raises(ArithmeticOverflowError):
            parse_units("-1")

    def test_format(self) -> None:
        assert format_units(1_500_000_000_000_000_000) == "1.5"
        assert format_units(10**18) == "1"
        assert format_units(0) == "0"
        assert format_units(1) == "0.000000000000000001"

    def test_format_custom_decimals(self) -> None:
        assert format_units(225, decimals=2) == "2.25"
        assert format_units(225, decimals=0) == "225"
