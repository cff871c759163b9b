"""Checked integer arithmetic for fixed-point amounts.

All pool balances, shares, costs and fees are int in smallest units (18 implied
decimals by default). No float, no Decimal on any accounting path. Every
helper bounds its result to [0, MAX_AMOUNT] and raises ArithmeticOverflowError
rather than going out of range.
"""

from decimal import Decimal, InvalidOperation, localcontext

from src.pm_common.errors import ArithmeticOverflowError, InvalidAmountError

MAX_AMOUNT = 2**256 - 1
BPS_DENOMINATOR = 10_000


def _bounded(value: int, op: str) -> int:
    if value < 0:
        raise ArithmeticOverflowError(f"{op} underflows below zero")
    if value > MAX_AMOUNT:
        raise ArithmeticOverflowError(f"{op} exceeds 2**256 - 1")
    return value


def checked_add(a: int, b: int) -> int:
    return _bounded(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    return _bounded(a - b, "sub")


def checked_mul(a: int, b: int) -> int:
    return _bounded(a * b, "mul")


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with the intermediate product bounded."""
    if denominator <= 0:
        raise ArithmeticOverflowError("division by non-positive denominator")
    return checked_mul(a, b) // denominator


def ceil_div(a: int, b: int) -> int:
    """Integer ceiling: (a + b - 1) // b."""
    if b <= 0:
        raise ArithmeticOverflowError("division by non-positive denominator")
    return _bounded(-(-a // b), "ceil_div")


def calc_fee(amount: int, fee_bps: int) -> int:
    """Ceiling-division fee so rounding never costs the platform.

    fee = ceil(amount * fee_bps / 10000)
    """
    if amount == 0 or fee_bps == 0:
        return 0
    return ceil_div(checked_mul(amount, fee_bps), BPS_DENOMINATOR)


def validate_amount(amount: int, what: str = "amount") -> None:
    """Reject non-int, zero, negative or out-of-range amounts."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"{what} must be an int in smallest units, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmountError(f"{what} must be positive, got {amount}")
    if amount > MAX_AMOUNT:
        raise ArithmeticOverflowError(f"{what} {amount} exceeds 2**256 - 1")


def validate_fee_bps(fee_bps: int) -> None:
    if not (0 <= fee_bps < BPS_DENOMINATOR):
        raise InvalidAmountError(f"fee_bps must be in [0, 9999], got {fee_bps}")


def parse_units(value: str | int, decimals: int = 18) -> int:
    """Convert a decimal string to smallest units: parse_units('1.5', 18) -> 1500000000000000000."""
    with localcontext() as ctx:
        ctx.prec = 100
        try:
            scaled = Decimal(str(value)).scaleb(decimals)
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Not a decimal amount: {value!r}") from exc
    if not scaled.is_finite():
        raise InvalidAmountError(f"Not a finite amount: {value!r}")
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(f"{value} has more than {decimals} decimal places")
    return _bounded(int(scaled), "parse_units")


def format_units(amount: int, decimals: int = 18) -> str:
    """Convert smallest units to a decimal string: 1500000000000000000 -> '1.5'."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    if decimals == 0 or frac == 0:
        return f"{sign}{whole}"
    frac_str = f"{frac:0{decimals}d}".rstrip("0")
    return f"{sign}{whole}.{frac_str}"
