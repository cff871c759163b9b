"""Constant-product pricing for binary YES/NO pools — pure functions, no state.

Pricing convention: P(yes) = no_pool / (yes_pool + no_pool). Buying a side adds
the post-fee amount to that side's pool and shrinks the opposite pool so the
product k = yes_pool * no_pool is kept; the trader is minted exactly the
amount the opposite pool shrank by.

Rounding always favors the pools: the new opposite pool is rounded up, so
the post-trade product never drops below the pre-trade k. Shares are capped at
the net amount; when the cap binds the opposite pool shrinks by the capped
amount only, which raises k.
"""

from src.pm_common.errors import InvalidAmountError
from src.pm_common.fixed_point import (
    BPS_DENOMINATOR,
    calc_fee,
    ceil_div,
    checked_add,
    checked_mul,
    checked_sub,
    mul_div,
    validate_amount,
    validate_fee_bps,
)
from src.pm_pricing.domain.models import PoolPrice, TradeEstimate

MIN_YES_BPS = 1
MAX_YES_BPS = BPS_DENOMINATOR - 1


def validate_yes_bps(yes_bps: int) -> None:
    if isinstance(yes_bps, bool) or not isinstance(yes_bps, int):
        raise InvalidAmountError(f"yes_bps must be an int, got {type(yes_bps).__name__}")
    if not (MIN_YES_BPS <= yes_bps <= MAX_YES_BPS):
        raise InvalidAmountError(
            f"yes_bps must be between {MIN_YES_BPS} and {MAX_YES_BPS}, got {yes_bps}"
        )


def split_seed(seed_amount: int, yes_bps: int) -> tuple[int, int]:
    """Split the seed so the opening P(yes) is yes_bps / 10000.

    yes_pool = seed * (10000 - yes_bps) / 10000
    no_pool  = seed * yes_bps / 10000
    Both clamped to at least 1 unit.
    """
    validate_amount(seed_amount, "seed_amount")
    validate_yes_bps(yes_bps)
    yes_pool = mul_div(seed_amount, BPS_DENOMINATOR - yes_bps, BPS_DENOMINATOR)
    no_pool = mul_div(seed_amount, yes_bps, BPS_DENOMINATOR)
    return max(yes_pool, 1), max(no_pool, 1)


def price(yes_pool: int, no_pool: int) -> PoolPrice:
    if yes_pool <= 0 or no_pool <= 0:
        raise InvalidAmountError(f"pools must be positive, got ({yes_pool}, {no_pool})")
    return PoolPrice(
        yes_numerator=no_pool,
        no_numerator=yes_pool,
        denominator=checked_add(yes_pool, no_pool),
    )


def estimate_trade(
    yes_pool: int, no_pool: int, amount: int, is_yes: bool, fee_bps: int
) -> TradeEstimate:
    """Quote a bet of `amount` on one side without touching any state.

    Raises InvalidAmountError when nothing is left after the fee or the net
    amount is too small to mint a single unit, ArithmeticOverflowError when
    an intermediate value leaves the 256-bit range.
    """
    validate_amount(amount)
    validate_fee_bps(fee_bps)
    if yes_pool <= 0 or no_pool <= 0:
        raise InvalidAmountError(f"pools must be positive, got ({yes_pool}, {no_pool})")

    fee = calc_fee(amount, fee_bps)
    net_amount = amount - fee
    if net_amount <= 0:
        raise InvalidAmountError(f"amount {amount} leaves nothing after a {fee} fee")

    side, opposite = (yes_pool, no_pool) if is_yes else (no_pool, yes_pool)
    k = checked_mul(yes_pool, no_pool)

    new_side = checked_add(side, net_amount)
    new_opposite = ceil_div(k, new_side)
    shares = checked_sub(opposite, new_opposite)
    if shares > net_amount:
        shares = net_amount
        new_opposite = opposite - net_amount
    if shares == 0:
        raise InvalidAmountError(f"net amount {net_amount} is too small to mint shares")

    new_yes, new_no = (new_side, new_opposite) if is_yes else (new_opposite, new_side)
    return TradeEstimate(
        amount=amount,
        fee=fee,
        net_amount=net_amount,
        shares=shares,
        yes_pool=new_yes,
        no_pool=new_no,
        k_before=k,
        k_after=checked_mul(new_yes, new_no),
    )
