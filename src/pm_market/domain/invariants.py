"""Structural invariants checked on every store write.

Each check raises InvariantViolationError naming the broken rule; nothing is
written when any check fails.
"""

import logging
from collections.abc import Iterable

from src.pm_common.enums import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, MarketStatus, Outcome
from src.pm_common.errors import InvariantViolationError
from src.pm_common.fixed_point import MAX_AMOUNT
from src.pm_market.domain.models import Market, Position

logger = logging.getLogger(__name__)

_AMOUNT_FIELDS = (
    "yes_pool",
    "no_pool",
    "seed_fund",
    "total_yes_shares",
    "total_no_shares",
    "total_net_deposits",
    "collected_fees",
    "trade_count",
)

# Fields that never change once a market reaches a terminal status.
_FROZEN_FIELDS = (
    "yes_pool",
    "no_pool",
    "total_yes_shares",
    "total_no_shares",
    "total_net_deposits",
    "collected_fees",
    "trade_count",
    "status",
    "outcome",
)


def _fail(msg: str) -> None:
    logger.error(msg)
    raise InvariantViolationError(msg)


def verify_market_fields(market: Market) -> None:
    """Pools strictly positive, every amount in range, outcome matches status."""
    if market.yes_pool <= 0 or market.no_pool <= 0:
        _fail(
            f"market {market.id}: pools must stay positive "
            f"(yes_pool={market.yes_pool}, no_pool={market.no_pool})"
        )
    for name in _AMOUNT_FIELDS:
        value = getattr(market, name)
        if not (0 <= value <= MAX_AMOUNT):
            _fail(f"market {market.id}: {name}={value} out of range")
    if (market.status is MarketStatus.RESOLVED) != (market.outcome is not Outcome.UNSET):
        _fail(
            f"market {market.id}: outcome {market.outcome.value} inconsistent "
            f"with status {market.status.value}"
        )
    if market.status is MarketStatus.CANCELLED and market.has_trades:
        _fail(f"market {market.id}: cancelled market has trades")


def verify_transition(previous: Market | None, market: Market) -> None:
    """Monotone status, non-decreasing totals, terminal records frozen."""
    if previous is None:
        if market.status is not MarketStatus.ACTIVE:
            _fail(f"market {market.id}: must be created ACTIVE, got {market.status.value}")
        return

    if previous.status is not market.status and (
        market.status not in ALLOWED_TRANSITIONS[previous.status]
    ):
        _fail(
            f"market {market.id}: illegal transition "
            f"{previous.status.value} -> {market.status.value}"
        )

    if previous.status in TERMINAL_STATUSES:
        for name in _FROZEN_FIELDS:
            if getattr(previous, name) != getattr(market, name):
                _fail(f"market {market.id}: {name} is frozen after {previous.status.value}")
        if previous.seed_claimed and not market.seed_claimed:
            _fail(f"market {market.id}: seed_claimed cannot be reset")
        return

    if market.total_yes_shares < previous.total_yes_shares:
        _fail(f"market {market.id}: total_yes_shares decreased")
    if market.total_no_shares < previous.total_no_shares:
        _fail(f"market {market.id}: total_no_shares decreased")
    if market.trade_count < previous.trade_count:
        _fail(f"market {market.id}: trade_count decreased")


def verify_position(market: Market, previous: Position | None, position: Position) -> None:
    if position.market_id != market.id:
        _fail(f"position of {position.user_id} belongs to market {position.market_id}, not {market.id}")
    for name in ("yes_shares", "no_shares", "yes_cost", "no_cost"):
        value = getattr(position, name)
        if not (0 <= value <= MAX_AMOUNT):
            _fail(f"position ({market.id}, {position.user_id}): {name}={value} out of range")
    if previous is None:
        return
    if previous.claimed and not position.claimed:
        _fail(f"position ({market.id}, {position.user_id}): claimed flag cannot be reset")
    if market.status in TERMINAL_STATUSES:
        for name in ("yes_shares", "no_shares", "yes_cost", "no_cost"):
            if getattr(previous, name) != getattr(position, name):
                _fail(
                    f"position ({market.id}, {position.user_id}): {name} is frozen "
                    f"after {market.status.value}"
                )
    elif position.yes_shares < previous.yes_shares or position.no_shares < previous.no_shares:
        _fail(f"position ({market.id}, {position.user_id}): shares decreased")


def verify_share_totals(market: Market, positions: Iterable[Position]) -> None:
    """Sum of position shares equals the market totals, per side."""
    yes_sum = 0
    no_sum = 0
    for p in positions:
        yes_sum += p.yes_shares
        no_sum += p.no_shares
    if yes_sum != market.total_yes_shares:
        _fail(
            f"market {market.id}: sum of yes_shares={yes_sum} "
            f"!= total_yes_shares={market.total_yes_shares}"
        )
    if no_sum != market.total_no_shares:
        _fail(
            f"market {market.id}: sum of no_shares={no_sum} "
            f"!= total_no_shares={market.total_no_shares}"
        )
