"""PayoutEngine — claim and refund amounts after resolution or cancellation.

Resolved market:
  payout = floor(winning_shares * distributable / winning_total)
  where distributable = seed_fund + sum of post-fee deposits. Losing shares
  pay 0. The floor residual over all positions is credited to the
  FeeAccumulator once, at resolution.

Cancelled market:
  refund = the user's own cumulative cost (yes_cost + no_cost); the creator
  additionally gets the seed fund back, exactly once.

Claim is serialized with the market's other writes and is idempotent: the
second call fails AlreadyClaimedError and changes nothing.
"""

import logging
from collections.abc import Iterable

from src.pm_common.enums import MarketStatus, Outcome
from src.pm_common.errors import (
    AlreadyClaimedError,
    InvalidStateError,
    MarketNotFoundError,
    PositionNotFoundError,
)
from src.pm_common.fixed_point import checked_add, checked_sub, mul_div
from src.pm_common.locks import MarketLocks
from src.pm_lifecycle.domain.events import RewardClaimed
from src.pm_lifecycle.infrastructure.event_log import EventLog
from src.pm_market.domain.models import Market, Position
from src.pm_market.domain.repository import MarketStoreProtocol
from src.pm_position.domain.ledger import PositionLedger
from src.pm_pricing.domain.models import TradeEstimate

logger = logging.getLogger(__name__)


def winning_total(market: Market) -> int:
    if market.outcome is Outcome.YES:
        return market.total_yes_shares
    if market.outcome is Outcome.NO:
        return market.total_no_shares
    return 0


def resolved_payout(market: Market, position: Position) -> int:
    total = winning_total(market)
    shares = position.winning_shares(market.outcome)
    if total == 0 or shares == 0:
        return 0
    return mul_div(shares, market.distributable_pool, total)


def residual_after_payouts(market: Market, positions: Iterable[Position]) -> int:
    """Distributable pool minus the sum of every floor-rounded payout."""
    paid = 0
    for p in positions:
        paid = checked_add(paid, resolved_payout(market, p))
    return checked_sub(market.distributable_pool, paid)


def cancelled_refund(market: Market, position: Position | None, user_id: str) -> int:
    refund = 0
    if position is not None and not position.claimed:
        refund = position.total_cost
    if user_id == market.creator and not market.seed_claimed:
        refund = checked_add(refund, market.seed_fund)
    return refund


def potential_payout(market: Market, estimate: TradeEstimate, is_yes: bool) -> int:
    """Payout the estimated shares would earn if their side won right after the trade."""
    side_total = market.total_yes_shares if is_yes else market.total_no_shares
    pool_after = checked_add(market.distributable_pool, estimate.net_amount)
    return mul_div(estimate.shares, pool_after, checked_add(side_total, estimate.shares))


class PayoutEngine:
    def __init__(
        self,
        store: MarketStoreProtocol,
        ledger: PositionLedger,
        events: EventLog,
        locks: MarketLocks,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._events = events
        self._locks = locks

    async def residual_for(self, market: Market) -> int:
        """Rounding residual of a market staged as RESOLVED, before it is saved."""
        positions = await self._ledger.list_positions(market.id)
        return residual_after_payouts(market, positions)

    async def claim(self, market_id: int, user_id: str) -> int:
        if await self._store.get_market(market_id) is None:
            raise MarketNotFoundError(market_id)
        async with self._locks.hold(market_id):
            market = await self._store.get_market(market_id)
            if market is None:
                raise MarketNotFoundError(market_id)

            if market.status is MarketStatus.RESOLVED:
                amount = await self._claim_resolved(market, user_id)
            elif market.status is MarketStatus.CANCELLED:
                amount = await self._claim_cancelled(market, user_id)
            else:
                raise InvalidStateError(
                    f"Market {market_id} is {market.status.value}; claims open after "
                    f"resolution or cancellation"
                )

            self._events.publish(RewardClaimed(market_id=market_id, user_id=user_id, amount=amount))
        logger.info("Reward claimed: market=%s user=%s amount=%d", market_id, user_id, amount)
        return amount

    async def has_claimed(self, market_id: int, user_id: str) -> bool:
        market = await self._store.get_market(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        position = await self._ledger.find(market_id, user_id)
        if market.status is MarketStatus.CANCELLED and user_id == market.creator:
            return market.seed_claimed and (position is None or position.claimed)
        return position is not None and position.claimed

    async def _claim_resolved(self, market: Market, user_id: str) -> int:
        position = await self._ledger.get_position(market.id, user_id)
        if position.claimed:
            raise AlreadyClaimedError(market.id, user_id)
        amount = resolved_payout(market, position)
        await self._ledger.mark_claimed(market, position)
        return amount

    async def _claim_cancelled(self, market: Market, user_id: str) -> int:
        position = await self._ledger.find(market.id, user_id)
        is_creator = user_id == market.creator
        if position is None and not is_creator:
            raise PositionNotFoundError(market.id, user_id)

        position_pending = position is not None and not position.claimed
        seed_pending = is_creator and not market.seed_claimed
        if not position_pending and not seed_pending:
            raise AlreadyClaimedError(market.id, user_id)

        amount = cancelled_refund(market, position, user_id)
        staged_market = market.copy()
        staged_positions: list[Position] = []
        if seed_pending:
            staged_market.seed_claimed = True
        if position_pending and position is not None:
            claimed = position.copy()
            claimed.claimed = True
            staged_positions.append(claimed)
        await self._store.save(staged_market, staged_positions)
        return amount
