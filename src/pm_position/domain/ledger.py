"""PositionLedger — per-(market, user) share and cost bookkeeping.

Every mint updates exactly one position and the matching market total in the
same store write, so the per-side sum of position shares always equals the
market's share total.
"""

import logging

from src.pm_common.errors import InvalidAmountError, PositionNotFoundError
from src.pm_common.fixed_point import checked_add
from src.pm_market.domain.models import Market, Position
from src.pm_market.domain.repository import MarketStoreProtocol

logger = logging.getLogger(__name__)


class PositionLedger:
    def __init__(self, store: MarketStoreProtocol) -> None:
        self._store = store

    async def find(self, market_id: int, user_id: str) -> Position | None:
        return await self._store.get_position(market_id, user_id)

    async def get_position(self, market_id: int, user_id: str) -> Position:
        position = await self._store.get_position(market_id, user_id)
        if position is None:
            raise PositionNotFoundError(market_id, user_id)
        return position

    async def list_positions(self, market_id: int) -> list[Position]:
        return await self._store.list_positions(market_id)

    async def record_mint(
        self,
        market: Market,
        user_id: str,
        is_yes: bool,
        shares: int,
        cost: int,
    ) -> tuple[Market, Position]:
        """Credit `shares` of one side to user and market together, then save both.

        `market` is the caller's staged copy (pools already moved); it is
        not mutated. Returns the committed market and position.
        """
        if shares <= 0:
            raise InvalidAmountError(f"minted shares must be positive, got {shares}")

        existing = await self._store.get_position(market.id, user_id)
        position = existing or Position(market_id=market.id, user_id=user_id)
        staged_market = market.copy()

        if is_yes:
            position.yes_shares = checked_add(position.yes_shares, shares)
            position.yes_cost = checked_add(position.yes_cost, cost)
            staged_market.total_yes_shares = checked_add(staged_market.total_yes_shares, shares)
        else:
            position.no_shares = checked_add(position.no_shares, shares)
            position.no_cost = checked_add(position.no_cost, cost)
            staged_market.total_no_shares = checked_add(staged_market.total_no_shares, shares)

        await self._store.save(staged_market, [position])
        logger.debug(
            "Minted %d %s shares: market=%s user=%s new=%s",
            shares,
            "YES" if is_yes else "NO",
            market.id,
            user_id,
            existing is None,
        )
        return staged_market, position

    async def mark_claimed(self, market: Market, position: Position) -> Position:
        claimed = position.copy()
        claimed.claimed = True
        await self._store.save(market, [claimed])
        return claimed
