"""InMemoryMarketStore — MarketStoreProtocol backed by dicts.

Records are kept as private copies and handed out as copies (copy-on-read),
so readers never hold a reference a writer is about to change. `save`
validates the whole staged write first and then swaps the new records in with
no await in between; a reader sees either all of an operation or none of it.
"""

import logging
from collections.abc import Sequence

from src.pm_common.enums import MarketStatus
from src.pm_common.errors import InvariantViolationError, MarketNotFoundError
from src.pm_market.domain.invariants import (
    verify_market_fields,
    verify_position,
    verify_share_totals,
    verify_transition,
)
from src.pm_market.domain.models import Market, Position

logger = logging.getLogger(__name__)


class InMemoryMarketStore:
    def __init__(self) -> None:
        self._markets: dict[int, Market] = {}
        self._positions: dict[tuple[int, str], Position] = {}
        self._users_by_market: dict[int, set[str]] = {}
        self._next_id = 1

    async def allocate_market_id(self) -> int:
        market_id = self._next_id
        self._next_id += 1
        return market_id

    async def get_market(self, market_id: int) -> Market | None:
        market = self._markets.get(market_id)
        return market.copy() if market is not None else None

    async def list_markets(self, status: MarketStatus | None = None) -> list[Market]:
        return [
            m.copy()
            for _, m in sorted(self._markets.items())
            if status is None or m.status is status
        ]

    async def market_count(self) -> int:
        return len(self._markets)

    async def get_position(self, market_id: int, user_id: str) -> Position | None:
        position = self._positions.get((market_id, user_id))
        return position.copy() if position is not None else None

    async def list_positions(self, market_id: int) -> list[Position]:
        users = sorted(self._users_by_market.get(market_id, ()))
        return [self._positions[(market_id, u)].copy() for u in users]

    async def save(self, market: Market, positions: Sequence[Position] = ()) -> None:
        previous = self._markets.get(market.id)
        if previous is None and market.id >= self._next_id:
            raise MarketNotFoundError(market.id)

        verify_market_fields(market)
        verify_transition(previous, market)

        staged: dict[str, Position] = {}
        for p in positions:
            if p.user_id in staged:
                raise InvariantViolationError(
                    f"position ({market.id}, {p.user_id}) staged twice in one write"
                )
            verify_position(market, self._positions.get((market.id, p.user_id)), p)
            staged[p.user_id] = p

        existing_users = self._users_by_market.get(market.id, set())
        merged = [
            staged[u] if u in staged else self._positions[(market.id, u)]
            for u in existing_users | staged.keys()
        ]
        verify_share_totals(market, merged)

        # Commit: no awaits below this line.
        self._markets[market.id] = market.copy()
        users = self._users_by_market.setdefault(market.id, set())
        for user_id, p in staged.items():
            self._positions[(market.id, user_id)] = p.copy()
            users.add(user_id)

        logger.debug(
            "Saved market=%s status=%s positions=%d",
            market.id,
            market.status.value,
            len(staged),
        )
