"""MarketQueryService — thin read-only composition layer.

All methods are read-only and take no lock: the store hands out detached
copies of committed records, so a read never observes a half-applied write
and never blocks a writer.
"""

from src.pm_clearing.domain.payout import PayoutEngine, potential_payout
from src.pm_common.datetime_utils import Clock, utc_now
from src.pm_common.enums import MarketStatus
from src.pm_common.errors import InvalidStateError, MarketNotActiveError, MarketNotFoundError
from src.pm_market.application.schemas import (
    BetQuote,
    MarketListResponse,
    MarketSnapshot,
    PositionSnapshot,
    PriceSnapshot,
)
from src.pm_market.domain.models import Market
from src.pm_market.domain.repository import MarketStoreProtocol
from src.pm_position.domain.ledger import PositionLedger
from src.pm_pricing.domain.cpmm import estimate_trade, price


class MarketQueryService:
    def __init__(
        self,
        store: MarketStoreProtocol,
        ledger: PositionLedger,
        payouts: PayoutEngine,
        decimals: int = 18,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._payouts = payouts
        self._decimals = decimals
        self._clock = clock

    async def _load(self, market_id: int) -> Market:
        market = await self._store.get_market(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return market

    async def get_market(self, market_id: int) -> MarketSnapshot:
        market = await self._load(market_id)
        return MarketSnapshot.from_domain(
            market, price(market.yes_pool, market.no_pool), self._decimals
        )

    async def list_markets(self, status: MarketStatus | None = None) -> MarketListResponse:
        markets = await self._store.list_markets(status)
        items = [
            MarketSnapshot.from_domain(m, price(m.yes_pool, m.no_pool), self._decimals)
            for m in markets
        ]
        return MarketListResponse(items=items, total=len(items))

    async def market_count(self) -> int:
        return await self._store.market_count()

    async def get_prices(self, market_id: int) -> tuple[int, int]:
        """(yes_price_numerator, yes_price_denominator) — exact, never rounded."""
        market = await self._load(market_id)
        p = price(market.yes_pool, market.no_pool)
        return p.yes_numerator, p.denominator

    async def get_price_snapshot(self, market_id: int) -> PriceSnapshot:
        market = await self._load(market_id)
        return PriceSnapshot.from_price(price(market.yes_pool, market.no_pool))

    async def get_position(self, market_id: int, user_id: str) -> PositionSnapshot:
        await self._load(market_id)
        position = await self._ledger.get_position(market_id, user_id)
        return PositionSnapshot.from_domain(position)

    async def has_claimed(self, market_id: int, user_id: str) -> bool:
        return await self._payouts.has_claimed(market_id, user_id)

    async def quote_bet(self, market_id: int, is_yes: bool, amount: int) -> BetQuote:
        """What place_bet would return right now, plus the payout if that side wins."""
        market = await self._load(market_id)
        if market.status is not MarketStatus.ACTIVE:
            raise MarketNotActiveError(market_id, market.status.value)
        if self._clock() >= market.close_time:
            raise InvalidStateError(f"Market {market_id} stopped taking bets at close_time")
        estimate = estimate_trade(market.yes_pool, market.no_pool, amount, is_yes, market.fee_bps)
        return BetQuote.from_estimate(
            market_id, is_yes, estimate, potential_payout(market, estimate, is_yes)
        )
