"""LifecycleController — market state machine and the engine's write path.

    ACTIVE ──close_if_expired──> CLOSED ──resolve──> RESOLVED
      │  └─────────────resolve (after close_time)──────^
      └──cancel (untraded only)──> CANCELLED

Every write runs under its market's lock, validates state, time and
authorization, stages new records, and commits them with a single store
save. Nothing is mutated before the save and nothing that can fail runs
after it, so a rejected operation leaves no trace. The event for a write is
published while the lock is still held, keeping per-market event order equal
to commit order.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from src.pm_clearing.domain.fee import FeeAccumulator
from src.pm_clearing.domain.payout import PayoutEngine
from src.pm_common.datetime_utils import Clock, add_seconds, utc_now
from src.pm_common.enums import MarketStatus, Outcome
from src.pm_common.errors import (
    EngineError,
    InvalidAmountError,
    InvalidStateError,
    MarketHasTradesError,
    MarketNotActiveError,
    MarketNotFoundError,
    UnauthorizedError,
)
from src.pm_common.fixed_point import checked_add, validate_amount, validate_fee_bps
from src.pm_common.locks import MarketLocks
from src.pm_lifecycle.domain.events import (
    BetPlaced,
    FeesWithdrawn,
    MarketCancelled,
    MarketClosed,
    MarketCreated,
    MarketResolved,
)
from src.pm_lifecycle.infrastructure.event_log import EventLog
from src.pm_market.domain.models import Market
from src.pm_market.domain.repository import MarketStoreProtocol
from src.pm_position.domain.ledger import PositionLedger
from src.pm_pricing.domain.cpmm import estimate_trade, split_seed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BetReceipt:
    market_id: int
    user_id: str
    is_yes: bool
    amount: int
    fee: int
    net_amount: int
    shares: int
    yes_pool: int
    no_pool: int


@contextmanager
def _rejections(action: str, **context: object) -> Iterator[None]:
    try:
        yield
    except EngineError as exc:
        logger.warning(
            "%s rejected: kind=%s code=%d reason=%s %s",
            action,
            exc.kind.value,
            exc.code,
            exc.message,
            context,
        )
        raise


def _parse_outcome(outcome: Outcome | str | bool) -> Outcome:
    if isinstance(outcome, bool):
        return Outcome.YES if outcome else Outcome.NO
    try:
        parsed = Outcome(outcome)
    except ValueError as exc:
        raise InvalidAmountError(f"Unknown outcome: {outcome!r}") from exc
    if parsed is Outcome.UNSET:
        raise InvalidAmountError("A market must resolve to YES or NO")
    return parsed


class LifecycleController:
    def __init__(
        self,
        store: MarketStoreProtocol,
        ledger: PositionLedger,
        fees: FeeAccumulator,
        payouts: PayoutEngine,
        events: EventLog,
        locks: MarketLocks,
        *,
        admin_id: str,
        fee_bps: int,
        clock: Clock = utc_now,
        min_duration_seconds: int = 1,
    ) -> None:
        validate_fee_bps(fee_bps)
        self._store = store
        self._ledger = ledger
        self._fees = fees
        self._payouts = payouts
        self._events = events
        self._locks = locks
        self._admin_id = admin_id
        self._fee_bps = fee_bps
        self._clock = clock
        self._min_duration = min_duration_seconds

    @property
    def admin_id(self) -> str:
        return self._admin_id

    @property
    def fee_bps(self) -> int:
        return self._fee_bps

    def _require_admin(self, caller: str, action: str) -> None:
        if caller != self._admin_id:
            raise UnauthorizedError(caller, action)

    # Also run before locking; unknown ids never get a lock entry.
    async def _load(self, market_id: int) -> Market:
        market = await self._store.get_market(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return market

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_market(
        self,
        creator: str,
        question: str,
        duration: int,
        seed_amount: int,
        yes_bps: int = 5000,
        description: str = "",
    ) -> int:
        """Open a market seeded so the opening P(yes) is yes_bps / 10000. Returns its id."""
        with _rejections("create_market", creator=creator):
            if isinstance(duration, bool) or not isinstance(duration, int):
                raise InvalidAmountError("duration must be an int number of seconds")
            if duration <= 0 or duration < self._min_duration:
                raise InvalidAmountError(
                    f"duration must be at least {self._min_duration}s, got {duration}"
                )
            yes_pool, no_pool = split_seed(seed_amount, yes_bps)
            now = self._clock()
            close_time = add_seconds(now, duration)

            market_id = await self._store.allocate_market_id()
            market = Market(
                id=market_id,
                question=question,
                description=description,
                creator=creator,
                created_at=now,
                close_time=close_time,
                yes_pool=yes_pool,
                no_pool=no_pool,
                seed_fund=seed_amount,
                fee_bps=self._fee_bps,
            )
            async with self._locks.hold(market_id):
                await self._store.save(market)
                self._events.publish(
                    MarketCreated(
                        market_id=market_id,
                        question=question,
                        close_time=close_time,
                        creator=creator,
                        seed_fund=seed_amount,
                    )
                )

        logger.info(
            "Market created: id=%s creator=%s seed=%d yes_bps=%d close=%s",
            market_id,
            creator,
            seed_amount,
            yes_bps,
            close_time.isoformat(),
        )
        return market_id

    # ------------------------------------------------------------------
    # Trade
    # ------------------------------------------------------------------

    async def place_bet(
        self, user_id: str, market_id: int, is_yes: bool, amount: int
    ) -> BetReceipt:
        with _rejections("place_bet", market_id=market_id, user_id=user_id):
            if not isinstance(is_yes, bool):
                raise InvalidAmountError(f"is_yes must be a bool, got {type(is_yes).__name__}")
            validate_amount(amount)
            await self._load(market_id)
            async with self._locks.hold(market_id):
                market = await self._load(market_id)
                if market.status is not MarketStatus.ACTIVE:
                    raise MarketNotActiveError(market_id, market.status.value)
                if self._clock() >= market.close_time:
                    raise InvalidStateError(f"Market {market_id} stopped taking bets at close_time")

                estimate = estimate_trade(
                    market.yes_pool, market.no_pool, amount, is_yes, market.fee_bps
                )
                self._fees.ensure_can_credit(estimate.fee)

                staged = market.copy()
                staged.yes_pool = estimate.yes_pool
                staged.no_pool = estimate.no_pool
                staged.collected_fees = checked_add(staged.collected_fees, estimate.fee)
                staged.total_net_deposits = checked_add(
                    staged.total_net_deposits, estimate.net_amount
                )
                staged.trade_count += 1

                committed, _ = await self._ledger.record_mint(
                    staged, user_id, is_yes, estimate.shares, cost=amount
                )
                self._fees.credit_fee(estimate.fee, market_id)
                self._events.publish(
                    BetPlaced(
                        market_id=market_id,
                        user_id=user_id,
                        is_yes=is_yes,
                        amount=amount,
                        shares=estimate.shares,
                    )
                )

        logger.info(
            "Bet placed: market=%s user=%s side=%s amount=%d fee=%d shares=%d",
            market_id,
            user_id,
            "YES" if is_yes else "NO",
            amount,
            estimate.fee,
            estimate.shares,
        )
        return BetReceipt(
            market_id=market_id,
            user_id=user_id,
            is_yes=is_yes,
            amount=amount,
            fee=estimate.fee,
            net_amount=estimate.net_amount,
            shares=estimate.shares,
            yes_pool=committed.yes_pool,
            no_pool=committed.no_pool,
        )

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    async def close_if_expired(self, market_id: int) -> bool:
        """ACTIVE -> CLOSED once close_time has passed. Returns whether it transitioned."""
        with _rejections("close_if_expired", market_id=market_id):
            await self._load(market_id)
            async with self._locks.hold(market_id):
                market = await self._load(market_id)
                if market.status is not MarketStatus.ACTIVE or self._clock() < market.close_time:
                    return False
                staged = market.copy()
                staged.status = MarketStatus.CLOSED
                await self._store.save(staged)
                self._events.publish(MarketClosed(market_id=market_id))

        logger.info("Market closed: id=%s", market_id)
        return True

    async def close_expired_markets(self) -> list[int]:
        closed: list[int] = []
        now = self._clock()
        for market in await self._store.list_markets(MarketStatus.ACTIVE):
            if now >= market.close_time and await self.close_if_expired(market.id):
                closed.append(market.id)
        return closed

    # ------------------------------------------------------------------
    # Resolve / cancel (admin)
    # ------------------------------------------------------------------

    async def resolve_market(
        self,
        caller: str,
        market_id: int,
        outcome: Outcome | str | bool,
        resolution_ref: str | None = None,
    ) -> Outcome:
        with _rejections("resolve_market", market_id=market_id, caller=caller):
            self._require_admin(caller, "resolve markets")
            result = _parse_outcome(outcome)
            await self._load(market_id)
            async with self._locks.hold(market_id):
                market = await self._load(market_id)
                if market.status not in (MarketStatus.ACTIVE, MarketStatus.CLOSED):
                    raise InvalidStateError(
                        f"Market {market_id} cannot be resolved from {market.status.value}"
                    )
                now = self._clock()
                if now < market.close_time:
                    raise InvalidStateError(f"Market {market_id} cannot be resolved before close_time")

                staged = market.copy()
                staged.status = MarketStatus.RESOLVED
                staged.outcome = result
                staged.resolution_ref = resolution_ref
                staged.resolved_at = now

                residual = await self._payouts.residual_for(staged)
                self._fees.ensure_can_credit(residual)
                await self._store.save(staged)
                self._fees.credit_residual(residual, market_id)
                self._events.publish(
                    MarketResolved(
                        market_id=market_id, outcome=result, resolution_ref=resolution_ref
                    )
                )

        logger.info(
            "Market resolved: id=%s outcome=%s residual=%d", market_id, result.value, residual
        )
        return result

    async def cancel_market(self, caller: str, market_id: int) -> None:
        with _rejections("cancel_market", market_id=market_id, caller=caller):
            self._require_admin(caller, "cancel markets")
            await self._load(market_id)
            async with self._locks.hold(market_id):
                market = await self._load(market_id)
                if market.status is not MarketStatus.ACTIVE:
                    raise MarketNotActiveError(market_id, market.status.value)
                if market.has_trades:
                    raise MarketHasTradesError(market_id)
                staged = market.copy()
                staged.status = MarketStatus.CANCELLED
                await self._store.save(staged)
                self._events.publish(MarketCancelled(market_id=market_id))

        logger.info("Market cancelled: id=%s", market_id)

    # ------------------------------------------------------------------
    # Claim / fees
    # ------------------------------------------------------------------

    async def claim(self, user_id: str, market_id: int) -> int:
        with _rejections("claim", market_id=market_id, user_id=user_id):
            return await self._payouts.claim(market_id, user_id)

    async def withdraw_fees(self, caller: str, amount: int | None = None) -> int:
        with _rejections("withdraw_fees", caller=caller):
            self._require_admin(caller, "withdraw fees")
            withdrawn = await self._fees.withdraw(amount)
            remaining = self._fees.balance
            self._events.publish(FeesWithdrawn(amount=withdrawn, remaining=remaining))

        logger.info("Fees withdrawn: amount=%d remaining=%d", withdrawn, remaining)
        return withdrawn
