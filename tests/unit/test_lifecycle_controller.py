"""Unit tests for LifecycleController — the engine's write path."""
from collections.abc import Callable
from unittest.mock import AsyncMock, patch

import pytest

from src.main import Engine
from src.pm_common.enums import ErrorKind, MarketStatus, Outcome
from src.pm_common.errors import (
    ArithmeticOverflowError,
    EngineError,
    InvalidAmountError,
    InvalidStateError,
    InvariantViolationError,
    MarketHasTradesError,
    MarketNotActiveError,
    MarketNotFoundError,
    UnauthorizedError,
)
from src.pm_common.fixed_point import MAX_AMOUNT
from src.pm_lifecycle.domain.events import (
    BetPlaced,
    FeesWithdrawn,
    MarketCancelled,
    MarketClosed,
    MarketCreated,
    MarketResolved,
)
from src.pm_market.domain.models import Market

UNIT = 10**18
ADMIN = "admin"

Advance = Callable[[int], None]


async def _market(engine: Engine, market_id: int) -> Market:
    market = await engine.store.get_market(market_id)
    assert market is not None
    return market


async def _create(engine: Engine, duration: int = 3600, seed: int = 10 * UNIT) -> int:
    return await engine.controller.create_market("carol", "Will it rain?", duration, seed)


class TestCreateMarket:
    async def test_creates_active_market(self, engine: Engine) -> None:
        market_id = await engine.controller.create_market(
            "carol", "Will it rain?", 3600, 10 * UNIT, description="Tomorrow, in Lisbon"
        )
        market = await _market(engine, market_id)
        assert market_id == 1
        assert market.status is MarketStatus.ACTIVE
        assert market.outcome is Outcome.UNSET
        assert (market.yes_pool, market.no_pool) == (5 * UNIT, 5 * UNIT)
        assert market.seed_fund == 10 * UNIT
        assert market.description == "Tomorrow, in Lisbon"
        assert (market.close_time - market.created_at).total_seconds() == 3600

    async def test_ids_increase(self, engine: Engine) -> None:
        assert [await _create(engine) for _ in range(3)] == [1, 2, 3]
        assert await engine.store.market_count() == 3

    async def test_skewed_opening_price(self, engine: Engine) -> None:
        market_id = await engine.controller.create_market("carol", "Q?", 60, 10 * UNIT, 7000)
        market = await _market(engine, market_id)
        assert (market.yes_pool, market.no_pool) == (3 * UNIT, 7 * UNIT)

    async def test_publishes_created_event(self, engine: Engine) -> None:
        market_id = await _create(engine)
        [record] = engine.events.events(market_id)
        assert isinstance(record.event, MarketCreated)
        assert record.event.seed_fund == 10 * UNIT
        assert record.event.creator == "carol"

    @pytest.mark.parametrize(
        ("duration", "seed", "yes_bps"),
        [
            (0, 10 * UNIT, 5000),
            (-5, 10 * UNIT, 5000),
            (3600, 0, 5000),
            (3600, 10 * UNIT, 0),
            (3600, 10 * UNIT, 10_000),
        ],
    )
    async def test_invalid_arguments(
        self, engine: Engine, duration: int, seed: int, yes_bps: int
    ) -> None:
        with pytest.raises(InvalidAmountError):
            await engine.controller.create_market("carol", "Q?", duration, seed, yes_bps)
        assert await engine.store.market_count() == 0
        assert len(engine.events) == 0

    async def test_duration_past_datetime_max(self, engine: Engine) -> None:
        with pytest.raises(ArithmeticOverflowError):
            await engine.controller.create_market("carol", "Q?", 10**15, 10 * UNIT)
        assert await engine.store.market_count() == 0

    async def test_fee_snapshot_taken_at_creation(self, engine: Engine) -> None:
        market = await _market(engine, await _create(engine))
        assert market.fee_bps == engine.controller.fee_bps


class TestPlaceBet:
    async def test_first_bet_moves_pools(self, engine: Engine) -> None:
        market_id = await _create(engine)
        receipt = await engine.controller.place_bet("alice", market_id, True, 5 * UNIT)

        assert receipt.shares == 2_500_000_000_000_000_000
        assert (receipt.yes_pool, receipt.no_pool) == (10 * UNIT, 2_500_000_000_000_000_000)
        market = await _market(engine, market_id)
        assert market.total_yes_shares == receipt.shares
        assert market.total_net_deposits == 5 * UNIT
        assert market.trade_count == 1
        position = await engine.ledger.get_position(market_id, "alice")
        assert position.yes_shares == receipt.shares
        assert position.yes_cost == 5 * UNIT

    async def test_publishes_bet_event(self, engine: Engine) -> None:
        market_id = await _create(engine)
        receipt = await engine.controller.place_bet("alice", market_id, False, UNIT)
        last = engine.events.events(market_id)[-1].event
        assert last == BetPlaced(
            market_id=market_id, user_id="alice", is_yes=False, amount=UNIT, shares=receipt.shares
        )

    @pytest.mark.parametrize("amount", [0, -1])
    async def test_non_positive_amount(self, engine: Engine, amount: int) -> None:
        market_id = await _create(engine)
        with pytest.raises(InvalidAmountError):
            await engine.controller.place_bet("alice", market_id, True, amount)

    async def test_unknown_market(self, engine: Engine) -> None:
        with pytest.raises(MarketNotFoundError):
            await engine.controller.place_bet("alice", 99, True, UNIT)

    @pytest.mark.parametrize("side", ["no", 1, None])
    async def test_side_must_be_bool(self, engine: Engine, side: object) -> None:
        market_id = await _create(engine)
        before = await _market(engine, market_id)
        with pytest.raises(InvalidAmountError):
            await engine.controller.place_bet("alice", market_id, side, UNIT)  # type: ignore[arg-type]
        assert await _market(engine, market_id) == before
        assert await engine.ledger.find(market_id, "alice") is None
        assert len(engine.events) == 1

    async def test_rejected_at_close_time(self, engine: Engine, advance: Advance) -> None:
        market_id = await _create(engine, duration=60)
        before = await _market(engine, market_id)
        advance(60)
        with pytest.raises(InvalidStateError):
            await engine.controller.place_bet("alice", market_id, True, UNIT)
        assert await _market(engine, market_id) == before

    async def test_accepted_just_before_close(self, engine: Engine, advance: Advance) -> None:
        market_id = await _create(engine, duration=60)
        advance(59)
        await engine.controller.place_bet("alice", market_id, True, UNIT)

    async def test_rejected_on_cancelled_market(self, engine: Engine) -> None:
        market_id = await _create(engine)
        await engine.controller.cancel_market(ADMIN, market_id)
        with pytest.raises(MarketNotActiveError) as exc_info:
            await engine.controller.place_bet("alice", market_id, True, UNIT)
        assert exc_info.value.kind is ErrorKind.INVALID_STATE

    async def test_dust_bet_rejected_without_side_effects(self, engine: Engine) -> None:
        market_id = await _create(engine)
        with pytest.raises(InvalidAmountError):
            await engine.controller.place_bet("alice", market_id, True, 1)
        market = await _market(engine, market_id)
        assert market.trade_count == 0
        assert await engine.ledger.find(market_id, "alice") is None

    async def test_failed_save_leaves_no_trace(self, engine: Engine) -> None:
        market_id = await _create(engine)
        before = await _market(engine, market_id)
        events_before = len(engine.events)
        with patch.object(
            engine.store, "save", AsyncMock(side_effect=InvariantViolationError("boom"))
        ):
            with pytest.raises(InvariantViolationError):
                await engine.controller.place_bet("alice", market_id, True, UNIT)
        assert await _market(engine, market_id) == before
        assert await engine.ledger.find(market_id, "alice") is None
        assert engine.fees.balance == 0
        assert len(engine.events) == events_before


class TestPlaceBetWithFee:
    @pytest.fixture
    def fee_bps(self) -> int:
        return 200

    async def test_fee_goes_to_accumulator(self, engine: Engine) -> None:
        market_id = await _create(engine)
        receipt = await engine.controller.place_bet("alice", market_id, True, 5 * UNIT)

        assert receipt.fee == 100_000_000_000_000_000
        assert receipt.net_amount == 4_900_000_000_000_000_000
        market = await _market(engine, market_id)
        assert market.collected_fees == receipt.fee
        assert market.total_net_deposits == receipt.net_amount
        assert market.yes_pool == 5 * UNIT + receipt.net_amount
        assert engine.fees.balance == receipt.fee
        position = await engine.ledger.get_position(market_id, "alice")
        assert position.yes_cost == 5 * UNIT

    async def test_fee_overflow_aborts_bet(self, engine: Engine) -> None:
        market_id = await _create(engine)
        engine.fees.credit_fee(MAX_AMOUNT, market_id=0)
        with pytest.raises(ArithmeticOverflowError):
            await engine.controller.place_bet("alice", market_id, True, UNIT)
        market = await _market(engine, market_id)
        assert market.trade_count == 0
        assert engine.fees.balance == MAX_AMOUNT


class TestClose:
    async def test_not_expired(self, engine: Engine) -> None:
        market_id = await _create(engine)
        assert await engine.controller.close_if_expired(market_id) is False
        assert (await _market(engine, market_id)).status is MarketStatus.ACTIVE

    async def test_expired_closes_once(self, engine: Engine, advance: Advance) -> None:
        market_id = await _create(engine, duration=60)
        advance(60)
        assert await engine.controller.close_if_expired(market_id) is True
        assert await engine.controller.close_if_expired(market_id) is False
        assert (await _market(engine, market_id)).status is MarketStatus.CLOSED
        closed = [r for r in engine.events.events(market_id) if isinstance(r.event, MarketClosed)]
        assert len(closed) == 1

    async def test_close_expired_markets_sweeps(self, engine: Engine, advance: Advance) -> None:
        short = await _create(engine, duration=60)
        long = await _create(engine, duration=7200)
        advance(120)
        assert await engine.controller.close_expired_markets() == [short]
        assert (await _market(engine, long)).status is MarketStatus.ACTIVE

    async def test_unknown_market(self, engine: Engine) -> None:
        with pytest.raises(MarketNotFoundError):
            await engine.controller.close_if_expired(7)


class TestResolve:
    async def test_non_admin_rejected(self, engine: Engine, advance: Advance) -> None:
        market_id = await _create(engine, duration=60)
        advance(60)
        with pytest.raises(UnauthorizedError):
            await engine.controller.resolve_market("mallory", market_id, Outcome.YES)
        assert (await _market(engine, market_id)).status is MarketStatus.ACTIVE

    async def test_authorization_checked_before_existence(self, engine: Engine) -> None:
        with pytest.raises(UnauthorizedError):
            await engine.controller.resolve_market("mallory", 99, Outcome.YES)

    async def test_before_close_time(self, engine: Engine) -> None:
        market_id = await _create(engine)
        with pytest.raises(InvalidStateError):
            await engine.controller.resolve_market(ADMIN, market_id, Outcome.YES)

    async def test_resolves_active_market_after_close_time(
        self, engine: Engine, advance: Advance
    ) -> None:
        market_id = await _create(engine, duration=60)
        advance(60)
        result = await engine.controller.resolve_market(
            ADMIN, market_id, "NO", resolution_ref="https://example.org/result"
        )
        market = await _market(engine, market_id)
        assert result is Outcome.NO
        assert market.status is MarketStatus.RESOLVED
        assert market.outcome is Outcome.NO
        assert market.resolution_ref == "https://example.org/result"
        assert market.resolved_at is not None

    async def test_resolves_closed_market(self, engine: Engine, advance: Advance) -> None:
        market_id = await _create(engine, duration=60)
        advance(60)
        await engine.controller.close_if_expired(market_id)
        assert await engine.controller.resolve_market(ADMIN, market_id, True) is Outcome.YES
        last = engine.events.events(market_id)[-1].event
        assert last == MarketResolved(market_id=market_id, outcome=Outcome.YES)

    async def test_cannot_resolve_twice(self, engine: Engine, advance: Advance) -> None:
        market_id = await _create(engine, duration=60)
        advance(60)
        await engine.controller.resolve_market(ADMIN, market_id, Outcome.YES)
        with pytest.raises(InvalidStateError):
            await engine.controller.resolve_market(ADMIN, market_id, Outcome.NO)
        assert (await _market(engine, market_id)).outcome is Outcome.YES

    @pytest.mark.parametrize("outcome", [Outcome.UNSET, "MAYBE"])
    async def test_invalid_outcome(self, engine: Engine, advance: Advance, outcome: str) -> None:
        market_id = await _create(engine, duration=60)
        advance(60)
        with pytest.raises(InvalidAmountError):
            await engine.controller.resolve_market(ADMIN, market_id, outcome)

    async def test_no_winners_pool_goes_to_fees(self, engine: Engine, advance: Advance) -> None:
        market_id = await _create(engine, duration=60)
        await engine.controller.place_bet("alice", market_id, True, UNIT)
        advance(60)
        await engine.controller.resolve_market(ADMIN, market_id, Outcome.NO)
        assert engine.fees.snapshot().residual_collected == 11 * UNIT


class TestCancel:
    async def test_cancel_untraded(self, engine: Engine) -> None:
        market_id = await _create(engine)
        await engine.controller.cancel_market(ADMIN, market_id)
        assert (await _market(engine, market_id)).status is MarketStatus.CANCELLED
        assert engine.events.events(market_id)[-1].event == MarketCancelled(market_id=market_id)

    async def test_non_admin_rejected(self, engine: Engine) -> None:
        market_id = await _create(engine)
        with pytest.raises(UnauthorizedError):
            await engine.controller.cancel_market("carol", market_id)

    async def test_traded_market_rejected(self, engine: Engine) -> None:
        market_id = await _create(engine)
        await engine.controller.place_bet("alice", market_id, True, UNIT)
        with pytest.raises(MarketHasTradesError) as exc_info:
            await engine.controller.cancel_market(ADMIN, market_id)
        assert exc_info.value.kind is ErrorKind.MARKET_HAS_TRADES
        assert (await _market(engine, market_id)).status is MarketStatus.ACTIVE

    async def test_resolved_market_rejected(self, engine: Engine, advance: Advance) -> None:
        market_id = await _create(engine, duration=60)
        advance(60)
        await engine.controller.resolve_market(ADMIN, market_id, Outcome.YES)
        with pytest.raises(EngineError) as exc_info:
            await engine.controller.cancel_market(ADMIN, market_id)
        assert exc_info.value.kind is ErrorKind.INVALID_STATE


class TestWithdrawFees:
    @pytest.fixture
    def fee_bps(self) -> int:
        return 200

    async def test_admin_withdraws(self, engine: Engine) -> None:
        market_id = await _create(engine)
        await engine.controller.place_bet("alice", market_id, True, 5 * UNIT)
        withdrawn = await engine.controller.withdraw_fees(ADMIN)
        assert withdrawn == 100_000_000_000_000_000
        assert engine.fees.balance == 0
        assert engine.events.events()[-1].event == FeesWithdrawn(amount=withdrawn, remaining=0)

    async def test_non_admin_rejected(self, engine: Engine) -> None:
        market_id = await _create(engine)
        await engine.controller.place_bet("alice", market_id, True, 5 * UNIT)
        with pytest.raises(UnauthorizedError):
            await engine.controller.withdraw_fees("alice")
        assert engine.fees.balance > 0

    async def test_empty_balance(self, engine: Engine) -> None:
        with pytest.raises(InvalidAmountError):
            await engine.controller.withdraw_fees(ADMIN)


class TestControllerConfig:
    def test_properties(self, engine: Engine) -> None:
        assert engine.controller.admin_id == ADMIN
        assert engine.controller.fee_bps == 0
