"""Pydantic read models handed to the external display layer.

Amounts stay int in smallest units; `*_display` fields are decimal strings
for rendering only. Probabilities are exact (numerator, denominator) pairs;
the float `*_probability` fields are display approximations.
"""

from datetime import datetime

from pydantic import BaseModel

from src.pm_common.enums import MarketStatus, Outcome
from src.pm_common.fixed_point import format_units
from src.pm_market.domain.models import Market, Position
from src.pm_pricing.domain.models import PoolPrice, TradeEstimate


class PriceSnapshot(BaseModel):
    yes_numerator: int
    no_numerator: int
    denominator: int
    yes_probability: float
    no_probability: float

    @classmethod
    def from_price(cls, price: PoolPrice) -> "PriceSnapshot":
        return cls(
            yes_numerator=price.yes_numerator,
            no_numerator=price.no_numerator,
            denominator=price.denominator,
            yes_probability=float(price.yes),
            no_probability=float(price.no),
        )


class MarketSnapshot(BaseModel):
    id: int
    question: str
    description: str
    creator: str
    created_at: datetime
    close_time: datetime
    status: MarketStatus
    outcome: Outcome
    yes_pool: int
    no_pool: int
    total_yes_shares: int
    total_no_shares: int
    seed_fund: int
    fee_bps: int
    collected_fees: int
    trade_count: int
    distributable_pool: int
    distributable_pool_display: str
    resolution_ref: str | None
    resolved_at: datetime | None
    price: PriceSnapshot

    @classmethod
    def from_domain(cls, m: Market, price: PoolPrice, decimals: int = 18) -> "MarketSnapshot":
        return cls(
            id=m.id,
            question=m.question,
            description=m.description,
            creator=m.creator,
            created_at=m.created_at,
            close_time=m.close_time,
            status=m.status,
            outcome=m.outcome,
            yes_pool=m.yes_pool,
            no_pool=m.no_pool,
            total_yes_shares=m.total_yes_shares,
            total_no_shares=m.total_no_shares,
            seed_fund=m.seed_fund,
            fee_bps=m.fee_bps,
            collected_fees=m.collected_fees,
            trade_count=m.trade_count,
            distributable_pool=m.distributable_pool,
            distributable_pool_display=format_units(m.distributable_pool, decimals),
            resolution_ref=m.resolution_ref,
            resolved_at=m.resolved_at,
            price=PriceSnapshot.from_price(price),
        )


class PositionSnapshot(BaseModel):
    market_id: int
    user_id: str
    yes_shares: int
    no_shares: int
    yes_cost: int
    no_cost: int
    claimed: bool

    @classmethod
    def from_domain(cls, p: Position) -> "PositionSnapshot":
        return cls(
            market_id=p.market_id,
            user_id=p.user_id,
            yes_shares=p.yes_shares,
            no_shares=p.no_shares,
            yes_cost=p.yes_cost,
            no_cost=p.no_cost,
            claimed=p.claimed,
        )


class BetQuote(BaseModel):
    market_id: int
    is_yes: bool
    amount: int
    fee: int
    net_amount: int
    shares: int
    potential_payout: int
    price_after: PriceSnapshot

    @classmethod
    def from_estimate(
        cls, market_id: int, is_yes: bool, estimate: TradeEstimate, potential_payout: int
    ) -> "BetQuote":
        return cls(
            market_id=market_id,
            is_yes=is_yes,
            amount=estimate.amount,
            fee=estimate.fee,
            net_amount=estimate.net_amount,
            shares=estimate.shares,
            potential_payout=potential_payout,
            price_after=PriceSnapshot.from_price(estimate.price_after),
        )


class MarketListResponse(BaseModel):
    items: list[MarketSnapshot]
    total: int
