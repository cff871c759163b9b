"""Domain models for pm_market — pure dataclasses, no business logic."""

from dataclasses import dataclass, replace
from datetime import datetime

from src.pm_common.enums import MarketStatus, Outcome


@dataclass
class Market:
    id: int
    question: str
    description: str
    creator: str
    created_at: datetime
    close_time: datetime
    yes_pool: int                 # smallest units
    no_pool: int                  # smallest units
    seed_fund: int
    fee_bps: int                  # snapshot of protocol fee at creation
    total_yes_shares: int = 0
    total_no_shares: int = 0
    total_net_deposits: int = 0   # sum of post-fee bet amounts
    collected_fees: int = 0
    trade_count: int = 0
    status: MarketStatus = MarketStatus.ACTIVE
    outcome: Outcome = Outcome.UNSET
    resolution_ref: str | None = None
    resolved_at: datetime | None = None
    seed_claimed: bool = False

    @property
    def has_trades(self) -> bool:
        return self.trade_count > 0 or self.total_yes_shares > 0 or self.total_no_shares > 0

    @property
    def distributable_pool(self) -> int:
        """Collateral held by the market: seed plus every post-fee deposit."""
        return self.seed_fund + self.total_net_deposits

    def copy(self) -> "Market":
        return replace(self)


@dataclass
class Position:
    market_id: int
    user_id: str
    yes_shares: int = 0
    no_shares: int = 0
    yes_cost: int = 0     # cumulative gross amount paid for YES
    no_cost: int = 0      # cumulative gross amount paid for NO
    claimed: bool = False

    @property
    def total_cost(self) -> int:
        return self.yes_cost + self.no_cost

    def winning_shares(self, outcome: Outcome) -> int:
        if outcome is Outcome.YES:
            return self.yes_shares
        if outcome is Outcome.NO:
            return self.no_shares
        return 0

    def copy(self) -> "Position":
        return replace(self)
