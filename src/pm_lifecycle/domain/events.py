"""Domain events emitted after each committed write.

The event stream is the only change-notification channel for the display
layer. Events are immutable; `EventRecord` adds the log position.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, ClassVar

from src.pm_common.enums import Outcome


@dataclass(frozen=True)
class EngineEvent:
    name: ClassVar[str] = "EngineEvent"

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()
            elif isinstance(value, Outcome):
                payload[key] = value.value
        return {"event": self.name, **payload}


@dataclass(frozen=True)
class MarketCreated(EngineEvent):
    name: ClassVar[str] = "MarketCreated"
    market_id: int
    question: str
    close_time: datetime
    creator: str
    seed_fund: int


@dataclass(frozen=True)
class BetPlaced(EngineEvent):
    name: ClassVar[str] = "BetPlaced"
    market_id: int
    user_id: str
    is_yes: bool
    amount: int
    shares: int


@dataclass(frozen=True)
class MarketClosed(EngineEvent):
    name: ClassVar[str] = "MarketClosed"
    market_id: int


@dataclass(frozen=True)
class MarketResolved(EngineEvent):
    name: ClassVar[str] = "MarketResolved"
    market_id: int
    outcome: Outcome
    resolution_ref: str | None = None


@dataclass(frozen=True)
class MarketCancelled(EngineEvent):
    name: ClassVar[str] = "MarketCancelled"
    market_id: int


@dataclass(frozen=True)
class RewardClaimed(EngineEvent):
    name: ClassVar[str] = "RewardClaimed"
    market_id: int
    user_id: str
    amount: int


@dataclass(frozen=True)
class FeesWithdrawn(EngineEvent):
    name: ClassVar[str] = "FeesWithdrawn"
    amount: int
    remaining: int


@dataclass(frozen=True)
class EventRecord:
    sequence: int
    emitted_at: datetime
    event: EngineEvent

    @property
    def market_id(self) -> int | None:
        return getattr(self.event, "market_id", None)
