# src/pm_market/domain/repository.py
"""Store Protocol — dependency inversion for testability.

The engine only talks to this Protocol. Infrastructure provides the real
implementation; unit tests may inject a mock conforming to it.

Reads return detached copies, never live records. `save` is the only write
path: it applies one market and the positions touched by the same operation
as a single atomic step, after checking structural invariants.
"""

from collections.abc import Sequence
from typing import Protocol

from src.pm_common.enums import MarketStatus
from src.pm_market.domain.models import Market, Position


class MarketStoreProtocol(Protocol):
    async def allocate_market_id(self) -> int: ...

    async def get_market(self, market_id: int) -> Market | None: ...

    async def list_markets(self, status: MarketStatus | None = None) -> list[Market]: ...

    async def market_count(self) -> int: ...

    async def get_position(self, market_id: int, user_id: str) -> Position | None: ...

    async def list_positions(self, market_id: int) -> list[Position]: ...

    async def save(self, market: Market, positions: Sequence[Position] = ()) -> None: ...
