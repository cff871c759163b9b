"""Per-market asyncio locks.

Writes to the same market are serialized; writes to different markets never
share a lock. Acquisition is bounded so a stuck writer surfaces as
EngineBusyError instead of an indefinite wait.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from src.pm_common.errors import EngineBusyError


class MarketLocks:
    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout
        self._locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get(self, market_id: int) -> asyncio.Lock:
        return self._locks[market_id]

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, market_id: int) -> AsyncIterator[None]:
        async with bounded(self._locks[market_id], self._timeout, market_id):
            yield


@asynccontextmanager
async def bounded(
    lock: asyncio.Lock, timeout: float, market_id: int | None = None
) -> AsyncIterator[None]:
    """Acquire lock within timeout seconds or raise EngineBusyError."""
    try:
        async with asyncio.timeout(timeout):
            await lock.acquire()
    except TimeoutError as exc:
        raise EngineBusyError(market_id, timeout) from exc
    try:
        yield
    finally:
        lock.release()
