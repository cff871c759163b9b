"""Append-only event log with fire-and-forget queue subscribers.

Writers publish while still holding the market lock, so records for one
market appear in commit order. Subscribers get an asyncio.Queue fed with
put_nowait; a full subscriber queue drops the record for that subscriber only
and never blocks the writer. The log itself keeps every record.
"""

import asyncio
import logging

from src.pm_common.datetime_utils import Clock, utc_now
from src.pm_lifecycle.domain.events import EngineEvent, EventRecord

logger = logging.getLogger(__name__)


class EventLog:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._records: list[EventRecord] = []
        self._subscribers: list[asyncio.Queue[EventRecord]] = []

    def publish(self, event: EngineEvent) -> EventRecord:
        record = EventRecord(
            sequence=len(self._records) + 1,
            emitted_at=self._clock(),
            event=event,
        )
        self._records.append(record)
        for queue in self._subscribers:
            try:
                queue.put_nowait(record)
            except asyncio.QueueFull:
                logger.warning(
                    "Subscriber queue full, dropped %s seq=%d", event.name, record.sequence
                )
        return record

    def subscribe(self, maxsize: int = 0) -> asyncio.Queue[EventRecord]:
        queue: asyncio.Queue[EventRecord] = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[EventRecord]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def events(self, market_id: int | None = None, after: int = 0) -> list[EventRecord]:
        """Records with sequence > after, optionally only one market's."""
        return [
            r
            for r in self._records[after:]
            if market_id is None or r.market_id == market_id
        ]

    def __len__(self) -> int:
        return len(self._records)
