"""Composition root — wires the engine from settings.

The engine has no transport of its own; an embedding process calls
`bootstrap()` once and hands `engine.controller` (writes), `engine.queries`
(reads) and `engine.events` (notifications) to its own surfaces.
"""

import logging
from dataclasses import dataclass

from config.settings import Settings, settings as default_settings
from src.pm_clearing.domain.fee import FeeAccumulator
from src.pm_clearing.domain.payout import PayoutEngine
from src.pm_common.datetime_utils import Clock, utc_now
from src.pm_common.locks import MarketLocks
from src.pm_common.logging_config import configure_logging
from src.pm_lifecycle.engine.controller import LifecycleController
from src.pm_lifecycle.infrastructure.event_log import EventLog
from src.pm_market.application.service import MarketQueryService
from src.pm_market.domain.repository import MarketStoreProtocol
from src.pm_market.infrastructure.memory_store import InMemoryMarketStore
from src.pm_position.domain.ledger import PositionLedger

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    store: MarketStoreProtocol
    events: EventLog
    fees: FeeAccumulator
    ledger: PositionLedger
    payouts: PayoutEngine
    controller: LifecycleController
    queries: MarketQueryService


def build_engine(
    settings: Settings | None = None,
    clock: Clock = utc_now,
    store: MarketStoreProtocol | None = None,
) -> Engine:
    cfg = settings or default_settings
    store = store or InMemoryMarketStore()
    locks = MarketLocks(timeout=cfg.LOCK_TIMEOUT_SECONDS)
    events = EventLog(clock=clock)
    fees = FeeAccumulator(lock_timeout=cfg.LOCK_TIMEOUT_SECONDS)
    ledger = PositionLedger(store)
    payouts = PayoutEngine(store, ledger, events, locks)
    controller = LifecycleController(
        store,
        ledger,
        fees,
        payouts,
        events,
        locks,
        admin_id=cfg.ADMIN_ID,
        fee_bps=cfg.FEE_BPS,
        clock=clock,
        min_duration_seconds=cfg.MIN_DURATION_SECONDS,
    )
    queries = MarketQueryService(
        store, ledger, payouts, decimals=cfg.TOKEN_DECIMALS, clock=clock
    )
    return Engine(
        store=store,
        events=events,
        fees=fees,
        ledger=ledger,
        payouts=payouts,
        controller=controller,
        queries=queries,
    )


def bootstrap(settings: Settings | None = None) -> Engine:
    """Configure logging and build the engine for a long-running process."""
    cfg = settings or default_settings
    configure_logging(cfg.LOG_LEVEL)
    engine = build_engine(cfg)
    logger.info(
        "%s ready: admin=%s fee_bps=%d", cfg.APP_NAME, cfg.ADMIN_ID, cfg.FEE_BPS
    )
    return engine
