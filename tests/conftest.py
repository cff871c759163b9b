"""Shared test fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from config.settings import Settings
from src.main import Engine, build_engine

ADMIN = "admin"


class FakeClock:
    """Manually advanced clock; every engine component reads time through it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def advance(clock: FakeClock) -> Callable[[int], None]:
    return clock.advance


@pytest.fixture
def fee_bps() -> int:
    return 0


@pytest.fixture
def settings(fee_bps: int) -> Settings:
    return Settings(
        _env_file=None,
        ADMIN_ID=ADMIN,
        FEE_BPS=fee_bps,
        LOCK_TIMEOUT_SECONDS=0.25,
    )


@pytest.fixture
def engine(settings: Settings, clock: FakeClock) -> Engine:
    return build_engine(settings, clock=clock)
