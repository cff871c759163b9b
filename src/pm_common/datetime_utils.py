"""UTC datetime utilities."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from src.pm_common.errors import ArithmeticOverflowError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def add_seconds(start: datetime, seconds: int) -> datetime:
    """start + seconds, failing with ArithmeticOverflowError past datetime.max."""
    try:
        return start + timedelta(seconds=seconds)
    except OverflowError as exc:
        raise ArithmeticOverflowError(f"{start.isoformat()} + {seconds}s") from exc
