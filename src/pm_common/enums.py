"""Global enums — str-valued so snapshots and events serialize as plain text."""

from enum import Enum


class MarketStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class Outcome(str, Enum):
    UNSET = "UNSET"
    YES = "YES"
    NO = "NO"


class ErrorKind(str, Enum):
    """Machine-checkable failure categories carried by every EngineError."""
    INVALID_STATE = "INVALID_STATE"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    MARKET_HAS_TRADES = "MARKET_HAS_TRADES"
    ARITHMETIC_OVERFLOW = "ARITHMETIC_OVERFLOW"
    BUSY = "BUSY"


# Legal lifecycle edges. Terminal states have no outgoing edge.
ALLOWED_TRANSITIONS: dict[MarketStatus, frozenset[MarketStatus]] = {
    MarketStatus.ACTIVE: frozenset(
        {MarketStatus.CLOSED, MarketStatus.RESOLVED, MarketStatus.CANCELLED}
    ),
    MarketStatus.CLOSED: frozenset({MarketStatus.RESOLVED}),
    MarketStatus.RESOLVED: frozenset(),
    MarketStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({MarketStatus.RESOLVED, MarketStatus.CANCELLED})
