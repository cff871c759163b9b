"""Unified error codes and custom exceptions.

Error code ranges:
  3xxx: Market / lifecycle
  5xxx: Position / claim
  6xxx: Amounts / arithmetic
  7xxx: Authorization
  9xxx: System
"""

from src.pm_common.enums import ErrorKind


class EngineError(Exception):
    """Base engine error: machine-checkable kind plus a human-readable reason."""

    def __init__(self, kind: ErrorKind, code: int, message: str) -> None:
        self.kind = kind
        self.code = code
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, code={self.code}, message={self.message!r})"


# --- 3xxx: Market ---

class MarketNotFoundError(EngineError):
    def __init__(self, market_id: int) -> None:
        super().__init__(ErrorKind.NOT_FOUND, 3001, f"Market not found: {market_id}")


class InvalidStateError(EngineError):
    def __init__(self, detail: str, code: int = 3002) -> None:
        super().__init__(ErrorKind.INVALID_STATE, code, detail)


class MarketNotActiveError(InvalidStateError):
    def __init__(self, market_id: int, status: str) -> None:
        super().__init__(f"Market {market_id} is not ACTIVE (status={status})", 3003)


class MarketHasTradesError(EngineError):
    def __init__(self, market_id: int) -> None:
        super().__init__(
            ErrorKind.MARKET_HAS_TRADES,
            3004,
            f"Market {market_id} has recorded trades and cannot be cancelled",
        )


class InvariantViolationError(InvalidStateError):
    """Raised by the store when a write would break a structural invariant."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invariant violated: {detail}", 3009)


# --- 5xxx: Position ---

class PositionNotFoundError(EngineError):
    def __init__(self, market_id: int, user_id: str) -> None:
        super().__init__(
            ErrorKind.NOT_FOUND, 5001, f"No position for user {user_id} in market {market_id}"
        )


class AlreadyClaimedError(EngineError):
    def __init__(self, market_id: int, user_id: str) -> None:
        super().__init__(
            ErrorKind.ALREADY_CLAIMED, 5002, f"User {user_id} already claimed market {market_id}"
        )


# --- 6xxx: Amounts ---

class InvalidAmountError(EngineError):
    def __init__(self, detail: str) -> None:
        super().__init__(ErrorKind.INVALID_AMOUNT, 6001, detail)


class ArithmeticOverflowError(EngineError):
    def __init__(self, detail: str) -> None:
        super().__init__(ErrorKind.ARITHMETIC_OVERFLOW, 6002, f"Arithmetic overflow: {detail}")


# --- 7xxx: Authorization ---

class UnauthorizedError(EngineError):
    def __init__(self, caller: str, action: str) -> None:
        super().__init__(ErrorKind.UNAUTHORIZED, 7001, f"{caller} is not allowed to {action}")


# --- 9xxx: System ---

class EngineBusyError(EngineError):
    def __init__(self, market_id: int | None, timeout: float) -> None:
        target = "fee balance" if market_id is None else f"market {market_id}"
        super().__init__(
            ErrorKind.BUSY, 9001, f"Timed out after {timeout}s waiting for {target}"
        )
