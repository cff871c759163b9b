"""FeeAccumulator — owner-withdrawable balance, disjoint from every market pool.

Trade fees are credited here before the net amount reaches a pool, and the
rounding residual of each resolved market is credited here at resolution.
Nothing in this balance ever flows back into win/loss economics.
"""

import asyncio
import logging
from dataclasses import dataclass

from src.pm_common.errors import InvalidAmountError
from src.pm_common.fixed_point import MAX_AMOUNT, checked_add, checked_sub
from src.pm_common.locks import bounded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeBalance:
    balance: int
    fees_collected: int
    residual_collected: int
    withdrawn: int


class FeeAccumulator:
    def __init__(self, lock_timeout: float = 5.0) -> None:
        self._balance = 0
        self._fees_collected = 0
        self._residual_collected = 0
        self._withdrawn = 0
        self._lock = asyncio.Lock()
        self._lock_timeout = lock_timeout

    @property
    def balance(self) -> int:
        return self._balance

    def snapshot(self) -> FeeBalance:
        return FeeBalance(
            balance=self._balance,
            fees_collected=self._fees_collected,
            residual_collected=self._residual_collected,
            withdrawn=self._withdrawn,
        )

    def ensure_can_credit(self, amount: int) -> None:
        """Fail with ArithmeticOverflowError before any commit that would credit amount."""
        checked_add(self._balance, amount)
        checked_add(self._fees_collected + self._residual_collected, amount)

    def credit_fee(self, amount: int, market_id: int) -> None:
        if amount == 0:
            return
        self._balance = checked_add(self._balance, amount)
        self._fees_collected = checked_add(self._fees_collected, amount)
        logger.debug("Fee credited: market=%s amount=%d balance=%d", market_id, amount, self._balance)

    def credit_residual(self, amount: int, market_id: int) -> None:
        """Rounding dust (or an unclaimable pool) left over by a resolved market."""
        if amount == 0:
            return
        self._balance = checked_add(self._balance, amount)
        self._residual_collected = checked_add(self._residual_collected, amount)
        logger.info("Residual credited: market=%s amount=%d", market_id, amount)

    async def withdraw(self, amount: int | None = None) -> int:
        """Debit `amount` (default: everything) from the balance and return it."""
        async with bounded(self._lock, self._lock_timeout):
            requested = self._balance if amount is None else amount
            if isinstance(requested, bool) or not isinstance(requested, int):
                raise InvalidAmountError("withdraw amount must be an int")
            if requested <= 0:
                raise InvalidAmountError("nothing to withdraw")
            if requested > self._balance or requested > MAX_AMOUNT:
                raise InvalidAmountError(
                    f"withdraw amount {requested} exceeds fee balance {self._balance}"
                )
            self._balance = checked_sub(self._balance, requested)
            self._withdrawn = checked_add(self._withdrawn, requested)
            return requested
