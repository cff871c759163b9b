"""Value objects returned by the pricing functions."""

from dataclasses import dataclass
from fractions import Fraction


@dataclass(frozen=True)
class PoolPrice:
    """Exact implied probabilities of a (yes_pool, no_pool) pair.

    P(yes) = no_pool / total, P(no) = yes_pool / total. The two numerators
    always sum to the denominator, so P(yes) + P(no) == 1 exactly.
    """

    yes_numerator: int    # no_pool
    no_numerator: int     # yes_pool
    denominator: int      # yes_pool + no_pool

    @property
    def yes(self) -> Fraction:
        return Fraction(self.yes_numerator, self.denominator)

    @property
    def no(self) -> Fraction:
        return Fraction(self.no_numerator, self.denominator)


@dataclass(frozen=True)
class TradeEstimate:
    amount: int           # gross amount supplied by the trader
    fee: int              # protocol fee diverted to the fee balance
    net_amount: int       # amount - fee, added to the chosen pool
    shares: int           # decrease of the opposite pool, minted to the trader
    yes_pool: int         # post-trade pools
    no_pool: int
    k_before: int
    k_after: int

    @property
    def price_after(self) -> PoolPrice:
        total = self.yes_pool + self.no_pool
        return PoolPrice(self.no_pool, self.yes_pool, total)
