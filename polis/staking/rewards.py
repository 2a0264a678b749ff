"""
Staker Reward Distribution

Income routed to the governance treasury (trading fees forwarded by the
collector, forfeited poll deposits) is shared between stakers pro rata
without ever iterating the staker set:

  - RewardIndex:       singleton accumulator `global_index` (reward per
                       staked token) plus `total_staked`
  - RewardDistributor: O(1) `deposit_income` that bumps the index

Each stake remembers the index value it was last settled against; a
staker's claimable amount is

    pending_reward + amount * (global_index - reward_index_snapshot)

and is folded into `pending_reward` lazily on the staker's next
stake / unstake / claim (see polis.staking.ledger).

Fixed point: the index is kept at REWARD_INDEX_PRECISION decimal places,
rounded down. The part of each deposit that the rounded index cannot
express stays in `carry` and is added to the next deposit, so repeated
small deposits are never eroded to zero.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import Any, Dict

from ..constants import DECIMAL_CONTEXT_PRECISION, REWARD_INDEX_QUANTUM
from ..exceptions import InvalidAmountError, NoStakersError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class RewardIndex:
    """
    Process-wide reward accounting state.

    Fields:
        global_index:    Cumulative reward per staked token (never decreases)
        total_staked:    Sum of all stake amounts (the index denominator)
        carry:           Income not yet expressible in the rounded index
        withheld_income: Income received while nothing was staked
        total_income:    Lifetime income folded into the index (incl. carry)
        total_claimed:   Lifetime rewards paid out to stakers
    """
    global_index: Decimal = field(default_factory=lambda: Decimal("0"))
    total_staked: Decimal = field(default_factory=lambda: Decimal("0"))
    carry: Decimal = field(default_factory=lambda: Decimal("0"))
    withheld_income: Decimal = field(default_factory=lambda: Decimal("0"))
    total_income: Decimal = field(default_factory=lambda: Decimal("0"))
    total_claimed: Decimal = field(default_factory=lambda: Decimal("0"))

    def accrued_since(
        self, amount: Decimal, snapshot: Decimal, pending: Decimal = Decimal("0")
    ) -> Decimal:
        """
        Reward earned by *amount* staked since the index stood at *snapshot*,
        added to *pending* at full precision.
        """
        with localcontext() as ctx:
            ctx.prec = DECIMAL_CONTEXT_PRECISION
            return pending + amount * (self.global_index - snapshot)

    @property
    def reward_reserve(self) -> Decimal:
        """Treasury tokens owed to stakers (claimable, pending, or carried)."""
        return self.total_income - self.total_claimed + self.withheld_income

    def to_dict(self) -> Dict[str, Any]:
        return {
            "globalIndex": str(self.global_index),
            "totalStaked": str(self.total_staked),
            "carry": str(self.carry),
            "withheldIncome": str(self.withheld_income),
            "totalIncome": str(self.total_income),
            "totalClaimed": str(self.total_claimed),
        }


@dataclass(frozen=True)
class IncomeReceipt:
    """Outcome of a single deposit_income call."""
    amount: Decimal
    index_delta: Decimal
    withheld: Decimal

    @property
    def distributed(self) -> bool:
        return self.index_delta > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": str(self.amount),
            "indexDelta": str(self.index_delta),
            "withheld": str(self.withheld),
        }


class RewardDistributor:
    """
    Accrues income into the shared RewardIndex.

    Every operation is O(1) in the number of stakers.
    """

    def __init__(self, index: RewardIndex):
        self.index = index

    def deposit_income(self, amount: Decimal, strict: bool = False) -> IncomeReceipt:
        """
        Feed *amount* of income into the reward index.

        A zero amount is a no-op. With no stakers the income is withheld
        until the first stake arrives; pass ``strict=True`` to get
        NoStakersError instead (nothing is recorded in that case).
        """
        amount = Decimal(amount)
        if amount < 0:
            raise InvalidAmountError(f"Income amount cannot be negative: {amount}")
        if amount == 0:
            return IncomeReceipt(amount, Decimal("0"), Decimal("0"))

        if self.index.total_staked == 0:
            if strict:
                raise NoStakersError(
                    f"Cannot distribute {amount} tokens: nothing is staked"
                )
            self.index.withheld_income += amount
            logger.warning(
                f"Income of {amount} tokens withheld until first stake "
                f"(withheld total {self.index.withheld_income} tokens)"
            )
            return IncomeReceipt(amount, Decimal("0"), amount)

        delta = self._accrue(amount)
        logger.info(
            f"Income of {amount} tokens distributed "
            f"(index +{delta} → {self.index.global_index})"
        )
        return IncomeReceipt(amount, delta, Decimal("0"))

    def release_withheld(self) -> Decimal:
        """
        Fold withheld income into the index once somebody is staked.

        Returns the index delta applied (zero if nothing was withheld).
        """
        withheld = self.index.withheld_income
        if withheld == 0 or self.index.total_staked == 0:
            return Decimal("0")
        self.index.withheld_income = Decimal("0")
        delta = self._accrue(withheld)
        logger.info(f"Released {withheld} tokens of withheld income (index +{delta})")
        return delta

    def record_claim(self, amount: Decimal):
        self.index.total_claimed += amount

    def _accrue(self, amount: Decimal) -> Decimal:
        idx = self.index
        with localcontext() as ctx:
            ctx.prec = DECIMAL_CONTEXT_PRECISION
            distributable = amount + idx.carry
            delta = (distributable / idx.total_staked).quantize(
                REWARD_INDEX_QUANTUM, rounding=ROUND_DOWN
            )
            idx.carry = distributable - delta * idx.total_staked
            idx.global_index += delta
            idx.total_income += amount
        return delta

    def __repr__(self) -> str:
        return (
            f"<RewardDistributor index={self.index.global_index} "
            f"staked={self.index.total_staked}>"
        )
