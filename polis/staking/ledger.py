"""
Polis Stake Ledger

Per-account staked balances and reward bookkeeping. Voting power and staker
rewards both derive from this ledger.

Reward settlement is pull-based: whenever an account is touched (stake,
unstake, claim) its share of the index growth since its last touch is
folded into `pending_reward` before the balance changes.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import Any, Callable, Dict, List, Optional

from ..constants import (
    DECIMAL_CONTEXT_PRECISION,
    DEFAULT_QUERY_LIMIT,
    MAX_QUERY_LIMIT,
    TOKEN_QUANTUM,
)
from ..exceptions import (
    InsufficientStakeError,
    InvalidAmountError,
    LockedByActivePollError,
    NothingToClaimError,
)
from ..logger import get_logger
from .rewards import RewardDistributor, RewardIndex

logger = get_logger(__name__)


@dataclass
class Stake:
    """
    Staked position of one account.

    Attributes:
        account:               Staker address
        amount:                Staked tokens (never negative)
        reward_index_snapshot: Global index value at the last settlement
        pending_reward:        Settled but unclaimed reward (full precision)
        claimed_reward:        Lifetime reward paid out
        committed_votes:       poll_id → power cast on that poll
    """
    account: str
    amount: Decimal = field(default_factory=lambda: Decimal("0"))
    reward_index_snapshot: Decimal = field(default_factory=lambda: Decimal("0"))
    pending_reward: Decimal = field(default_factory=lambda: Decimal("0"))
    claimed_reward: Decimal = field(default_factory=lambda: Decimal("0"))
    committed_votes: Dict[int, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "amount": str(self.amount),
            "rewardIndexSnapshot": str(self.reward_index_snapshot),
            "pendingReward": str(self.pending_reward),
            "claimedReward": str(self.claimed_reward),
            "votedPolls": sorted(self.committed_votes),
        }


class StakeLedger:
    """
    Arena of Stake records indexed by account.

    Responsibilities:
        - Keep sum(stake.amount) == index.total_staked
        - Settle rewards lazily before every balance change
        - Optionally lock stake committed to polls still in progress
    """

    def __init__(
        self,
        index: RewardIndex,
        distributor: Optional[RewardDistributor] = None,
        is_poll_active: Optional[Callable[[int], bool]] = None,
        lock_voted_stake: Callable[[], bool] = lambda: False,
    ):
        """
        Args:
            index:            Shared reward index
            distributor:      Distributor bound to the same index
            is_poll_active:   Callable(poll_id) → True while the poll is InProgress
            lock_voted_stake: Callable() → whether committed stake is locked
        """
        self.index = index
        self.distributor = distributor or RewardDistributor(index)
        self._is_poll_active = is_poll_active or (lambda poll_id: False)
        self._lock_voted_stake = lock_voted_stake
        self._stakes: Dict[str, Stake] = {}

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def total_staked(self) -> Decimal:
        return self.index.total_staked

    def get(self, account: str) -> Optional[Stake]:
        return self._stakes.get(account)

    def balance(self, account: str) -> Decimal:
        stake = self._stakes.get(account)
        return stake.amount if stake else Decimal("0")

    def claimable_reward(self, account: str) -> Decimal:
        """Pending plus unsettled reward, at full precision. Pure read."""
        stake = self._stakes.get(account)
        if stake is None:
            return Decimal("0")
        return self.index.accrued_since(
            stake.amount, stake.reward_index_snapshot, stake.pending_reward
        )

    def pending_voting_power(self, account: str) -> Decimal:
        """Largest power this account has committed to a poll still in progress."""
        stake = self._stakes.get(account)
        if stake is None:
            return Decimal("0")
        active = [
            power for poll_id, power in stake.committed_votes.items()
            if self._is_poll_active(poll_id)
        ]
        return max(active, default=Decimal("0"))

    def withdrawable(self, account: str) -> Decimal:
        balance = self.balance(account)
        if not self._lock_voted_stake():
            return balance
        return max(Decimal("0"), balance - self.pending_voting_power(account))

    def sum_of_stakes(self) -> Decimal:
        """O(stakers) recount; used to cross-check total_staked."""
        return sum((s.amount for s in self._stakes.values()), Decimal("0"))

    def stakers(
        self,
        start_after: Optional[str] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[Stake]:
        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        accounts = sorted(
            a for a in self._stakes
            if start_after is None or a > start_after
        )
        return [self._stakes[a] for a in accounts[:limit]]

    # ── Settlement ────────────────────────────────────────────────────

    def _settle(self, stake: Stake):
        stake.pending_reward = self.index.accrued_since(
            stake.amount, stake.reward_index_snapshot, stake.pending_reward
        )
        stake.reward_index_snapshot = self.index.global_index

    def _prune_votes(self, stake: Stake):
        stake.committed_votes = {
            poll_id: power for poll_id, power in stake.committed_votes.items()
            if self._is_poll_active(poll_id)
        }

    # ── Mutations ─────────────────────────────────────────────────────

    def stake(self, account: str, amount: Decimal) -> Stake:
        """
        Increase *account*'s stake by *amount*.

        Rewards are settled against the current index first, so the new
        tokens only earn income deposited after this call.
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(f"Stake amount must be positive, got {amount}")

        stake = self._stakes.get(account)
        if stake is None:
            stake = Stake(account=account, reward_index_snapshot=self.index.global_index)
            self._stakes[account] = stake

        self._settle(stake)
        self._prune_votes(stake)
        first_stake = self.index.total_staked == 0
        stake.amount += amount
        self.index.total_staked += amount

        logger.info(
            f"Stake: {account} +{amount} tokens "
            f"(balance={stake.amount}, total={self.index.total_staked})"
        )
        if first_stake:
            self.distributor.release_withheld()
        return stake

    def check_unstake(self, account: str, amount: Decimal) -> Decimal:
        """Validate an unstake request without mutating anything."""
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(f"Unstake amount must be positive, got {amount}")
        balance = self.balance(account)
        if amount > balance:
            raise InsufficientStakeError(amount, balance)
        unlocked = self.withdrawable(account)
        if amount > unlocked:
            raise LockedByActivePollError(amount, unlocked)
        return amount

    def unstake(self, account: str, amount: Decimal) -> Stake:
        """
        Decrease *account*'s stake by *amount*.

        Votes already cast keep the power they were cast with.
        """
        amount = self.check_unstake(account, amount)
        stake = self._stakes[account]

        self._settle(stake)
        self._prune_votes(stake)
        stake.amount -= amount
        self.index.total_staked -= amount

        logger.info(
            f"Unstake: {account} -{amount} tokens "
            f"(balance={stake.amount}, total={self.index.total_staked})"
        )
        return stake

    def check_claim(self, account: str) -> Decimal:
        """Amount claim_reward would pay out, or NothingToClaimError."""
        payable = self.claimable_reward(account).quantize(TOKEN_QUANTUM, rounding=ROUND_DOWN)
        if payable <= 0:
            raise NothingToClaimError(f"{account} has no claimable reward")
        return payable

    def claim_reward(self, account: str) -> Decimal:
        """
        Settle and pay out the reward, rounded down to token precision.

        The sub-unit remainder stays pending for the next claim.
        """
        payable = self.check_claim(account)
        stake = self._stakes[account]
        self._settle(stake)
        with localcontext() as ctx:
            ctx.prec = DECIMAL_CONTEXT_PRECISION
            stake.pending_reward -= payable
        stake.claimed_reward += payable
        self.distributor.record_claim(payable)

        logger.info(f"Claim: {account} received {payable} tokens of staking reward")
        return payable

    def record_vote(self, account: str, poll_id: int, power: Decimal):
        stake = self._stakes[account]
        self._prune_votes(stake)
        stake.committed_votes[poll_id] = power

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stakers": len(self._stakes),
            "index": self.index.to_dict(),
        }

    def __repr__(self) -> str:
        return f"<StakeLedger stakers={len(self._stakes)} total={self.index.total_staked}>"
