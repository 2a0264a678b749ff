"""
Poll Registry

Poll creation with deposit escrow, stake-weighted vote tallying, and the
end-of-voting settlement that applies quorum / threshold rules:

    participation = (yes + no + abstain) / total_voting_power_at_creation
    approval      = yes / (yes + no)

    participation <  quorum     → REJECTED
    approval      <  threshold  → REJECTED
    otherwise                   → PASSED (EXPIRED if its window already closed)

With an early-settlement share configured, a poll may be settled before
its end height once that share of the denominator voted one way and the
uncast power can no longer change the outcome.

Deposits stay escrowed until settlement: PASSED refunds, REJECTED follows
the configured DepositPolicy (forfeited deposits become staker income).
"""

from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from ..config.loader import DepositPolicy, PollConfig
from ..constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from ..exceptions import (
    ExecutionWindowOpenError,
    InsufficientDepositError,
    InvalidPollError,
    NotPassedError,
    PollNotFoundError,
    PollNotInProgressError,
    VotingNotEndedError,
)
from ..logger import get_logger
from ..staking.ledger import StakeLedger
from ..staking.rewards import RewardDistributor
from ..tokens.ledger import Treasury
from .messages import PollMessage, validate_messages
from .polls import Poll, PollStatus, validate_poll_text
from .voting import VoteChoice, VoteRecord, VoteSnapshot

logger = get_logger(__name__)


class PollRegistry:
    """
    Owns every poll ever created.

    Responsibilities:
        - Validate and escrow poll deposits
        - Freeze the quorum denominator at creation
        - Route votes through the VoteSnapshot and update tallies
        - Settle polls and their deposits exactly once
        - Expire passed polls nobody executed in time
    """

    def __init__(
        self,
        ledger: StakeLedger,
        snapshot: VoteSnapshot,
        distributor: RewardDistributor,
        treasury: Treasury,
        get_config: Callable[[], PollConfig],
    ):
        self.ledger = ledger
        self.snapshot = snapshot
        self.distributor = distributor
        self.treasury = treasury
        self._get_config = get_config

        self._polls: Dict[int, Poll] = {}
        self._next_id = 1
        self._escrowed = Decimal("0")

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def poll_count(self) -> int:
        return len(self._polls)

    @property
    def total_escrowed(self) -> Decimal:
        """Deposits of polls whose deposit is not settled yet."""
        return self._escrowed

    def get(self, poll_id: int) -> Poll:
        poll = self._polls.get(poll_id)
        if poll is None:
            raise PollNotFoundError(poll_id)
        return poll

    def is_active(self, poll_id: int) -> bool:
        poll = self._polls.get(poll_id)
        return poll is not None and poll.is_in_progress

    def list_polls(
        self,
        status: Optional[PollStatus] = None,
        start_after: Optional[int] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
        descending: bool = False,
    ) -> List[Poll]:
        """
        Page through polls by id.

        *start_after* is exclusive in the direction of travel.
        """
        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        ids = sorted(self._polls, reverse=descending)
        if start_after is not None:
            if descending:
                ids = [i for i in ids if i < start_after]
            else:
                ids = [i for i in ids if i > start_after]
        polls = (self._polls[i] for i in ids)
        if status is not None:
            polls = (p for p in polls if p.status == status)
        result = []
        for poll in polls:
            result.append(poll)
            if len(result) >= limit:
                break
        return result

    # ── Create ────────────────────────────────────────────────────────

    def create_poll(
        self,
        creator: str,
        deposit: Decimal,
        title: str,
        description: str,
        height: int,
        messages: Optional[List[PollMessage]] = None,
        voting_period: Optional[int] = None,
        link: Optional[str] = None,
    ) -> Poll:
        """
        Open a new poll at *height*.

        Validation happens before the deposit is pulled from *creator*'s
        token balance; a failed transfer leaves no poll behind.
        """
        config = self._get_config()
        deposit = Decimal(deposit)
        validate_poll_text(title, description, link)
        batch = validate_messages(list(messages or []))
        period = config.voting_period if voting_period is None else int(voting_period)
        if period <= 0:
            raise InvalidPollError(f"Voting period must be positive, got {period}")
        if deposit < config.proposal_deposit:
            raise InsufficientDepositError(config.proposal_deposit, deposit)

        if deposit > 0:
            self.treasury.transfer_from(creator, deposit, memo="poll deposit")

        end_height = height + period
        executable_height = end_height + config.timelock_period
        poll = Poll(
            id=self._next_id,
            creator=creator,
            deposit_amount=deposit,
            title=title,
            description=description,
            link=link,
            messages=batch,
            start_height=height,
            end_height=end_height,
            total_voting_power_at_creation=self.ledger.total_staked,
            executable_height=executable_height,
            expiration_height=executable_height + config.expiration_period,
        )
        self._polls[poll.id] = poll
        self._next_id += 1
        self._escrowed += deposit

        logger.info(
            f"Poll #{poll.id} created by {creator}: '{title}' "
            f"(deposit={deposit}, denominator={poll.total_voting_power_at_creation}, "
            f"end_height={end_height}, messages={len(batch)})"
        )
        return poll

    # ── Vote ──────────────────────────────────────────────────────────

    def cast_vote(self, poll_id: int, voter: str, choice: Any, height: int) -> VoteRecord:
        poll = self.get(poll_id)
        if not poll.is_in_progress or height >= poll.end_height:
            raise PollNotInProgressError(
                f"Poll #{poll_id} is not accepting votes "
                f"(status={poll.status.name}, height={height}, end_height={poll.end_height})"
            )

        record = self.snapshot.record_vote(poll_id, voter, choice, height)
        if record.choice == VoteChoice.YES:
            poll.yes_votes += record.power
        elif record.choice == VoteChoice.NO:
            poll.no_votes += record.power
        else:
            poll.abstain_votes += record.power
        return record

    # ── Settle ────────────────────────────────────────────────────────

    def uncast_power(self, poll: Poll) -> Decimal:
        """Power that could still vote: the larger of the frozen and current stake totals."""
        ceiling = max(poll.total_voting_power_at_creation, self.ledger.total_staked)
        return max(Decimal("0"), ceiling - poll.total_votes)

    def can_settle_early(self, poll: Poll) -> bool:
        """
        True when one side holds the early-settlement share of the
        denominator and no way of casting the uncast power can flip the
        outcome. Quorum is implied, since the share is never below it.
        """
        config = self._get_config()
        early = config.early_settlement_threshold
        denominator = poll.total_voting_power_at_creation
        if early is None or denominator <= 0:
            return False

        remaining = self.uncast_power(poll)
        decisive = poll.yes_votes + poll.no_votes + remaining
        if decisive <= 0:
            return False
        # passes even if every uncast vote goes to "no"
        passes = (
            poll.yes_votes / denominator >= early
            and poll.yes_votes / decisive >= config.threshold
        )
        # fails even if every uncast vote goes to "yes"
        fails = (
            poll.no_votes / denominator >= early
            and (poll.yes_votes + remaining) / decisive < config.threshold
        )
        return passes or fails

    def end_poll(self, poll_id: int, height: int) -> Poll:
        """
        Settle a poll whose voting window is over.

        Repeat calls are rejected with PollNotInProgressError.
        """
        poll = self.get(poll_id)
        if not poll.is_in_progress:
            raise PollNotInProgressError(
                f"Poll #{poll_id} already settled (status={poll.status.name})"
            )
        early = height < poll.end_height
        if early and not self.can_settle_early(poll):
            raise VotingNotEndedError(
                f"Voting on poll #{poll_id} ends at height {poll.end_height} "
                f"(current {height})"
            )

        config = self._get_config()
        quorum_met = poll.quorum_reached(config.quorum)
        if not quorum_met:
            new_status = PollStatus.REJECTED
            reason = (
                f"Quorum not reached: {poll.total_votes}/"
                f"{poll.total_voting_power_at_creation} < {config.quorum}"
            )
        elif poll.approval_rate < config.threshold:
            new_status = PollStatus.REJECTED
            reason = f"Approval {poll.approval_rate:.2%} < threshold {config.threshold:.2%}"
        elif height >= poll.expiration_height:
            new_status = PollStatus.EXPIRED
            reason = "Passed after its execution window closed"
        else:
            new_status = PollStatus.PASSED
            reason = f"Approval {poll.approval_rate:.2%}, participation {poll.participation:.2%}"
        if early:
            reason += " (settled early)"

        poll.transition_to(new_status, height, reason)
        poll.settled_height = height

        if new_status == PollStatus.REJECTED and self._forfeits(config.deposit_policy, quorum_met):
            self._forfeit_deposit(poll)
        else:
            self._refund_deposit(poll)
        return poll

    @staticmethod
    def _forfeits(policy: DepositPolicy, quorum_met: bool) -> bool:
        if policy == DepositPolicy.REFUND:
            return False
        if policy == DepositPolicy.FORFEIT_BELOW_QUORUM:
            return not quorum_met
        return True

    def _refund_deposit(self, poll: Poll):
        if poll.deposit_amount > 0:
            self.treasury.transfer_to(poll.creator, poll.deposit_amount, memo="poll deposit refund")
        self._escrowed -= poll.deposit_amount
        poll.deposit_settlement = "refunded"
        logger.info(f"Poll #{poll.id}: deposit of {poll.deposit_amount} tokens refunded to {poll.creator}")

    def _forfeit_deposit(self, poll: Poll):
        self._escrowed -= poll.deposit_amount
        poll.deposit_settlement = "forfeited"
        self.distributor.deposit_income(poll.deposit_amount)
        logger.info(f"Poll #{poll.id}: deposit of {poll.deposit_amount} tokens forfeited to stakers")

    # ── Expire ────────────────────────────────────────────────────────

    def expire_poll(self, poll_id: int, height: int) -> Poll:
        """Move a PASSED poll whose execution window closed to EXPIRED."""
        poll = self.get(poll_id)
        if poll.status != PollStatus.PASSED:
            raise NotPassedError(
                f"Only PASSED polls can expire (poll #{poll_id} is {poll.status.name})"
            )
        if height < poll.expiration_height:
            raise ExecutionWindowOpenError(
                f"Poll #{poll_id} is executable until height {poll.expiration_height}"
            )
        poll.transition_to(PollStatus.EXPIRED, height, "Execution window closed")
        return poll

    def to_dict(self) -> Dict[str, Any]:
        counts: Dict[str, int] = {}
        for poll in self._polls.values():
            counts[poll.status.name] = counts.get(poll.status.name, 0) + 1
        return {
            "pollCount": len(self._polls),
            "totalEscrowed": str(self._escrowed),
            "byStatus": counts,
        }

    def __repr__(self) -> str:
        return f"<PollRegistry polls={len(self._polls)}>"
