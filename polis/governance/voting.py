"""
Vote Snapshots

Implements:
  - 1 staked token = 1 vote
  - Vote choices: Yes / No / Abstain (abstain counts toward quorum only)
  - One vote per (poll, voter); a second vote is rejected, never overwritten
  - Power frozen at cast time: later stake/unstake leaves cast votes alone
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ..constants import (
    DEFAULT_QUERY_LIMIT,
    GOVERNANCE_VOTE_ABSTAIN,
    GOVERNANCE_VOTE_NO,
    GOVERNANCE_VOTE_YES,
    MAX_QUERY_LIMIT,
)
from ..exceptions import AlreadyVotedError, NoStakeError, ValidationError
from ..logger import get_logger
from ..staking.ledger import StakeLedger

logger = get_logger(__name__)


class VoteChoice(Enum):
    YES = GOVERNANCE_VOTE_YES
    NO = GOVERNANCE_VOTE_NO
    ABSTAIN = GOVERNANCE_VOTE_ABSTAIN

    @classmethod
    def parse(cls, value: Any) -> "VoteChoice":
        """Accept a VoteChoice or its (case-insensitive) string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid vote choice: {value!r}")


@dataclass(frozen=True)
class VoteRecord:
    """An individual vote; `power` is authoritative for the poll's life."""
    poll_id: int
    voter: str
    choice: VoteChoice
    power: Decimal
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pollId": self.poll_id,
            "voter": self.voter,
            "choice": self.choice.value,
            "power": str(self.power),
            "height": self.height,
        }


class VoteSnapshot:
    """
    Freezes each voter's power on a poll at the moment they vote.

    Holds one VoteRecord per (poll, voter). Tallies are kept on the Poll by
    the registry; the snapshot is the source of truth for who voted with
    how much.
    """

    def __init__(self, ledger: StakeLedger):
        self.ledger = ledger
        self._votes: Dict[int, Dict[str, VoteRecord]] = {}

    def record_vote(self, poll_id: int, voter: str, choice: Any, height: int) -> VoteRecord:
        """
        Record *voter*'s vote on *poll_id* with their current staked balance.

        Raises AlreadyVotedError or NoStakeError without recording anything.
        """
        choice = VoteChoice.parse(choice)
        if self.has_voted(poll_id, voter):
            raise AlreadyVotedError(f"{voter} has already voted on poll #{poll_id}")

        power = self.ledger.balance(voter)
        if power <= 0:
            raise NoStakeError(f"{voter} has no staked tokens to vote with")

        record = VoteRecord(
            poll_id=poll_id,
            voter=voter,
            choice=choice,
            power=power,
            height=height,
        )
        self._votes.setdefault(poll_id, {})[voter] = record
        self.ledger.record_vote(voter, poll_id, power)

        logger.info(f"Vote: {voter} → {choice.name} on Poll #{poll_id} (power={power})")
        return record

    # ── Queries ───────────────────────────────────────────────────────

    def get_vote(self, poll_id: int, voter: str) -> Optional[VoteRecord]:
        return self._votes.get(poll_id, {}).get(voter)

    def has_voted(self, poll_id: int, voter: str) -> bool:
        return voter in self._votes.get(poll_id, {})

    def voter_count(self, poll_id: int) -> int:
        return len(self._votes.get(poll_id, {}))

    def total_power(self, poll_id: int) -> Decimal:
        return sum((v.power for v in self._votes.get(poll_id, {}).values()), Decimal("0"))

    def voters(
        self,
        poll_id: int,
        start_after: Optional[str] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[VoteRecord]:
        """Votes on *poll_id* ordered by voter address."""
        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        votes = self._votes.get(poll_id, {})
        addresses = sorted(a for a in votes if start_after is None or a > start_after)
        return [votes[a] for a in addresses[:limit]]

    def __repr__(self) -> str:
        return f"<VoteSnapshot polls={len(self._votes)}>"
