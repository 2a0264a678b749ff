"""
Governance Polls

Defines poll lifecycle states and the Poll dataclass that tracks a single
poll from creation through settlement and execution.

    IN_PROGRESS → PASSED | REJECTED | EXPIRED
    PASSED      → EXECUTED | FAILED | EXPIRED

REJECTED, EXECUTED, FAILED and EXPIRED are terminal. Polls are never
deleted; terminal polls stay queryable.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, List, Optional

from ..constants import (
    MAX_DESC_LENGTH,
    MAX_LINK_LENGTH,
    MAX_TITLE_LENGTH,
    MIN_DESC_LENGTH,
    MIN_LINK_LENGTH,
    MIN_TITLE_LENGTH,
)
from ..exceptions import InvalidPollError, InvalidTransitionError
from ..logger import get_logger
from .messages import PollMessage

logger = get_logger(__name__)


class PollStatus(IntEnum):
    """Lifecycle stage."""
    IN_PROGRESS = 0     # Accepting votes
    PASSED = 1          # Quorum and threshold met, awaiting execution
    REJECTED = 2        # Quorum or threshold missed
    EXECUTED = 3        # Messages dispatched successfully
    EXPIRED = 4         # Passed but never executed within the window
    FAILED = 5          # A message in the batch failed


_VALID_TRANSITIONS: Dict[PollStatus, set] = {
    PollStatus.IN_PROGRESS: {PollStatus.PASSED, PollStatus.REJECTED, PollStatus.EXPIRED},
    PollStatus.PASSED:      {PollStatus.EXECUTED, PollStatus.FAILED, PollStatus.EXPIRED},
    PollStatus.REJECTED:    set(),
    PollStatus.EXECUTED:    set(),
    PollStatus.EXPIRED:     set(),
    PollStatus.FAILED:      set(),
}


def validate_poll_text(title: str, description: str, link: Optional[str]):
    if not title or not MIN_TITLE_LENGTH <= len(title) <= MAX_TITLE_LENGTH:
        raise InvalidPollError(
            f"Title must be {MIN_TITLE_LENGTH}-{MAX_TITLE_LENGTH} characters"
        )
    if not description or not MIN_DESC_LENGTH <= len(description) <= MAX_DESC_LENGTH:
        raise InvalidPollError(
            f"Description must be {MIN_DESC_LENGTH}-{MAX_DESC_LENGTH} characters"
        )
    if link is not None and not MIN_LINK_LENGTH <= len(link) <= MAX_LINK_LENGTH:
        raise InvalidPollError(
            f"Link must be {MIN_LINK_LENGTH}-{MAX_LINK_LENGTH} characters"
        )


@dataclass
class Poll:
    """
    A governance poll.

    Fields:
        id:                             Monotonic identifier (starts at 1)
        creator:                        Address that submitted the poll
        deposit_amount:                 Tokens escrowed at creation
        title / description / link:     Proposal text
        messages:                       Ordered batch dispatched if the poll passes
        status:                         Current lifecycle stage
        yes_votes / no_votes / abstain_votes: Stake-weighted tallies
        total_voting_power_at_creation: Quorum denominator (total staked at creation)
        start_height / end_height:      Voting window [start, end)
        executable_height:              First height at which a PASSED poll may execute
        expiration_height:              First height at which a PASSED poll can only expire
    """
    id: int
    creator: str
    deposit_amount: Decimal
    title: str
    description: str
    start_height: int
    end_height: int
    total_voting_power_at_creation: Decimal
    executable_height: int
    expiration_height: int
    link: Optional[str] = None
    messages: List[PollMessage] = field(default_factory=list)
    status: PollStatus = PollStatus.IN_PROGRESS
    yes_votes: Decimal = field(default_factory=lambda: Decimal("0"))
    no_votes: Decimal = field(default_factory=lambda: Decimal("0"))
    abstain_votes: Decimal = field(default_factory=lambda: Decimal("0"))
    deposit_settlement: Optional[str] = None     # "refunded" / "forfeited"
    settled_height: Optional[int] = None
    executed_height: Optional[int] = None
    failure_reason: Optional[str] = None
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    # ── Tallies ───────────────────────────────────────────────────────

    @property
    def total_votes(self) -> Decimal:
        """Total power that participated (including abstain)."""
        return self.yes_votes + self.no_votes + self.abstain_votes

    @property
    def participation(self) -> Decimal:
        """
        total_votes / denominator. A poll opened while nothing was staked
        counts any vote as full participation.
        """
        if self.total_voting_power_at_creation <= 0:
            return Decimal("1") if self.total_votes > 0 else Decimal("0")
        return self.total_votes / self.total_voting_power_at_creation

    @property
    def approval_rate(self) -> Decimal:
        """Share of non-abstain power voting yes."""
        decisive = self.yes_votes + self.no_votes
        if decisive <= 0:
            return Decimal("0")
        return self.yes_votes / decisive

    def quorum_reached(self, quorum: Decimal) -> bool:
        if self.total_votes <= 0:
            return False
        return self.participation >= quorum

    # ── State ─────────────────────────────────────────────────────────

    @property
    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self.status]

    @property
    def is_in_progress(self) -> bool:
        return self.status == PollStatus.IN_PROGRESS

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def transition_to(self, new_status: PollStatus, height: int, reason: str = ""):
        """
        Advance the poll to *new_status*.

        Raises InvalidTransitionError on anything the lifecycle forbids.
        """
        allowed = _VALID_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition poll #{self.id} from {self.status.name} → "
                f"{new_status.name}. Allowed: {[s.name for s in allowed]}"
            )
        old = self.status
        self._history.append({
            "from": old.name,
            "to": new_status.name,
            "reason": reason,
            "height": height,
        })
        self.status = new_status
        logger.info(f"Poll #{self.id} ({self.title}): {old.name} → {new_status.name} | {reason}")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "creator": self.creator,
            "status": self.status.name,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "messages": [m.to_dict() for m in self.messages],
            "depositAmount": str(self.deposit_amount),
            "depositSettlement": self.deposit_settlement,
            "yesVotes": str(self.yes_votes),
            "noVotes": str(self.no_votes),
            "abstainVotes": str(self.abstain_votes),
            "totalVotingPowerAtCreation": str(self.total_voting_power_at_creation),
            "startHeight": self.start_height,
            "endHeight": self.end_height,
            "executableHeight": self.executable_height,
            "expirationHeight": self.expiration_height,
            "settledHeight": self.settled_height,
            "executedHeight": self.executed_height,
            "failureReason": self.failure_reason,
        }

    def __repr__(self) -> str:
        return f"<Poll #{self.id} '{self.title}' status={self.status.name}>"
