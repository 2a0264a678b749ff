"""
Polis Exceptions

Custom exception classes for the governance engine, grouped by how a caller
should react to them:

  - ValidationError      input rejected before any state was touched
  - StateConflictError   the call arrived at the wrong lifecycle point
  - ResourceError        nothing to do right now; retry after state changes
  - ExecutionError       a collaborator failed while running a poll's messages
"""

from decimal import Decimal
from typing import Optional


class PolisException(Exception):
    """Base exception for Polis."""
    pass


class ConfigurationError(PolisException):
    """Configuration error."""
    pass


class GovernanceError(PolisException):
    """Base governance exception."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  CATEGORIES
# ══════════════════════════════════════════════════════════════════════

class ValidationError(GovernanceError):
    """Caller input rejected; no side effects occurred."""


class StateConflictError(GovernanceError):
    """Call arrived at the wrong lifecycle point."""


class ResourceError(GovernanceError):
    """Nothing to do; the caller may retry after state changes elsewhere."""


class ExecutionError(GovernanceError):
    """A message dispatched to a collaborator failed."""


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════

class InvalidAmountError(ValidationError):
    """Amount must be strictly positive."""


class InvalidPollError(ValidationError):
    """Poll data (title, description, link, messages, period) is invalid."""


class InsufficientDepositError(ValidationError):
    """Poll deposit below the configured minimum."""
    def __init__(self, required: Decimal, actual: Decimal):
        self.required = required
        self.actual = actual
        super().__init__(
            f"Insufficient deposit: {actual} tokens (required: {required} tokens)"
        )


class InsufficientStakeError(ValidationError):
    """Unstake amount exceeds the staked balance."""
    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stake: requested {requested} tokens, "
            f"staked {available} tokens"
        )


# ══════════════════════════════════════════════════════════════════════
#  STATE CONFLICTS
# ══════════════════════════════════════════════════════════════════════

class PollNotFoundError(StateConflictError):
    """No poll with the given id."""
    def __init__(self, poll_id: int):
        self.poll_id = poll_id
        super().__init__(f"Poll #{poll_id} does not exist")


class InvalidTransitionError(StateConflictError):
    """Illegal poll status transition."""


class PollNotInProgressError(StateConflictError):
    """Poll is not accepting votes."""


class AlreadyVotedError(StateConflictError):
    """Voter already cast a vote on this poll."""


class VotingNotEndedError(StateConflictError):
    """end_poll called before the voting period is over."""


class NotPassedError(StateConflictError):
    """execute / expire on a poll that is not Passed."""


class AlreadyExecutedError(StateConflictError):
    """Poll messages were already dispatched (Executed or Failed)."""


class TimelockNotExpiredError(StateConflictError):
    """Passed poll is not executable yet."""


class ExecutionWindowClosedError(StateConflictError):
    """Passed poll is past its execution window; it can only expire."""


class ExecutionWindowOpenError(StateConflictError):
    """expire_poll called while the poll can still be executed."""


class LockedByActivePollError(StateConflictError):
    """Stake is committed to polls still in progress."""
    def __init__(self, requested: Decimal, unlocked: Decimal):
        self.requested = requested
        self.unlocked = unlocked
        super().__init__(
            f"Stake locked by active polls: requested {requested} tokens, "
            f"withdrawable {unlocked} tokens"
        )


class UnauthorizedError(StateConflictError):
    """Sender is not allowed to perform this action."""


# ══════════════════════════════════════════════════════════════════════
#  RESOURCES
# ══════════════════════════════════════════════════════════════════════

class NoStakersError(ResourceError):
    """Income cannot be distributed while nothing is staked."""


class NothingToClaimError(ResourceError):
    """No claimable reward."""


class NoStakeError(ResourceError):
    """Voter has no staked balance."""


class InsufficientBalanceError(ResourceError):
    """Token balance too low for the requested transfer."""
    def __init__(self, account: str, required: Decimal, available: Decimal):
        self.account = account
        self.required = required
        self.available = available
        super().__init__(
            f"{account} holds {available} tokens, {required} tokens required"
        )


# ══════════════════════════════════════════════════════════════════════
#  EXECUTION
# ══════════════════════════════════════════════════════════════════════

class MessageDispatchError(ExecutionError):
    """Owned contract rejected a dispatched message."""
    def __init__(self, message: str, contract: Optional[str] = None):
        self.contract = contract
        super().__init__(message)


class SpendLimitExceededError(ExecutionError):
    """Community pool spend larger than its per-request limit."""
    def __init__(self, amount: Decimal, limit: Decimal):
        self.amount = amount
        self.limit = limit
        super().__init__(f"Cannot spend {amount} tokens, spend limit is {limit} tokens")
