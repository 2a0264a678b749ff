"""
Polis On-Chain Governance

Provides:
  - PollStatus / Poll                              (polls.py)
  - PollMessage variants                           (messages.py)
  - VoteChoice / VoteRecord / VoteSnapshot         (voting.py)
  - PollRegistry                                   (registry.py)
  - ExecutionEngine / ExecutionReport              (execution.py)
"""

from .polls import Poll, PollStatus
from .messages import (
    CommunitySpend,
    CommunityUpdateConfig,
    ForwardMessage,
    PollMessage,
    UpdateGovernanceConfig,
    message_from_dict,
)
from .voting import VoteChoice, VoteRecord, VoteSnapshot
from .registry import PollRegistry
from .execution import ExecutionEngine, ExecutionReport

__all__ = [
    # Polls
    "Poll",
    "PollStatus",
    # Messages
    "CommunitySpend",
    "CommunityUpdateConfig",
    "ForwardMessage",
    "PollMessage",
    "UpdateGovernanceConfig",
    "message_from_dict",
    # Voting
    "VoteChoice",
    "VoteRecord",
    "VoteSnapshot",
    # Registry / execution
    "PollRegistry",
    "ExecutionEngine",
    "ExecutionReport",
]
