"""
Staking: stake ledger and O(1) reward distribution.
"""

from .ledger import Stake, StakeLedger
from .rewards import IncomeReceipt, RewardDistributor, RewardIndex

__all__ = [
    "IncomeReceipt",
    "RewardDistributor",
    "RewardIndex",
    "Stake",
    "StakeLedger",
]
