"""
Contracts owned by the governance contract.
"""

from .community import CommunityPool
from .router import ContractRouter, OwnedContract

__all__ = ["CommunityPool", "ContractRouter", "OwnedContract"]
