"""
Polis Configuration

Governance parameters loaded from TOML, with environment overrides.
"""

from .loader import (
    CommunityConfig,
    DepositPolicy,
    GovernanceConfig,
    PollConfig,
    load_config,
)

__all__ = [
    "CommunityConfig",
    "DepositPolicy",
    "GovernanceConfig",
    "PollConfig",
    "load_config",
]
