"""
Polis TOML Configuration Loader

Loads governance parameters from a TOML file with environment variable
overrides (dataclass + from_dict + apply_env).

Environment variable mapping:
    [polls] quorum           → POLIS_QUORUM
    [polls] threshold        → POLIS_THRESHOLD
    [polls] voting_period    → POLIS_VOTING_PERIOD
    [polls] timelock_period  → POLIS_TIMELOCK_PERIOD
    [polls] expiration_period → POLIS_EXPIRATION_PERIOD
    [polls] proposal_deposit → POLIS_PROPOSAL_DEPOSIT
    [polls] deposit_policy   → POLIS_DEPOSIT_POLICY
    [community] spend_limit  → POLIS_COMMUNITY_SPEND_LIMIT
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    COMMUNITY_DEFAULT_SPEND_LIMIT,
    GOVERNANCE_EXPIRATION_PERIOD,
    GOVERNANCE_PROPOSAL_DEPOSIT,
    GOVERNANCE_QUORUM,
    GOVERNANCE_THRESHOLD,
    GOVERNANCE_TIMELOCK_PERIOD,
    GOVERNANCE_VOTING_PERIOD,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"{name} must be a decimal number, got {value!r}")


def _optional_decimal(value: Any, name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return _decimal(value, name)


class DepositPolicy(Enum):
    """What happens to a Rejected poll's deposit."""
    FORFEIT = "forfeit"                            # always feeds staker income
    REFUND = "refund"                              # always returned to creator
    FORFEIT_BELOW_QUORUM = "forfeit_below_quorum"  # returned if quorum was met


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@dataclass
class PollConfig:
    """[polls] section."""
    quorum: Decimal = GOVERNANCE_QUORUM
    threshold: Decimal = GOVERNANCE_THRESHOLD
    voting_period: int = GOVERNANCE_VOTING_PERIOD
    timelock_period: int = GOVERNANCE_TIMELOCK_PERIOD
    expiration_period: int = GOVERNANCE_EXPIRATION_PERIOD
    proposal_deposit: Decimal = GOVERNANCE_PROPOSAL_DEPOSIT
    deposit_policy: DepositPolicy = DepositPolicy.FORFEIT
    # Share of the creation-time denominator that settles a poll early.
    early_settlement_threshold: Optional[Decimal] = None
    lock_voted_stake: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PollConfig":
        return cls(
            quorum=_decimal(data.get("quorum", GOVERNANCE_QUORUM), "quorum"),
            threshold=_decimal(data.get("threshold", GOVERNANCE_THRESHOLD), "threshold"),
            voting_period=int(data.get("voting_period", GOVERNANCE_VOTING_PERIOD)),
            timelock_period=int(data.get("timelock_period", GOVERNANCE_TIMELOCK_PERIOD)),
            expiration_period=int(data.get("expiration_period", GOVERNANCE_EXPIRATION_PERIOD)),
            proposal_deposit=_decimal(
                data.get("proposal_deposit", GOVERNANCE_PROPOSAL_DEPOSIT), "proposal_deposit"
            ),
            deposit_policy=DepositPolicy(data.get("deposit_policy", DepositPolicy.FORFEIT.value)),
            early_settlement_threshold=_optional_decimal(
                data.get("early_settlement_threshold"), "early_settlement_threshold"
            ),
            lock_voted_stake=bool(data.get("lock_voted_stake", False)),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("POLIS_QUORUM"):
            self.quorum = _decimal(v, "POLIS_QUORUM")
        if v := os.environ.get("POLIS_THRESHOLD"):
            self.threshold = _decimal(v, "POLIS_THRESHOLD")
        if v := os.environ.get("POLIS_VOTING_PERIOD"):
            self.voting_period = int(v)
        if v := os.environ.get("POLIS_TIMELOCK_PERIOD"):
            self.timelock_period = int(v)
        if v := os.environ.get("POLIS_EXPIRATION_PERIOD"):
            self.expiration_period = int(v)
        if v := os.environ.get("POLIS_PROPOSAL_DEPOSIT"):
            self.proposal_deposit = _decimal(v, "POLIS_PROPOSAL_DEPOSIT")
        if v := os.environ.get("POLIS_DEPOSIT_POLICY"):
            self.deposit_policy = DepositPolicy(v.strip().lower())

    def validate(self) -> None:
        for name in ("quorum", "threshold"):
            value = getattr(self, name)
            if not Decimal(0) <= value <= Decimal(1):
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
        if self.early_settlement_threshold is not None and not (
            Decimal(0) < self.early_settlement_threshold <= Decimal(1)
        ):
            raise ConfigurationError(
                f"early_settlement_threshold must be within (0, 1], "
                f"got {self.early_settlement_threshold}"
            )
        if (
            self.early_settlement_threshold is not None
            and self.early_settlement_threshold < self.quorum
        ):
            raise ConfigurationError(
                f"early_settlement_threshold {self.early_settlement_threshold} "
                f"is below quorum {self.quorum}"
            )
        if self.voting_period <= 0:
            raise ConfigurationError("voting_period must be positive")
        if self.timelock_period < 0:
            raise ConfigurationError("timelock_period cannot be negative")
        if self.expiration_period <= 0:
            raise ConfigurationError("expiration_period must be positive")
        if self.proposal_deposit < 0:
            raise ConfigurationError("proposal_deposit cannot be negative")


@dataclass
class CommunityConfig:
    """[community] section."""
    spend_limit: Decimal = COMMUNITY_DEFAULT_SPEND_LIMIT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommunityConfig":
        return cls(
            spend_limit=_decimal(
                data.get("spend_limit", COMMUNITY_DEFAULT_SPEND_LIMIT), "spend_limit"
            ),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("POLIS_COMMUNITY_SPEND_LIMIT"):
            self.spend_limit = _decimal(v, "POLIS_COMMUNITY_SPEND_LIMIT")

    def validate(self) -> None:
        if self.spend_limit < 0:
            raise ConfigurationError("spend_limit cannot be negative")


@dataclass
class GovernanceConfig:
    """Top-level configuration."""
    owner: str = ""
    token_address: str = "polis1token"
    contract_address: str = "polis1gov"
    community_address: str = "polis1community"
    polls: PollConfig = field(default_factory=PollConfig)
    community: CommunityConfig = field(default_factory=CommunityConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        return cls(
            owner=data.get("owner", ""),
            token_address=data.get("token_address", "polis1token"),
            contract_address=data.get("contract_address", "polis1gov"),
            community_address=data.get("community_address", "polis1community"),
            polls=PollConfig.from_dict(data.get("polls", {})),
            community=CommunityConfig.from_dict(data.get("community", {})),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("POLIS_OWNER"):
            self.owner = v
        self.polls.apply_env()
        self.community.apply_env()

    def validate(self) -> None:
        self.polls.validate()
        self.community.validate()

    def updated(self, **changes: Any) -> "GovernanceConfig":
        """
        Return a validated copy with poll parameters and/or owner replaced.

        Unknown keys raise ConfigurationError; the receiver is left untouched.
        """
        poll_fields = {f.name for f in fields(PollConfig)}
        poll_changes = {}
        top_changes = {}
        for key, value in changes.items():
            if value is None:
                continue
            if key in poll_fields:
                poll_changes[key] = value
            elif key == "owner":
                top_changes[key] = value
            else:
                raise ConfigurationError(f"Unknown governance parameter '{key}'")

        polls = replace(self.polls, **poll_changes)
        for name in ("quorum", "threshold", "proposal_deposit"):
            setattr(polls, name, _decimal(getattr(polls, name), name))
        for name in ("voting_period", "timelock_period", "expiration_period"):
            setattr(polls, name, int(getattr(polls, name)))
        polls.early_settlement_threshold = _optional_decimal(
            polls.early_settlement_threshold, "early_settlement_threshold"
        )
        if not isinstance(polls.deposit_policy, DepositPolicy):
            polls.deposit_policy = DepositPolicy(polls.deposit_policy)
        new = replace(self, polls=polls, **top_changes)
        new.validate()
        return new

    def to_dict(self) -> Dict[str, Any]:
        p = self.polls
        return {
            "owner": self.owner,
            "tokenAddress": self.token_address,
            "contractAddress": self.contract_address,
            "communityAddress": self.community_address,
            "quorum": str(p.quorum),
            "threshold": str(p.threshold),
            "votingPeriod": p.voting_period,
            "timelockPeriod": p.timelock_period,
            "expirationPeriod": p.expiration_period,
            "proposalDeposit": str(p.proposal_deposit),
            "depositPolicy": p.deposit_policy.value,
            "earlySettlementThreshold": (
                str(p.early_settlement_threshold)
                if p.early_settlement_threshold is not None else None
            ),
            "lockVotedStake": p.lock_voted_stake,
            "communitySpendLimit": str(self.community.spend_limit),
        }


def load_config(path: Optional[Union[str, Path]] = None) -> GovernanceConfig:
    """
    Load configuration from a TOML file, then apply env overrides.

    A missing file yields the defaults (still subject to env overrides).
    """
    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomli.load(f)
            logger.info(f"Loaded governance config from {config_path}")
        else:
            logger.warning(f"Config file {config_path} not found, using defaults")

    config = GovernanceConfig.from_dict(data)
    config.apply_env()
    config.validate()
    return config
