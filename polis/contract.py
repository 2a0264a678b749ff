"""
Governance Contract

Single entry point wiring the stake ledger, reward distributor, vote
snapshot, poll registry and execution engine together, and exposing the
command surface (state-mutating) and the query surface (read-only).

Calls are admitted one at a time (single writer). Each command validates
its input before touching any state, so a raised error means nothing
changed. Block height is supplied by the host through `set_height` /
`advance`.
"""

import functools
import threading
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .config.loader import GovernanceConfig, PollConfig
from .constants import DEFAULT_QUERY_LIMIT
from .contracts.community import CommunityPool
from .contracts.router import ContractRouter
from .exceptions import (
    InvalidAmountError,
    MessageDispatchError,
    UnauthorizedError,
    ConfigurationError,
)
from .governance.execution import ExecutionEngine, ExecutionReport
from .governance.messages import PollMessage
from .governance.polls import Poll, PollStatus
from .governance.registry import PollRegistry
from .governance.voting import VoteRecord, VoteSnapshot
from .logger import get_logger
from .staking.ledger import Stake, StakeLedger
from .staking.rewards import IncomeReceipt, RewardDistributor, RewardIndex
from .tokens.ledger import TokenLedger, Treasury

logger = get_logger(__name__)


def command(fn):
    """Serialize state-mutating calls."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return fn(self, *args, **kwargs)
    return wrapper


class GovernanceContract:
    """
    Stake-weighted governance over a protocol.

    Example:
        >>> token = TokenLedger()
        >>> gov = GovernanceContract(GovernanceConfig(owner="admin1"), token)
        >>> token.mint("alice1", Decimal("500"))
        >>> gov.stake("alice1", Decimal("300"))
    """

    def __init__(
        self,
        config: GovernanceConfig,
        token: TokenLedger,
        router: Optional[ContractRouter] = None,
        community: Optional[CommunityPool] = None,
        height: int = 0,
    ):
        config.validate()
        self.config = config
        self.token = token
        self.address = config.contract_address
        self.treasury = Treasury(token, self.address)
        self.router = router or ContractRouter()
        self._height = height
        self._lock = threading.RLock()

        self.index = RewardIndex()
        self.distributor = RewardDistributor(self.index)
        self.ledger = StakeLedger(
            self.index,
            self.distributor,
            is_poll_active=lambda poll_id: self.registry.is_active(poll_id),
            lock_voted_stake=lambda: self.config.polls.lock_voted_stake,
        )
        self.votes = VoteSnapshot(self.ledger)
        self.registry = PollRegistry(
            self.ledger,
            self.votes,
            self.distributor,
            self.treasury,
            get_config=lambda: self.config.polls,
        )

        if community is None:
            community = CommunityPool(
                address=config.community_address,
                owner=self.address,
                token=token,
                spend_limit=config.community.spend_limit,
            )
        self.community = community
        self.router.register(self.address, self)
        self.router.register(community.address, community)

        self.engine = ExecutionEngine(
            self.registry,
            self.router,
            sender=self.address,
            addresses={"governance": self.address, "community": community.address},
            participants=lambda: [self.token],
        )
        logger.info(
            f"Governance contract {self.address} initialized at height {height} "
            f"(quorum={config.polls.quorum}, threshold={config.polls.threshold})"
        )

    # ── Height ────────────────────────────────────────────────────────

    @property
    def height(self) -> int:
        return self._height

    def set_height(self, height: int):
        with self._lock:
            if height < self._height:
                raise ValueError(f"Height cannot go backwards ({height} < {self._height})")
            self._height = height

    def advance(self, blocks: int = 1) -> int:
        with self._lock:
            if blocks < 0:
                raise ValueError("Cannot advance by a negative number of blocks")
            self._height += blocks
            return self._height

    @staticmethod
    def _positive(amount: Any, what: str) -> Decimal:
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(f"{what} must be positive, got {amount}")
        return amount

    # ══════════════════════════════════════════════════════════════════
    #  COMMANDS
    # ══════════════════════════════════════════════════════════════════

    @command
    def stake(self, account: str, amount: Any) -> Stake:
        amount = self._positive(amount, "Stake amount")
        self.treasury.transfer_from(account, amount, memo="stake")
        return self.ledger.stake(account, amount)

    @command
    def unstake(self, account: str, amount: Any) -> Stake:
        amount = self.ledger.check_unstake(account, amount)
        stake = self.ledger.unstake(account, amount)
        self.treasury.transfer_to(account, amount, memo="unstake")
        return stake

    @command
    def claim_reward(self, account: str) -> Decimal:
        self.ledger.check_claim(account)
        payable = self.ledger.claim_reward(account)
        self.treasury.transfer_to(account, payable, memo="staking reward")
        return payable

    @command
    def deposit_income(self, sender: str, amount: Any) -> IncomeReceipt:
        """
        Accept income pushed by the fee forwarder.

        Zero is a no-op; negative amounts are rejected.
        """
        amount = Decimal(amount)
        if amount < 0:
            raise InvalidAmountError(f"Income amount cannot be negative: {amount}")
        if amount > 0:
            self.treasury.transfer_from(sender, amount, memo="income")
        return self.distributor.deposit_income(amount)

    @command
    def create_poll(
        self,
        creator: str,
        deposit: Any,
        title: str,
        description: str,
        messages: Optional[List[PollMessage]] = None,
        voting_period: Optional[int] = None,
        link: Optional[str] = None,
    ) -> Poll:
        return self.registry.create_poll(
            creator=creator,
            deposit=Decimal(deposit),
            title=title,
            description=description,
            height=self._height,
            messages=messages,
            voting_period=voting_period,
            link=link,
        )

    @command
    def cast_vote(self, poll_id: int, voter: str, choice: Any) -> VoteRecord:
        return self.registry.cast_vote(poll_id, voter, choice, self._height)

    @command
    def end_poll(self, poll_id: int) -> Poll:
        return self.registry.end_poll(poll_id, self._height)

    @command
    def execute_poll(self, poll_id: int) -> ExecutionReport:
        return self.engine.execute(poll_id, self._height)

    @command
    def expire_poll(self, poll_id: int) -> Poll:
        return self.registry.expire_poll(poll_id, self._height)

    @command
    def update_config(self, sender: str, **params: Any) -> GovernanceConfig:
        """
        Owner-only update of governance parameters.

        Accepts any PollConfig field plus `owner`; the new configuration is
        validated as a whole before it replaces the current one.
        """
        if sender != self.config.owner and sender != self.address:
            raise UnauthorizedError(f"{sender} may not update the governance config")
        self.config = self.config.updated(**params)
        logger.info(f"Governance config updated by {sender}: {sorted(k for k, v in params.items() if v is not None)}")
        return self.config

    # ── Owned-contract interface (self-addressed poll messages) ───────

    def handle(self, sender: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        action = payload.get("action")
        if action != "update_config":
            raise MessageDispatchError(
                f"Governance contract does not understand action {action!r}",
                contract=self.address,
            )
        if sender != self.address:
            raise UnauthorizedError("Only passed polls may update the governance config")
        params = {k: v for k, v in payload.items() if k != "action"}
        try:
            self.config = self.config.updated(**params)
        except (ConfigurationError, ValueError) as e:
            raise MessageDispatchError(str(e), contract=self.address) from e
        logger.info(f"Governance config updated by poll: {sorted(params)}")
        return {"action": "update_config"}

    def snapshot(self) -> GovernanceConfig:
        return self.config

    def restore(self, state: GovernanceConfig):
        self.config = state

    # ══════════════════════════════════════════════════════════════════
    #  QUERIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def poll_config(self) -> PollConfig:
        return self.config.polls

    def query_config(self) -> Dict[str, Any]:
        return self.config.to_dict()

    def query_state(self) -> Dict[str, Any]:
        return {
            "height": self._height,
            "pollCount": self.registry.poll_count,
            "totalStaked": str(self.index.total_staked),
            "totalEscrowed": str(self.registry.total_escrowed),
            "withheldIncome": str(self.index.withheld_income),
            "treasuryBalance": str(self.treasury.balance),
        }

    def query_poll(self, poll_id: int) -> Dict[str, Any]:
        return self.registry.get(poll_id).to_dict()

    def query_polls(
        self,
        status: Optional[PollStatus] = None,
        start_after: Optional[int] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        return [
            p.to_dict()
            for p in self.registry.list_polls(status, start_after, limit, descending)
        ]

    def query_vote(self, poll_id: int, voter: str) -> Optional[Dict[str, Any]]:
        self.registry.get(poll_id)
        record = self.votes.get_vote(poll_id, voter)
        return record.to_dict() if record else None

    def query_voters(
        self,
        poll_id: int,
        start_after: Optional[str] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[Dict[str, Any]]:
        self.registry.get(poll_id)
        return [v.to_dict() for v in self.votes.voters(poll_id, start_after, limit)]

    def query_staker(self, account: str) -> Dict[str, Any]:
        return {
            "account": account,
            "balance": str(self.ledger.balance(account)),
            "pendingVotingPower": str(self.ledger.pending_voting_power(account)),
            "withdrawable": str(self.ledger.withdrawable(account)),
            "claimableReward": str(self.ledger.claimable_reward(account)),
        }

    def balance(self, account: str) -> Decimal:
        return self.ledger.balance(account)

    def claimable_reward(self, account: str) -> Decimal:
        return self.ledger.claimable_reward(account)

    def query_reward_index(self) -> Dict[str, Any]:
        return self.index.to_dict()

    def treasury_liabilities(self) -> Decimal:
        """Tokens the treasury must hold: stakes, escrowed deposits, owed rewards."""
        return (
            self.index.total_staked
            + self.registry.total_escrowed
            + self.index.reward_reserve
        )

    def __repr__(self) -> str:
        return (
            f"<GovernanceContract {self.address} height={self._height} "
            f"polls={self.registry.poll_count} staked={self.index.total_staked}>"
        )
