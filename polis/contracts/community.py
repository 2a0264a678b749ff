"""
Community Pool

A separately custodied fund owned by the governance contract. Only the
owner may move funds or change settings, and each spend is capped by a
per-request limit.

Actions (payload["action"]):
    spend          {recipient, amount}
    update_config  {spend_limit?, owner?}
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from ..exceptions import (
    InvalidAmountError,
    MessageDispatchError,
    SpendLimitExceededError,
    UnauthorizedError,
)
from ..logger import get_logger
from ..tokens.ledger import TokenLedger, Treasury

logger = get_logger(__name__)


class CommunityPool:

    def __init__(
        self,
        address: str,
        owner: str,
        token: TokenLedger,
        spend_limit: Decimal,
    ):
        self.address = address
        self.owner = owner
        self.spend_limit = Decimal(spend_limit)
        self._treasury = Treasury(token, address)

    @property
    def balance(self) -> Decimal:
        return self._treasury.balance

    def _require_owner(self, sender: str):
        if sender != self.owner:
            raise UnauthorizedError(f"{sender} is not the owner of community pool {self.address}")

    def handle(self, sender: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        action = payload.get("action")
        if action == "spend":
            return self.spend(sender, payload.get("recipient", ""), payload.get("amount", 0))
        if action == "update_config":
            return self.update_config(
                sender,
                spend_limit=payload.get("spend_limit"),
                owner=payload.get("owner"),
            )
        raise MessageDispatchError(
            f"Community pool does not understand action {action!r}", contract=self.address
        )

    def spend(self, sender: str, recipient: str, amount: Decimal) -> Dict[str, Any]:
        """Send *amount* to *recipient* for community purposes."""
        self._require_owner(sender)
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError("Spend amount must be positive")
        if amount > self.spend_limit:
            raise SpendLimitExceededError(amount, self.spend_limit)

        self._treasury.transfer_to(recipient, amount, memo="community spend")
        logger.info(f"Community spend: {amount} tokens → {recipient}")
        return {"action": "spend", "recipient": recipient, "amount": str(amount)}

    def update_config(
        self,
        sender: str,
        spend_limit: Optional[Decimal] = None,
        owner: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._require_owner(sender)
        if spend_limit is not None:
            spend_limit = Decimal(spend_limit)
            if spend_limit < 0:
                raise InvalidAmountError("Spend limit cannot be negative")
            self.spend_limit = spend_limit
        if owner:
            self.owner = owner
        logger.info(f"Community pool config updated: owner={self.owner}, spend_limit={self.spend_limit}")
        return {"action": "update_config"}

    # ── Checkpointing ─────────────────────────────────────────────────

    def snapshot(self) -> Tuple[str, Decimal]:
        return self.owner, self.spend_limit

    def restore(self, state: Tuple[str, Decimal]):
        self.owner, self.spend_limit = state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "spendLimit": str(self.spend_limit),
            "balance": str(self.balance),
        }

    def __repr__(self) -> str:
        return f"<CommunityPool {self.address} owner={self.owner} limit={self.spend_limit}>"
