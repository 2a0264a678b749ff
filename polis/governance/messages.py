"""
Poll Messages

The actions a poll carries are a closed set of tagged variants. The
execution engine never interprets them: each variant only knows which
owned contract it is addressed to and what payload to hand over.

  - UpdateGovernanceConfig  change governance parameters (self-addressed)
  - CommunitySpend          pay out of the community pool
  - CommunityUpdateConfig   change the community pool's spend limit / owner
  - ForwardMessage          opaque payload for any other owned contract
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, ClassVar, Dict, List, Optional, Type

from ..exceptions import InvalidPollError


@dataclass(frozen=True)
class PollMessage:
    """Base variant; `order` sorts a poll's batch."""
    kind: ClassVar[str] = ""
    order: int = 0

    def destination(self, addresses: Dict[str, str]) -> str:
        """Address of the owned contract this message goes to."""
        raise NotImplementedError

    def payload(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "order": self.order, **self._fields()}

    def _fields(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class UpdateGovernanceConfig(PollMessage):
    kind: ClassVar[str] = "update_governance_config"
    params: Dict[str, Any] = field(default_factory=dict)

    def destination(self, addresses: Dict[str, str]) -> str:
        return addresses["governance"]

    def payload(self) -> Dict[str, Any]:
        return {"action": "update_config", **self.params}

    def _fields(self) -> Dict[str, Any]:
        return {"params": {k: str(v) if isinstance(v, Decimal) else v for k, v in self.params.items()}}


@dataclass(frozen=True)
class CommunitySpend(PollMessage):
    kind: ClassVar[str] = "community_spend"
    recipient: str = ""
    amount: Decimal = field(default_factory=lambda: Decimal("0"))

    def destination(self, addresses: Dict[str, str]) -> str:
        return addresses["community"]

    def payload(self) -> Dict[str, Any]:
        return {"action": "spend", "recipient": self.recipient, "amount": self.amount}

    def _fields(self) -> Dict[str, Any]:
        return {"recipient": self.recipient, "amount": str(self.amount)}


@dataclass(frozen=True)
class CommunityUpdateConfig(PollMessage):
    kind: ClassVar[str] = "community_update_config"
    spend_limit: Optional[Decimal] = None
    owner: Optional[str] = None

    def destination(self, addresses: Dict[str, str]) -> str:
        return addresses["community"]

    def payload(self) -> Dict[str, Any]:
        return {"action": "update_config", "spend_limit": self.spend_limit, "owner": self.owner}

    def _fields(self) -> Dict[str, Any]:
        return {
            "spendLimit": str(self.spend_limit) if self.spend_limit is not None else None,
            "owner": self.owner,
        }


@dataclass(frozen=True)
class ForwardMessage(PollMessage):
    kind: ClassVar[str] = "forward"
    contract: str = ""
    msg: Dict[str, Any] = field(default_factory=dict)

    def destination(self, addresses: Dict[str, str]) -> str:
        return self.contract

    def payload(self) -> Dict[str, Any]:
        return dict(self.msg)

    def _fields(self) -> Dict[str, Any]:
        return {"contract": self.contract, "msg": self.msg}


MESSAGE_TYPES: Dict[str, Type[PollMessage]] = {
    cls.kind: cls
    for cls in (UpdateGovernanceConfig, CommunitySpend, CommunityUpdateConfig, ForwardMessage)
}


def message_from_dict(data: Dict[str, Any]) -> PollMessage:
    """Build a message variant from its tagged dict form."""
    kind = data.get("kind")
    order = int(data.get("order", 0))
    if kind == UpdateGovernanceConfig.kind:
        return UpdateGovernanceConfig(order=order, params=dict(data.get("params", {})))
    if kind == CommunitySpend.kind:
        return CommunitySpend(
            order=order,
            recipient=data.get("recipient", ""),
            amount=Decimal(str(data.get("amount", "0"))),
        )
    if kind == CommunityUpdateConfig.kind:
        limit = data.get("spendLimit", data.get("spend_limit"))
        return CommunityUpdateConfig(
            order=order,
            spend_limit=Decimal(str(limit)) if limit is not None else None,
            owner=data.get("owner"),
        )
    if kind == ForwardMessage.kind:
        return ForwardMessage(order=order, contract=data.get("contract", ""), msg=dict(data.get("msg", {})))
    raise InvalidPollError(f"Unknown poll message kind: {kind!r}")


def validate_messages(messages: List[PollMessage]) -> List[PollMessage]:
    """
    Check every entry is a known variant and return the batch sorted by
    `order` (stable for equal orders).
    """
    for msg in messages:
        if type(msg) not in MESSAGE_TYPES.values():
            raise InvalidPollError(f"Unsupported poll message: {msg!r}")
        if isinstance(msg, CommunitySpend) and (not msg.recipient or msg.amount <= 0):
            raise InvalidPollError("Community spend needs a recipient and a positive amount")
        if isinstance(msg, ForwardMessage) and not msg.contract:
            raise InvalidPollError("Forwarded message needs a contract address")
    return sorted(messages, key=lambda m: m.order)
