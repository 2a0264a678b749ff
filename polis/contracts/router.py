"""
Owned-Contract Router

Maps contract addresses to the handlers that receive admin messages from
the governance contract. Replies are success (return) or failure (raise);
the router never looks inside a payload.
"""

from typing import Any, Dict, List, Optional, Protocol

from ..exceptions import MessageDispatchError
from ..logger import get_logger
from ..transaction import Checkpointable

logger = get_logger(__name__)


class OwnedContract(Protocol):
    def handle(self, sender: str, payload: Dict[str, Any]) -> Any: ...


class ContractRouter:
    """Address book of contracts the governance contract can message."""

    def __init__(self):
        self._contracts: Dict[str, OwnedContract] = {}

    def register(self, address: str, contract: OwnedContract):
        if not address:
            raise ValueError("Contract address is required")
        self._contracts[address] = contract
        logger.debug(f"Registered owned contract {address}: {type(contract).__name__}")

    def unregister(self, address: str):
        self._contracts.pop(address, None)

    def get(self, address: str) -> Optional[OwnedContract]:
        return self._contracts.get(address)

    @property
    def addresses(self) -> List[str]:
        return sorted(self._contracts)

    def checkpointable(self) -> List[Checkpointable]:
        """Registered contracts that can take part in a rollback."""
        return [c for c in self._contracts.values() if isinstance(c, Checkpointable)]

    def dispatch(self, sender: str, address: str, payload: Dict[str, Any]) -> Any:
        contract = self._contracts.get(address)
        if contract is None:
            raise MessageDispatchError(f"No owned contract at {address}", contract=address)
        logger.debug(f"Dispatch {sender} → {address}: {payload.get('action', '<opaque>')}")
        return contract.handle(sender, payload)

    def __repr__(self) -> str:
        return f"<ContractRouter contracts={len(self._contracts)}>"
