"""
Governance Token Ledger

A minimal fungible-token balance book standing in for the token contract
the governance engine talks to:
  - balance_of / total_supply
  - transfer between accounts (all-or-nothing)
  - mint for genesis allocations
  - Treasury: the governance contract's view of its own balance, exposing
    transfer_from(account) / transfer_to(account)
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from ..exceptions import InsufficientBalanceError, InvalidAmountError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    sender: str
    recipient: str
    amount: Decimal
    memo: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "memo": self.memo,
        }


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class TokenLedger:
    """
    Account balances of the governance token.

    Every mutating call either applies completely or raises before touching
    any balance.
    """

    def __init__(self, symbol: str = "GOV"):
        self.symbol = symbol
        self._balances: Dict[str, Decimal] = {}
        self._total_supply = Decimal("0")
        self._events: List[TransferEvent] = []

    @property
    def total_supply(self) -> Decimal:
        return self._total_supply

    @property
    def events(self) -> List[TransferEvent]:
        return list(self._events)

    def balance_of(self, account: str) -> Decimal:
        return self._balances.get(account, Decimal("0"))

    def mint(self, account: str, amount: Decimal):
        """Credit newly issued tokens (genesis / test setup)."""
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError("Mint amount must be positive")
        self._balances[account] = self.balance_of(account) + amount
        self._total_supply += amount
        self._events.append(TransferEvent("", account, amount, "mint"))

    def transfer(self, sender: str, recipient: str, amount: Decimal, memo: str = ""):
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError("Transfer amount must be positive")
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalanceError(sender, amount, balance)

        self._balances[sender] = balance - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        self._events.append(TransferEvent(sender, recipient, amount, memo))
        logger.debug(f"Transfer {sender} → {recipient}: {amount} {self.symbol} ({memo})")

    # ── Checkpointing ─────────────────────────────────────────────────

    def snapshot(self) -> Tuple[Dict[str, Decimal], Decimal, int]:
        return dict(self._balances), self._total_supply, len(self._events)

    def restore(self, state: Tuple[Dict[str, Decimal], Decimal, int]):
        balances, total_supply, event_count = state
        self._balances = dict(balances)
        self._total_supply = total_supply
        del self._events[event_count:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "totalSupply": str(self._total_supply),
            "holders": len([b for b in self._balances.values() if b > 0]),
        }

    def __repr__(self) -> str:
        return f"<TokenLedger {self.symbol} supply={self._total_supply}>"


@dataclass
class Treasury:
    """The governance contract's own token account."""
    ledger: TokenLedger
    address: str

    @property
    def balance(self) -> Decimal:
        return self.ledger.balance_of(self.address)

    def transfer_from(self, account: str, amount: Decimal, memo: str = ""):
        """Pull *amount* from *account* into the treasury."""
        self.ledger.transfer(account, self.address, amount, memo)

    def transfer_to(self, account: str, amount: Decimal, memo: str = ""):
        """Pay *amount* out of the treasury to *account*."""
        self.ledger.transfer(self.address, account, amount, memo)
