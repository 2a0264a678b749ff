from .ledger import TokenLedger, TransferEvent, Treasury

__all__ = ["TokenLedger", "TransferEvent", "Treasury"]
