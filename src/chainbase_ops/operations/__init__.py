"""Wallet operations built on the chain clients."""

from .base import Operation
from .bridge import BridgeOrchestrator
from .quotes import BridgeQuoteClient, bridge_eth_calldata
from .transfer import TransferOperation

__all__ = [
    "Operation",
    "BridgeOrchestrator",
    "BridgeQuoteClient",
    "TransferOperation",
    "bridge_eth_calldata",
]
