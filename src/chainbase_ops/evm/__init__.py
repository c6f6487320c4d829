"""EVM network access for chainbase-ops."""

from .client import ChainClient
from .connections import build_web3
from .session import WalletSession

__all__ = ["ChainClient", "WalletSession", "build_web3"]
