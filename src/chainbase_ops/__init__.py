"""Chainbase testnet automation - resilient transaction execution and bridging.

This library runs sequential wallet operations (ETH transfers and bridging
between Sepolia and the Chainbase testnet) with nonce tracking, gas price
clamping and proxy-rotation retries.
"""

from .config import (
    AutomationSettings,
    BridgeSettings,
    ConfigAccessor,
    EnvConfig,
    GasPolicy,
    MappingConfig,
    NetworkParams,
    resolve_config,
)
from .evm import ChainClient, WalletSession
from .exceptions import (
    BridgeQuoteError,
    ChainOpsError,
    ConfigurationError,
    NetworkError,
    TransactionError,
    ValidationError,
)
from .failures import ClassifiedError, classify_error, is_connection_error
from .operations import BridgeOrchestrator, BridgeQuoteClient, TransferOperation
from .proxy import ProxyEndpoint, ProxyManager, ProxyType, RotationPolicy
from .types import (
    Balance,
    BatchSummary,
    BridgeDirection,
    BridgeResult,
    BridgeRoute,
    ErrorClass,
    ErrorKind,
    GasQuote,
    Network,
    OperationStatus,
    TransferAmount,
    TxResult,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "AutomationSettings",
    "BridgeSettings",
    "ConfigAccessor",
    "EnvConfig",
    "GasPolicy",
    "MappingConfig",
    "NetworkParams",
    "resolve_config",
    # Clients and operations
    "ChainClient",
    "WalletSession",
    "BridgeOrchestrator",
    "BridgeQuoteClient",
    "TransferOperation",
    "ProxyManager",
    "ProxyEndpoint",
    "ProxyType",
    "RotationPolicy",
    # Types and enums
    "Balance",
    "BatchSummary",
    "BridgeDirection",
    "BridgeResult",
    "BridgeRoute",
    "ErrorClass",
    "ErrorKind",
    "GasQuote",
    "Network",
    "OperationStatus",
    "TransferAmount",
    "TxResult",
    # Errors
    "ChainOpsError",
    "ConfigurationError",
    "NetworkError",
    "ValidationError",
    "BridgeQuoteError",
    "TransactionError",
    "ClassifiedError",
    "classify_error",
    "is_connection_error",
]
