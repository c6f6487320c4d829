"""Type definitions and data models for chainbase-ops."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import CURRENCY, DEPOSIT_ROUTE_ID, WITHDRAWAL_ROUTE_ID
from .exceptions import TransactionError


class Network(str, Enum):
    """Networks a wallet session holds a client for."""

    HOME = "sepolia"
    COMPANION = "chainbase"


class BridgeDirection(Enum):
    """Bridge directions between the home and companion networks."""

    SEPOLIA_TO_CHAINBASE = "sepolia_to_chainbase"
    CHAINBASE_TO_SEPOLIA = "chainbase_to_sepolia"

    @property
    def source(self) -> Network:
        if self is BridgeDirection.SEPOLIA_TO_CHAINBASE:
            return Network.HOME
        return Network.COMPANION

    @property
    def destination(self) -> Network:
        if self is BridgeDirection.SEPOLIA_TO_CHAINBASE:
            return Network.COMPANION
        return Network.HOME

    @property
    def route_id(self) -> str:
        if self is BridgeDirection.SEPOLIA_TO_CHAINBASE:
            return DEPOSIT_ROUTE_ID
        return WITHDRAWAL_ROUTE_ID

    @property
    def monitored(self) -> bool:
        """Whether settlement is asynchronous and must be observed on the destination."""
        return self is BridgeDirection.SEPOLIA_TO_CHAINBASE

    @property
    def label(self) -> str:
        return f"{self.source.value.capitalize()} to {self.destination.value.capitalize()}"


class ErrorKind(str, Enum):
    """Normalised failure kinds reported by transaction submission."""

    CONNECTION = "CONNECTION_ERROR"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    NONCE_EXPIRED = "NONCE_EXPIRED"
    REPLACEMENT_UNDERPRICED = "REPLACEMENT_UNDERPRICED"
    UNPREDICTABLE_GAS_LIMIT = "UNPREDICTABLE_GAS_LIMIT"
    REVERTED = "CALL_EXCEPTION"
    TIMEOUT_WAITING_RECEIPT = "TIMEOUT"
    UNKNOWN = "UNKNOWN_ERROR"


class ErrorClass(str, Enum):
    """Coarse grouping used to decide whether a failure is retried."""

    CONNECTION = "connection"
    CHAIN_SEMANTIC = "chain_semantic"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class GasQuote:
    """Intermediate values of a gas price computation."""

    network_price: int
    multiplier: float
    adjusted_price: int
    clamped_price: int

    @property
    def was_clamped(self) -> bool:
        return self.adjusted_price != self.clamped_price


@dataclass
class TxResult:
    """Uniform outcome envelope for every transaction submission."""

    success: bool
    network: Network | None = None
    tx_hash: str | None = None
    receipt: dict[str, Any] | None = None
    nonce: int | None = None
    attempts: int = 1
    explorer_url: str | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    raw_error: BaseException | None = field(default=None, repr=False)

    @property
    def block_number(self) -> int | None:
        if self.receipt is None:
            return None
        return self.receipt.get("blockNumber")

    def raise_for_error(self) -> None:
        """Raise :class:`TransactionError` when the submission failed."""
        if self.success:
            return
        kind = self.error_kind.value if self.error_kind is not None else None
        raise TransactionError(
            self.message or "Transaction failed",
            kind=kind,
            details={"tx_hash": self.tx_hash, "network": getattr(self.network, "value", None)},
        )


@dataclass(frozen=True)
class Balance:
    """Account balance on one network; degraded reads carry an error."""

    wei: int
    ether: str
    currency: str = CURRENCY
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BridgeRoute:
    """On-chain call that initiates a bridge transfer."""

    destination_address: str
    call_data: str
    declared_value: int
    declared_chain_id: int
    route_id: str
    fallback: bool = False

    def as_transaction(self, amount_wei: int) -> dict[str, Any]:
        return {"to": self.destination_address, "value": amount_wei, "data": self.call_data}


@dataclass(frozen=True)
class TransferAmount:
    """Randomised amount in both display and smallest-unit form."""

    ether: str
    wei: int


class OperationStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class BridgeResult:
    """Outcome of a single bridge attempt in one direction."""

    status: OperationStatus
    direction: BridgeDirection
    amount: TransferAmount | None = None
    tx_hash: str | None = None
    settled: bool | None = None
    error: str | None = None
    route: BridgeRoute | None = None

    @property
    def success(self) -> bool:
        return self.status is OperationStatus.SUCCESS


@dataclass
class BatchSummary:
    """Tally of a batch of sequential operations."""

    operation: str
    total: int = 0
    success_count: int = 0
    results: list[Any] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """A batch succeeds when at least one operation did, or nothing was scheduled."""
        return self.total == 0 or self.success_count > 0

    def record(self, result: Any, succeeded: bool) -> None:
        self.results.append(result)
        self.total += 1
        if succeeded:
            self.success_count += 1
