from __future__ import annotations

import random
from collections.abc import Callable, Mapping
from types import SimpleNamespace
from typing import Any

import pytest
from hexbytes import HexBytes
from web3 import Web3

from chainbase_ops.config import AutomationSettings
from chainbase_ops.evm.session import WalletSession
from chainbase_ops.proxy import ProxyEndpoint, ProxyManager
from chainbase_ops.types import Network

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
RECIPIENT = "0x000000000000000000000000000000000000dEaD"


class FakeEth:
    """In-memory stand-in for ``web3.eth`` with queued failures per call."""

    def __init__(
        self,
        *,
        nonce: int = 0,
        gas_price: Any = 2 * 10**9,
        estimate: int = 21_000,
        balances: list[int] | None = None,
        receipt_status: int = 1,
    ) -> None:
        self.nonce = nonce
        self.gas_price_value = gas_price
        self.estimate = estimate
        self.balances = list(balances) if balances is not None else [10**18]
        self.receipt_status = receipt_status
        self.failures: dict[str, list[BaseException]] = {}
        self.calls: dict[str, int] = {}
        self.sent: list[bytes] = []
        self.estimated: list[dict[str, Any]] = []

    def fail(self, method: str, *errors: BaseException) -> None:
        self.failures.setdefault(method, []).extend(errors)

    def _enter(self, method: str) -> None:
        self.calls[method] = self.calls.get(method, 0) + 1
        queue = self.failures.get(method)
        if queue:
            raise queue.pop(0)

    @property
    def gas_price(self) -> Any:
        self._enter("gas_price")
        return self.gas_price_value

    def get_transaction_count(self, address: str) -> int:
        self._enter("get_transaction_count")
        return self.nonce

    def estimate_gas(self, tx: dict[str, Any]) -> int:
        self._enter("estimate_gas")
        self.estimated.append(tx)
        return self.estimate

    def get_balance(self, address: str) -> int:
        self._enter("get_balance")
        if len(self.balances) > 1:
            return self.balances.pop(0)
        return self.balances[0]

    def send_raw_transaction(self, raw: bytes) -> HexBytes:
        self._enter("send_raw_transaction")
        self.sent.append(bytes(raw))
        return HexBytes(Web3.keccak(raw))

    def wait_for_transaction_receipt(self, tx_hash: Any, timeout: float | None = None) -> dict:
        self._enter("wait_for_transaction_receipt")
        return {
            "status": self.receipt_status,
            "transactionHash": HexBytes(tx_hash),
            "blockNumber": 100 + len(self.sent),
        }


class FakeWeb3Factory:
    """Hands out one fake web3 per RPC URL and records every transport build."""

    def __init__(self, eths: Mapping[str, FakeEth]) -> None:
        self._eths = dict(eths)
        self.builds: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, rpc_url: str, request_kwargs: Mapping[str, Any]) -> Any:
        self.builds.append((rpc_url, dict(request_kwargs)))
        eth = self._eths.setdefault(rpc_url, FakeEth())
        return SimpleNamespace(eth=eth, is_connected=lambda: True)


def make_proxy_pool(count: int = 3, **kwargs: Any) -> ProxyManager:
    endpoints = [ProxyEndpoint(host=f"10.0.0.{index}", port=8080) for index in range(1, count + 1)]
    return ProxyManager(endpoints, **kwargs)


@pytest.fixture
def settings() -> AutomationSettings:
    return AutomationSettings.from_config(
        {
            "general": {"gas_price_multiplier": 1.0},
            "gas": {"min_gwei": 1, "max_gwei": 50, "default_gas_limit": 250_000},
        }
    )


@pytest.fixture
def fake_eths(settings: AutomationSettings) -> dict[Network, FakeEth]:
    return {network: FakeEth() for network in Network}


@pytest.fixture
def web3_factory(
    settings: AutomationSettings, fake_eths: dict[Network, FakeEth]
) -> FakeWeb3Factory:
    return FakeWeb3Factory(
        {settings.network(network).rpc_url: eth for network, eth in fake_eths.items()}
    )


@pytest.fixture
def make_session(
    settings: AutomationSettings, web3_factory: FakeWeb3Factory
) -> Callable[..., WalletSession]:
    def _make(
        proxy: ProxyManager | None = None, custom: AutomationSettings | None = None
    ) -> WalletSession:
        return WalletSession(
            TEST_PRIVATE_KEY, custom or settings, proxy, web3_factory=web3_factory
        )

    return _make


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()
