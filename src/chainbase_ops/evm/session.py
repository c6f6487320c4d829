"""Wallet session: one signing key and one chain client per network."""

from __future__ import annotations

import logging
from typing import Any, cast

from eth_account import Account
from eth_account.signers.local import LocalAccount

from ..config import AutomationSettings
from ..exceptions import ValidationError
from ..proxy import ProxyEndpoint, ProxyManager
from ..types import Balance, Network
from ..utils import normalise_private_key
from .client import ChainClient
from .connections import Web3Factory, build_web3, ensure_reachable

logger = logging.getLogger(__name__)


class WalletSession:
    """Own the chain clients for a single wallet during one operation cycle."""

    def __init__(
        self,
        private_key: str,
        settings: AutomationSettings | None = None,
        proxy: ProxyManager | None = None,
        *,
        label: str | None = None,
        web3_factory: Web3Factory = build_web3,
    ) -> None:
        self.settings = settings or AutomationSettings()
        self.proxy = proxy or ProxyManager.disabled()
        key = normalise_private_key(private_key)
        try:
            self.account = cast(LocalAccount, Account.from_key(key))
        except Exception as exc:
            raise ValidationError(
                "Failed to derive signer account from provided private key",
                field="private_key",
                details={"error": str(exc)},
            ) from exc

        self.address = self.account.address
        self.label = label or self.address
        self.clients: dict[Network, ChainClient] = {
            network: ChainClient(
                network,
                self.settings.network(network),
                self.settings.gas,
                account=self.account,
                proxy=self.proxy,
                request_timeout=self.settings.request_timeout,
                receipt_timeout=self.settings.receipt_timeout,
                web3_factory=web3_factory,
            )
            for network in Network
        }

        current = self.proxy.note_session()
        if current is not None:
            logger.info("Using proxy for blockchain connections: %s", current)

    def client(self, network: Network) -> ChainClient:
        return self.clients[network]

    def connect(self) -> None:
        """Fail fast when either RPC endpoint is unreachable."""
        for client in self.clients.values():
            ensure_reachable(client.web3, client.params.rpc_url, network_name=client.params.name)

    def reset_nonces(self) -> None:
        for client in self.clients.values():
            client.reset_nonce()

    def get_balances(self) -> dict[Network, Balance]:
        return {network: client.get_balance() for network, client in self.clients.items()}

    def change_proxy(self) -> ProxyEndpoint | None:
        # Clients notice the new pool generation and rebuild lazily
        return self.client(Network.HOME).change_proxy()

    def proxy_info(self) -> dict[str, Any]:
        return self.proxy.describe()
