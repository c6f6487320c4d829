"""Per-network chain client: nonce tracking, gas pricing, signing and submission."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..config import GasPolicy, NetworkParams
from ..constants import DEFAULT_RECEIPT_TIMEOUT, DEFAULT_REQUEST_TIMEOUT, MAX_PROXY_RETRIES
from ..exceptions import ValidationError
from ..failures import classify_error, error_message, is_connection_error
from ..proxy import ProxyEndpoint, ProxyManager
from ..types import Balance, ErrorKind, GasQuote, Network, TxResult
from ..utils import format_ether, format_gwei, gwei_to_wei, serialise_receipt
from .connections import Web3Factory, build_web3

logger = logging.getLogger(__name__)


class ChainClient:
    """Wrap one network's RPC endpoint on behalf of a single wallet.

    Gas price, gas estimate and balance lookups degrade to safe defaults
    instead of raising. ``send_transaction`` is the only call that reports a
    failure, and it does so through :class:`TxResult` rather than exceptions.
    """

    def __init__(
        self,
        network: Network,
        params: NetworkParams,
        gas: GasPolicy,
        *,
        account: LocalAccount | None = None,
        address: str | None = None,
        proxy: ProxyManager | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        web3_factory: Web3Factory = build_web3,
    ) -> None:
        self.network = network
        self.params = params
        self.gas = gas
        self._account = account
        resolved = account.address if account is not None else address
        self.address = Web3.to_checksum_address(resolved) if resolved else None
        self._proxy = proxy or ProxyManager.disabled()
        self._request_timeout = request_timeout
        self._receipt_timeout = receipt_timeout
        self._web3_factory = web3_factory
        self._web3: Web3 | None = None
        self._proxy_generation = -1
        self._nonce: int | None = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    @property
    def web3(self) -> Web3:
        # Another client sharing the pool may have rotated the proxy
        if self._web3 is None or self._proxy_generation != self._proxy.generation:
            self._rebuild_transport()
        assert self._web3 is not None
        return self._web3

    @property
    def account(self) -> LocalAccount:
        if self._account is None:
            raise ValidationError(
                f"No signing key loaded for {self.params.name}", field="private_key"
            )
        return self._account

    def change_proxy(self) -> ProxyEndpoint | None:
        """Rotate the shared proxy pool and rebuild this client's transport."""
        endpoint = self._proxy.select_next()
        if endpoint is None:
            return None
        self._rebuild_transport()
        logger.info("Changed %s proxy to: %s", self.params.name, endpoint)
        return endpoint

    def _rebuild_transport(self) -> None:
        request_kwargs: dict[str, Any] = {"timeout": self._request_timeout}
        request_kwargs.update(self._proxy.request_kwargs())
        self._web3 = self._web3_factory(self.params.rpc_url, request_kwargs)
        self._proxy_generation = self._proxy.generation

    def _rotate_for_retry(self, exc: BaseException, retries_done: int, what: str) -> bool:
        if retries_done >= MAX_PROXY_RETRIES:
            return False
        if not self._proxy.is_enabled() or not is_connection_error(exc):
            return False
        logger.warning("Proxy error detected during %s, trying to change proxy...", what)
        if self.change_proxy() is None:
            logger.warning(
                "Proxy pool did not rotate (%s), retrying through %s",
                self._proxy.rotation.value,
                self._proxy.current,
            )
        return True

    # ------------------------------------------------------------------
    # Nonce tracking
    # ------------------------------------------------------------------
    @property
    def cached_nonce(self) -> int | None:
        return self._nonce

    def get_nonce(self) -> int:
        if self._nonce is None:
            self._nonce = int(self.web3.eth.get_transaction_count(self.address))
            logger.info("Initial %s nonce from network: %s", self.params.name, self._nonce)
        else:
            logger.info("Using tracked %s nonce: %s", self.params.name, self._nonce)
        return self._nonce

    def increment_nonce(self) -> None:
        if self._nonce is None:
            return
        self._nonce += 1
        logger.debug("Incremented %s nonce to: %s", self.params.name, self._nonce)

    def reset_nonce(self) -> None:
        self._nonce = None

    # ------------------------------------------------------------------
    # Gas
    # ------------------------------------------------------------------
    def quote_gas_price(self, retry_count: int = 0) -> GasQuote:
        """Compute the adjusted, clamped gas price. Raises on RPC failure."""
        network_price = int(self.web3.eth.gas_price)
        if network_price < 0:
            raise ValueError(f"Negative gas price reported: {network_price}")

        multiplier = self.gas.price_multiplier * self.gas.retry_increase**retry_count
        adjusted = int(Decimal(network_price) * Decimal(str(multiplier)))
        min_price = gwei_to_wei(self.params.min_gwei)
        max_price = gwei_to_wei(self.params.max_gwei)
        clamped = min(max(adjusted, min_price), max_price)
        return GasQuote(
            network_price=network_price,
            multiplier=multiplier,
            adjusted_price=adjusted,
            clamped_price=clamped,
        )

    def get_gas_price(self, retry_count: int = 0) -> int:
        """Clamped gas price; never raises.

        A connection failure rotates the proxy and retries with the escalation
        count raised by one, until it reaches ``MAX_PROXY_RETRIES``. Any other
        failure falls back to the configured minimum.
        """
        while True:
            try:
                quote = self.quote_gas_price(retry_count)
            except Exception as exc:
                logger.warning(
                    "Error getting %s gas price: %s", self.params.name, error_message(exc)
                )
                if self._rotate_for_retry(exc, retry_count, "gas price lookup"):
                    retry_count += 1
                    continue
                logger.warning("Using fallback gas price: %s gwei", self.params.min_gwei)
                return gwei_to_wei(self.params.min_gwei)
            break

        if retry_count > 0:
            logger.info(
                "Applying retry multiplier %.2fx (total: %.2fx)",
                self.gas.retry_increase**retry_count,
                quote.multiplier,
            )
        logger.info(
            "%s gas price: %s gwei, using: %s gwei (%.2fx)",
            self.params.name,
            format_gwei(quote.network_price),
            format_gwei(quote.adjusted_price),
            quote.multiplier,
        )
        if quote.adjusted_price < quote.clamped_price:
            logger.warning("Gas price below minimum, using: %s gwei", self.params.min_gwei)
        elif quote.adjusted_price > quote.clamped_price:
            logger.warning("Gas price above maximum, using: %s gwei", self.params.max_gwei)
        return quote.clamped_price

    def estimate_gas(self, tx: Mapping[str, Any]) -> int:
        retries = 0
        while True:
            try:
                estimated = int(self.web3.eth.estimate_gas(dict(tx)))  # type: ignore[arg-type]
            except Exception as exc:
                logger.warning("Gas estimation failed: %s", error_message(exc))
                if self._rotate_for_retry(exc, retries, "gas estimation"):
                    retries += 1
                    continue
                logger.warning("Using default gas: %s", self.gas.default_gas_limit)
                return self.gas.default_gas_limit
            break

        buffered = int(Decimal(estimated) * Decimal(str(self.gas.estimate_buffer)))
        logger.info("Estimated gas: %s, with buffer: %s", estimated, buffered)
        return buffered

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def send_transaction(self, tx: Mapping[str, Any], label: str = "transaction") -> TxResult:
        attempts = 0
        while True:
            attempts += 1
            nonce: int | None = None
            try:
                tx_params = self._prepare_transaction(tx)
                nonce = tx_params["nonce"]
                # Reserve the nonce before broadcasting so it is never reused
                self.increment_nonce()
                signed = self.account.sign_transaction(tx_params)
                tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
                receipt = self.web3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=self._receipt_timeout
                )
            except Exception as exc:
                failure = classify_error(exc)
                logger.error("Error in %s: %s", label, failure.message)
                if failure.retryable and self._rotate_for_retry(exc, attempts - 1, label):
                    logger.info(
                        "Retrying %s with new proxy (attempt %s/%s)...",
                        label,
                        attempts,
                        MAX_PROXY_RETRIES,
                    )
                    continue
                return TxResult(
                    success=False,
                    network=self.network,
                    nonce=nonce,
                    attempts=attempts,
                    error_kind=failure.kind,
                    message=failure.message,
                    raw_error=exc,
                )
            break

        tx_hex = Web3.to_hex(tx_hash)
        receipt_data = serialise_receipt(receipt)
        explorer_url = self.params.tx_url(tx_hex)
        if receipt_data is not None and receipt_data.get("status", 1) == 0:
            logger.error("%s transaction reverted: %s", label, explorer_url)
            return TxResult(
                success=False,
                network=self.network,
                tx_hash=tx_hex,
                receipt=receipt_data,
                nonce=nonce,
                attempts=attempts,
                explorer_url=explorer_url,
                error_kind=ErrorKind.REVERTED,
                message="Transaction reverted on chain",
            )

        logger.info("%s transaction successful: %s", label, explorer_url)
        return TxResult(
            success=True,
            network=self.network,
            tx_hash=tx_hex,
            receipt=receipt_data,
            nonce=nonce,
            attempts=attempts,
            explorer_url=explorer_url,
        )

    def _prepare_transaction(self, tx: Mapping[str, Any]) -> dict[str, Any]:
        nonce = self.get_nonce()
        gas_price = self.get_gas_price(0)

        params: dict[str, Any] = {
            "from": self.address,
            **tx,
            "nonce": nonce,
            "chainId": self.params.chain_id,
        }
        params.setdefault("value", 0)
        if params.get("to"):
            params["to"] = Web3.to_checksum_address(params["to"])

        if not params.get("gas"):
            params["gas"] = self.estimate_gas(params)
        if not params.get("gasPrice") and "maxFeePerGas" not in params:
            params["gasPrice"] = gas_price
        return params

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------
    def get_balance(self) -> Balance:
        retried = False
        while True:
            try:
                wei = int(self.web3.eth.get_balance(self.address))
            except Exception as exc:
                message = error_message(exc)
                logger.error("Error getting %s balance: %s", self.params.name, message)
                if not retried and self._proxy.is_enabled() and is_connection_error(exc):
                    logger.warning("Proxy error detected, trying to change proxy...")
                    if self.change_proxy() is not None:
                        retried = True
                        continue
                return Balance(wei=0, ether="0.0", error=message)
            break

        balance = Balance(wei=wei, ether=format_ether(wei))
        logger.info("%s balance: %s %s", self.params.name, balance.ether, balance.currency)
        return balance
