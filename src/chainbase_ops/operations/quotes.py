"""Client for the external bridge quoting service and the static fallback routes."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import requests
from eth_abi import encode as abi_encode
from web3 import Web3

from .. import constants
from ..config import BridgeSettings, FallbackRoute, NetworkParams
from ..exceptions import BridgeQuoteError, NetworkError
from ..proxy import ProxyManager
from ..types import BridgeDirection, BridgeRoute, Network

logger = logging.getLogger(__name__)


def bridge_eth_calldata(min_gas_limit: int = constants.BRIDGE_MIN_GAS_LIMIT) -> str:
    """Calldata for ``StandardBridge.bridgeETH(uint32,bytes)`` with empty extra data."""
    selector = Web3.keccak(text=constants.BRIDGE_ETH_SIGNATURE)[:4]
    arguments = abi_encode(["uint32", "bytes"], [min_gas_limit, b""])
    return "0x" + (bytes(selector) + arguments).hex()


DEFAULT_FALLBACK_ROUTES: Mapping[BridgeDirection, FallbackRoute] = {
    BridgeDirection.CHAINBASE_TO_SEPOLIA: FallbackRoute(to=constants.L2_STANDARD_BRIDGE),
}


def _parse_int(value: Any, *, field: str) -> int:
    try:
        if isinstance(value, str):
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        return int(value)
    except (TypeError, ValueError) as exc:
        raise BridgeQuoteError(
            f"Route field {field} is not an integer", details={field: value}
        ) from exc


class BridgeQuoteClient:
    """Fetch initiating transactions for a bridge direction from the quoting API."""

    def __init__(
        self,
        settings: BridgeSettings,
        networks: Mapping[Network, NetworkParams],
        *,
        session: requests.Session | None = None,
        proxy: ProxyManager | None = None,
    ) -> None:
        self._settings = settings
        self._networks = networks
        self._session = session or requests.Session()
        self._proxy = proxy or ProxyManager.disabled()

    def headers(self) -> dict[str, str]:
        return {
            "accept": "application/json, text/plain, */*",
            "accept-language": "en-US,en;q=0.5",
            "content-type": "application/json",
            "origin": self._settings.origin,
            "referer": self._settings.origin.rstrip("/") + "/",
            "sec-fetch-dest": "empty",
            "sec-fetch-mode": "cors",
            "sec-fetch-site": "cross-site",
            "user-agent": constants.BROWSER_USER_AGENT,
        }

    def build_payload(
        self,
        direction: BridgeDirection,
        amount_wei: int,
        from_gas_price: int,
        to_gas_price: int,
        address: str,
    ) -> dict[str, Any]:
        return {
            "host": self._settings.host,
            "amount": str(amount_wei),
            "fromChainId": str(self._networks[direction.source].chain_id),
            "toChainId": str(self._networks[direction.destination].chain_id),
            "fromTokenAddress": constants.NATIVE_TOKEN_ADDRESS,
            "toTokenAddress": constants.NATIVE_TOKEN_ADDRESS,
            "fromTokenDecimals": constants.NATIVE_TOKEN_DECIMALS,
            "toTokenDecimals": constants.NATIVE_TOKEN_DECIMALS,
            "fromGasPrice": str(from_gas_price),
            "toGasPrice": str(to_gas_price),
            "graffiti": constants.BRIDGE_GRAFFITI,
            "recipient": address,
            "sender": address,
            "forceViaL1": False,
        }

    def fetch_route(
        self,
        direction: BridgeDirection,
        amount_wei: int,
        from_gas_price: int,
        to_gas_price: int,
        address: str,
    ) -> BridgeRoute:
        """POST the quote request and extract this direction's route.

        Raises ``requests.RequestException`` for transport failures,
        :class:`NetworkError` for non-200 responses and :class:`BridgeQuoteError`
        when the body has no usable route.
        """

        payload = self.build_payload(direction, amount_wei, from_gas_price, to_gas_price, address)
        logger.info("Calling bridge API to get transaction details...")
        response = self._session.post(
            self._settings.api_url,
            json=payload,
            headers=self.headers(),
            timeout=self._settings.request_timeout,
            **self._proxy.request_kwargs(),
        )
        if response.status_code != 200:
            raise NetworkError(
                f"Bridge API returned status {response.status_code}",
                endpoint=self._settings.api_url,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise BridgeQuoteError(
                "Bridge API returned a non-JSON body", route_id=direction.route_id
            ) from exc

        route = self.parse_route(data, direction)
        logger.info("Successfully got bridge transaction details (%s)", route.route_id)
        return route

    @staticmethod
    def parse_route(data: Any, direction: BridgeDirection) -> BridgeRoute:
        route_id = direction.route_id
        results = data.get("results") if isinstance(data, Mapping) else None
        if not isinstance(results, list) or not results:
            raise BridgeQuoteError("No bridge routes returned from API", route_id=route_id)

        entry = next(
            (item for item in results if isinstance(item, Mapping) and item.get("id") == route_id),
            None,
        )
        result = entry.get("result") if entry is not None else None
        tx = result.get("initiatingTransaction") if isinstance(result, Mapping) else None
        if not isinstance(tx, Mapping) or not tx.get("to"):
            raise BridgeQuoteError(
                f"Could not find {route_id} route in API response", route_id=route_id
            )

        try:
            destination = Web3.to_checksum_address(tx["to"])
        except (TypeError, ValueError) as exc:
            raise BridgeQuoteError(
                "Route destination is not a valid address",
                route_id=route_id,
                details={"to": tx["to"]},
            ) from exc

        return BridgeRoute(
            destination_address=destination,
            call_data=str(tx.get("data") or "0x"),
            declared_value=_parse_int(tx.get("value", 0), field="value"),
            declared_chain_id=_parse_int(tx.get("chainId", 0), field="chainId"),
            route_id=route_id,
        )

    def fallback_route(self, direction: BridgeDirection, amount_wei: int) -> BridgeRoute:
        """Static route for ``direction``; raises :class:`BridgeQuoteError` if none is known."""
        fallback = self._settings.fallback_routes.get(direction)
        if fallback is None:
            fallback = DEFAULT_FALLBACK_ROUTES.get(direction)
        if fallback is None:
            raise BridgeQuoteError(
                f"No fallback route configured for {direction.value}",
                route_id=direction.route_id,
            )
        return BridgeRoute(
            destination_address=Web3.to_checksum_address(fallback.to),
            call_data=fallback.data or bridge_eth_calldata(),
            declared_value=amount_wei,
            declared_chain_id=self._networks[direction.source].chain_id,
            route_id=direction.route_id,
            fallback=True,
        )
