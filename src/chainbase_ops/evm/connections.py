"""Web3 transport construction for chainbase-ops network clients."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from web3 import HTTPProvider, Web3

from ..exceptions import NetworkError

logger = logging.getLogger(__name__)

Web3Factory = Callable[[str, Mapping[str, Any]], Web3]


def build_web3(rpc_url: str, request_kwargs: Mapping[str, Any]) -> Web3:
    """Create a Web3 instance over HTTP, honouring timeout and proxy kwargs."""

    provider = HTTPProvider(rpc_url, request_kwargs=dict(request_kwargs))
    return Web3(provider)


def ensure_reachable(web3: Web3, rpc_url: str, *, network_name: str) -> None:
    if not web3.is_connected():
        raise NetworkError(f"Unable to connect to {network_name} RPC", endpoint=rpc_url)
    logger.info("Connected to %s RPC at %s", network_name, rpc_url)
