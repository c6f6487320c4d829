"""Bridge orchestration between the home and companion networks."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable

import requests

from ..config import AutomationSettings
from ..evm.session import WalletSession
from ..exceptions import BridgeQuoteError, ChainOpsError, NetworkError
from ..failures import error_message, is_connection_error
from ..types import (
    Balance,
    BatchSummary,
    BridgeDirection,
    BridgeResult,
    BridgeRoute,
    Network,
    OperationStatus,
    TransferAmount,
)
from ..utils import format_ether, random_amount
from .base import Operation
from .quotes import BridgeQuoteClient

logger = logging.getLogger(__name__)

_QUOTE_ATTEMPTS = 2


class BridgeOrchestrator(Operation):
    """Move randomised ETH amounts across the bridge, one direction at a time."""

    name = "bridge"

    def __init__(
        self,
        session: WalletSession,
        settings: AutomationSettings | None = None,
        *,
        quote_client: BridgeQuoteClient | None = None,
        http_session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(session, settings, sleep=sleep, rng=rng)
        self._bridge = self.settings.bridge
        self._quotes = quote_client or BridgeQuoteClient(
            self._bridge,
            {network: self.settings.network(network) for network in Network},
            session=http_session,
            proxy=session.proxy,
        )

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------
    def generate_amount(self, direction: BridgeDirection) -> TransferAmount:
        amount = self._bridge.amount_for(direction)
        return random_amount(amount.min, amount.max, amount.decimals, self._rng)

    def get_balances(self) -> dict[Network, Balance]:
        balances = self.session.get_balances()
        logger.info("Current balances:")
        for network, balance in balances.items():
            logger.info("  %s: %s %s", network.value, balance.ether, balance.currency)
        return balances

    def resolve_route(self, direction: BridgeDirection, amount_wei: int) -> BridgeRoute:
        """Quote a route, retrying once, and fall back to the static table."""
        source = self.session.client(direction.source)
        destination = self.session.client(direction.destination)
        from_gas_price = source.get_gas_price(0)
        to_gas_price = destination.get_gas_price(0)

        for attempt in range(1, _QUOTE_ATTEMPTS + 1):
            try:
                return self._quotes.fetch_route(
                    direction, amount_wei, from_gas_price, to_gas_price, self.session.address
                )
            except (requests.RequestException, NetworkError, BridgeQuoteError) as exc:
                logger.error("Error getting bridge transaction details: %s", error_message(exc))
                if attempt == _QUOTE_ATTEMPTS:
                    break
                if self.session.proxy.is_enabled() and is_connection_error(exc):
                    logger.warning("Proxy error detected, trying to change proxy...")
                    self.session.change_proxy()
                logger.info("Retrying bridge API call...")

        logger.warning("Falling back to hardcoded transaction details for %s", direction.value)
        return self._quotes.fallback_route(direction, amount_wei)

    def wait_for_settlement(self, direction: BridgeDirection, baseline_wei: int) -> bool:
        """Poll the destination balance; True once it rises above ``baseline_wei``."""
        if not direction.monitored:
            logger.info("No need to monitor %s bridge completion", direction.value)
            return True

        client = self.session.client(direction.destination)
        interval = self._bridge.poll_interval
        max_polls = self._bridge.max_polls
        logger.info("Monitoring %s bridge progress...", direction.label)

        for check in range(1, max_polls + 1):
            self._sleep(interval)
            balance = client.get_balance()
            if balance.ok and balance.wei > baseline_wei:
                received = format_ether(balance.wei - baseline_wei)
                logger.info(
                    "Bridge completed! Received %s ETH on %s", received, client.params.name
                )
                return True
            logger.info("Waiting for bridge completion... (%s/%s)", check, max_polls)

        logger.warning("Bridge monitoring timed out after %.0f seconds", max_polls * interval)
        logger.warning(
            "Bridge transaction was sent successfully, "
            "but completion wasn't detected within the timeout"
        )
        return False

    # ------------------------------------------------------------------
    # Single direction
    # ------------------------------------------------------------------
    def bridge(self, direction: BridgeDirection) -> BridgeResult:
        if not self._bridge.is_enabled(direction):
            logger.warning("%s bridge is disabled in config", direction.label)
            return BridgeResult(status=OperationStatus.SKIPPED, direction=direction)

        try:
            return self._bridge_direction(direction)
        except ChainOpsError as exc:
            logger.error("Bridge transaction failed: %s", exc)
            return BridgeResult(
                status=OperationStatus.FAILED, direction=direction, error=str(exc)
            )

    def _bridge_direction(self, direction: BridgeDirection) -> BridgeResult:
        amount = self.generate_amount(direction)
        balances = self.get_balances()
        source_balance = balances[direction.source]
        if source_balance.wei < amount.wei:
            message = f"Insufficient {direction.source.value} balance to bridge {amount.ether} ETH"
            logger.error(message)
            return BridgeResult(
                status=OperationStatus.FAILED, direction=direction, amount=amount, error=message
            )

        logger.info("Starting bridge of %s ETH from %s...", amount.ether, direction.label)
        baseline = balances[direction.destination]
        if direction.monitored and not baseline.ok:
            logger.warning(
                "Re-reading %s balance for completion monitoring", direction.destination.value
            )
            baseline = self.session.client(direction.destination).get_balance()
        self.add_delay(f"{direction.label} bridge operation")

        route = self.resolve_route(direction, amount.wei)
        client = self.session.client(direction.source)
        result = client.send_transaction(
            route.as_transaction(amount.wei), f"{direction.label} bridge"
        )
        if not result.success:
            logger.error("Bridge transaction failed: %s", result.message)
            return BridgeResult(
                status=OperationStatus.FAILED,
                direction=direction,
                amount=amount,
                tx_hash=result.tx_hash,
                error=result.message,
                route=route,
            )

        logger.info("Bridge transaction sent: %s", result.tx_hash)
        logger.info("Track on %s: %s", client.params.name, result.explorer_url)

        if not direction.monitored:
            logger.info(
                "%s bridge transaction confirmed; funds arrive on %s after the withdrawal "
                "period",
                direction.label,
                direction.destination.value,
            )
            return BridgeResult(
                status=OperationStatus.SUCCESS,
                direction=direction,
                amount=amount,
                tx_hash=result.tx_hash,
                route=route,
            )

        settled = False
        if baseline.ok:
            settled = self.wait_for_settlement(direction, baseline.wei)
        else:
            logger.warning(
                "Destination balance unknown before bridging, skipping completion monitoring"
            )
        # The funding transaction was accepted, so a slow settlement is still a success
        return BridgeResult(
            status=OperationStatus.SUCCESS,
            direction=direction,
            amount=amount,
            tx_hash=result.tx_hash,
            settled=settled,
            route=route,
        )

    # ------------------------------------------------------------------
    # Batch driver
    # ------------------------------------------------------------------
    def run_batch(self) -> BatchSummary:
        summary = BatchSummary(operation=self.name)
        if not self._bridge.enabled:
            logger.info("Bridge operations are disabled in config")
            return summary

        self.session.reset_nonces()
        directions = self._bridge.enabled_directions
        if not directions:
            logger.warning("No bridge directions enabled in config")
            return summary

        repeat_times = self._bridge.repeat_times
        total = repeat_times * len(directions)
        logger.info(
            "Will perform %s bridge operations in directions: %s",
            repeat_times,
            ", ".join(direction.value for direction in directions),
        )

        completed = 0
        for iteration in range(1, repeat_times + 1):
            for direction in directions:
                logger.info(
                    "%s bridge operation %s/%s", direction.value, iteration, repeat_times
                )
                result = self.bridge(direction)
                summary.record(result, result.success)
                completed += 1
                if completed < total:
                    self.cooldown(self._bridge.cooldown)

        logger.info(
            "Bridge operations completed: %s/%s successful", summary.success_count, summary.total
        )
        return summary
