"""Native ETH transfers from a wallet, to itself unless a recipient is configured."""

from __future__ import annotations

import logging

from web3 import Web3

from ..types import BatchSummary, ErrorKind, TransferAmount, TxResult
from ..utils import random_amount
from .base import Operation

logger = logging.getLogger(__name__)


class TransferOperation(Operation):
    name = "transfer"

    def generate_amount(self) -> TransferAmount:
        amount = self.settings.transfer.amount
        return random_amount(amount.min, amount.max, amount.decimals, self._rng)

    @property
    def recipient(self) -> str:
        configured = self.settings.transfer.recipient
        return Web3.to_checksum_address(configured) if configured else self.session.address

    def transfer_once(self) -> TxResult:
        transfer = self.settings.transfer
        client = self.session.client(transfer.network)
        amount = self.generate_amount()

        balance = client.get_balance()
        if balance.wei < amount.wei:
            message = f"Insufficient {client.params.name} balance to transfer {amount.ether} ETH"
            logger.error(message)
            return TxResult(
                success=False,
                network=transfer.network,
                attempts=0,
                error_kind=ErrorKind.INSUFFICIENT_FUNDS,
                message=message,
            )

        logger.info(
            "Transferring %s ETH to %s on %s", amount.ether, self.recipient, client.params.name
        )
        self.add_delay("transfer")
        return client.send_transaction(
            {"to": self.recipient, "value": amount.wei}, "ETH transfer"
        )

    def run_batch(self) -> BatchSummary:
        transfer = self.settings.transfer
        summary = BatchSummary(operation=self.name)
        if not transfer.enabled:
            logger.info("Transfer operations are disabled in config")
            return summary

        self.session.client(transfer.network).reset_nonce()
        for index in range(1, transfer.repeat_times + 1):
            logger.info("Transfer operation %s/%s", index, transfer.repeat_times)
            result = self.transfer_once()
            summary.record(result, result.success)
            if index < transfer.repeat_times:
                self.cooldown(transfer.cooldown)

        logger.info(
            "Transfer operations completed: %s/%s successful",
            summary.success_count,
            summary.total,
        )
        return summary
