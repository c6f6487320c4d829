"""Example: send a small random amount of ETH from a wallet back to itself."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from chainbase_ops import AutomationSettings, EnvConfig, TransferOperation, WalletSession
from chainbase_ops.exceptions import TransactionError

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("self_transfer")


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"{name} not found in environment variables")
    return value


def main() -> None:
    settings = AutomationSettings.from_config(EnvConfig())
    session = WalletSession(_require_env("PRIVATE_KEY"), settings)
    session.connect()

    operation = TransferOperation(session)
    result = operation.transfer_once()
    try:
        result.raise_for_error()
    except TransactionError as exc:
        logger.error("Transfer failed (%s): %s", exc.kind, exc)
        return
    logger.info("Transfer confirmed in block %s: %s", result.block_number, result.explorer_url)


if __name__ == "__main__":
    main()
