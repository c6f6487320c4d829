"""Example: run the configured bridge batch for every key in a file, one wallet at a time."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from chainbase_ops import (
    AutomationSettings,
    BridgeOrchestrator,
    EnvConfig,
    MappingConfig,
    ProxyManager,
    WalletSession,
)

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger("bridge_roundtrip")


def _load_keys(path: Path) -> list[str]:
    with path.open("r", encoding="utf-8") as handle:
        keys = [line.strip() for line in handle if line.strip() and not line.startswith("#")]
    if not keys:
        raise ValueError(f"No private keys found in {path}")
    return keys


def _load_config(path: Path | None) -> EnvConfig:
    data = {}
    if path is not None and path.exists():
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    return EnvConfig(MappingConfig(data))


def main() -> None:
    config_path = os.getenv("CONFIG_FILE")
    settings = AutomationSettings.from_config(
        _load_config(Path(config_path) if config_path else None)
    )
    proxy = ProxyManager.from_settings(settings.proxy)
    keys = _load_keys(Path(os.getenv("PRIVATE_KEYS_FILE", "private_keys.txt")))

    for index, key in enumerate(keys, start=1):
        session = WalletSession(key, settings, proxy, label=f"wallet-{index}")
        logger.info("Processing wallet %s/%s: %s", index, len(keys), session.address)
        summary = BridgeOrchestrator(session).run_batch()
        logger.info(
            "Wallet %s finished: %s/%s bridges succeeded",
            session.address,
            summary.success_count,
            summary.total,
        )


if __name__ == "__main__":
    main()
