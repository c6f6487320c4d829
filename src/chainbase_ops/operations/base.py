"""Shared plumbing for wallet operations."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable

from ..config import AutomationSettings
from ..evm.session import WalletSession

logger = logging.getLogger(__name__)


class Operation:
    """Base class for operations executed sequentially against one wallet session."""

    name = "operation"

    def __init__(
        self,
        session: WalletSession,
        settings: AutomationSettings | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or session.settings
        self._sleep = sleep
        self._rng = rng or random.Random()

    def add_delay(self, label: str) -> float:
        """Pause for a random duration from ``general.delay`` before an action."""
        delay = self.settings.delay
        if delay.max <= 0:
            return 0.0
        seconds = self._rng.uniform(delay.min, delay.max)
        logger.info("Waiting %.1f seconds before %s", seconds, label)
        self._sleep(seconds)
        return seconds

    def cooldown(self, seconds: float) -> None:
        if seconds <= 0:
            return
        logger.info("Waiting %.0f seconds before next %s operation...", seconds, self.name)
        self._sleep(seconds)
