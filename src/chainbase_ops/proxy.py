"""Rotating pool of outbound proxies shared by every network-facing component."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from .config import ProxySettings
from .exceptions import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)


class ProxyType(str, Enum):
    HTTP = "http"
    SOCKS5 = "socks5"


class RotationPolicy(str, Enum):
    STICKY = "sticky"
    ROUND_ROBIN = "round_robin"
    RANDOM = "random"


@dataclass(frozen=True)
class ProxyEndpoint:
    """A single ``host:port`` proxy with optional credentials."""

    host: str
    port: int
    username: str | None = None
    password: str | None = None

    @classmethod
    def parse(cls, entry: str) -> ProxyEndpoint:
        text = entry.strip()
        if "://" in text:
            text = text.split("://", 1)[1]

        credentials = None
        if "@" in text:
            credentials, text = text.rsplit("@", 1)

        host, sep, port_text = text.rpartition(":")
        if not sep or not host:
            raise ValidationError("Proxy must look like host:port", field="proxy", value=entry)
        try:
            port = int(port_text)
        except ValueError as exc:
            raise ValidationError("Proxy port must be numeric", field="proxy", value=entry) from exc
        if not 0 < port < 65536:
            raise ValidationError("Proxy port out of range", field="proxy", value=entry)

        username = password = None
        if credentials is not None:
            username, _, password = credentials.partition(":")
            if not username:
                raise ValidationError("Proxy username is empty", field="proxy", value=entry)

        return cls(host=host, port=port, username=username, password=password or None)

    def url(self, proxy_type: ProxyType) -> str:
        # socks5h resolves hostnames on the proxy side
        scheme = "socks5h" if proxy_type is ProxyType.SOCKS5 else "http"
        auth = ""
        if self.username:
            auth = self.username if self.password is None else f"{self.username}:{self.password}"
            auth += "@"
        return f"{scheme}://{auth}{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class ProxyManager:
    """Process-wide proxy pool with failure-driven and scheduled rotation."""

    def __init__(
        self,
        endpoints: Iterable[ProxyEndpoint] = (),
        *,
        proxy_type: ProxyType | str = ProxyType.HTTP,
        rotation: RotationPolicy | str = RotationPolicy.ROUND_ROBIN,
        enabled: bool = True,
        rotate_every: int = 0,
        rng: random.Random | None = None,
    ) -> None:
        try:
            self.proxy_type = ProxyType(proxy_type)
            self.rotation = RotationPolicy(rotation)
        except ValueError as exc:
            raise ConfigurationError(
                "Unknown proxy type or rotation policy",
                path="proxy",
                value=(proxy_type, rotation),
            ) from exc
        if rotate_every < 0:
            raise ConfigurationError(
                "rotate_every cannot be negative", path="proxy.rotate_every", value=rotate_every
            )
        self._endpoints = list(endpoints)
        self._enabled = enabled
        self._index = 0
        self._rng = rng or random.Random()
        self.rotate_every = rotate_every
        self._sessions = 0
        self.generation = 0

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_lines(cls, lines: Iterable[str], **kwargs: Any) -> ProxyManager:
        endpoints = [
            ProxyEndpoint.parse(line)
            for line in lines
            if line.strip() and not line.strip().startswith("#")
        ]
        return cls(endpoints, **kwargs)

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> ProxyManager:
        with Path(path).open("r", encoding="utf-8") as handle:
            manager = cls.from_lines(handle, **kwargs)
        logger.info("Loaded %s proxies from %s", len(manager), path)
        return manager

    @classmethod
    def from_settings(cls, settings: ProxySettings) -> ProxyManager:
        options: dict[str, Any] = {
            "proxy_type": settings.proxy_type,
            "rotation": settings.rotation,
            "rotate_every": settings.rotate_every,
        }
        if not settings.enabled or not settings.file:
            return cls(enabled=False, **options)
        return cls.from_file(settings.file, **options)

    @classmethod
    def disabled(cls) -> ProxyManager:
        return cls(enabled=False)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._endpoints)

    def is_enabled(self) -> bool:
        return self._enabled and bool(self._endpoints)

    @property
    def current(self) -> ProxyEndpoint | None:
        if not self.is_enabled():
            return None
        return self._endpoints[self._index]

    def select_next(self) -> ProxyEndpoint | None:
        """Rotate to another endpoint; ``None`` when rotation is not possible."""
        if not self.is_enabled() or self.rotation is RotationPolicy.STICKY:
            return None

        count = len(self._endpoints)
        if self.rotation is RotationPolicy.RANDOM and count > 1:
            choices = [i for i in range(count) if i != self._index]
            self._index = self._rng.choice(choices)
        else:
            self._index = (self._index + 1) % count

        self.generation += 1
        selected = self._endpoints[self._index]
        logger.info("Selected proxy %s (%s/%s)", selected, self._index + 1, count)
        return selected

    def note_session(self) -> ProxyEndpoint | None:
        """Count a new wallet session and apply the scheduled rotation.

        With ``rotate_every=N`` the pool advances before every N-th session
        after the first one. Returns the endpoint the session should use.
        """
        self._sessions += 1
        sessions_before = self._sessions - 1
        if self.rotate_every and sessions_before and sessions_before % self.rotate_every == 0:
            logger.info("Scheduled proxy rotation after %s sessions", self.rotate_every)
            self.select_next()
        return self.current

    # ------------------------------------------------------------------
    # Transport configuration
    # ------------------------------------------------------------------
    def request_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``requests`` calls routed through the current proxy."""
        endpoint = self.current
        if endpoint is None:
            return {}
        url = endpoint.url(self.proxy_type)
        return {"proxies": {"http": url, "https": url}}

    def describe(self) -> dict[str, Any]:
        if not self.is_enabled():
            return {"enabled": False}
        return {
            "enabled": True,
            "current": str(self.current),
            "type": self.proxy_type.value,
            "rotation": self.rotation.value,
        }
