"""Configuration access and typed settings for chainbase-ops."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from dotenv import load_dotenv

from . import constants
from .exceptions import ConfigurationError
from .types import BridgeDirection, Network

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}
_PROXY_TYPES = {"http", "socks5"}
_ROTATION_POLICIES = {"sticky", "round_robin", "random"}


class ConfigAccessor(ABC):
    """Read-only access to a nested configuration tree via dotted paths."""

    @abstractmethod
    def get(self, path: str, default: Any = None) -> Any:
        pass

    def get_section(self, path: str) -> Mapping[str, Any]:
        value = self.get(path, None)
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ConfigurationError("Expected a mapping", path=path, value=value)
        return value

    def get_bool(self, path: str, default: bool = False) -> bool:
        value = self.get(path, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        if isinstance(value, int):
            return bool(value)
        raise ConfigurationError("Expected a boolean", path=path, value=value)

    def get_int(self, path: str, default: int = 0) -> int:
        value = self.get(path, default)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError("Expected an integer", path=path, value=value) from exc

    def get_float(self, path: str, default: float = 0.0) -> float:
        value = self.get(path, default)
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError("Expected a number", path=path, value=value) from exc

    def repeat_times(self, operation: str, default: int = 1) -> int:
        count = self.get_int(f"operations.{operation}.repeat_times", default)
        if count < 0:
            raise ConfigurationError(
                "repeat_times cannot be negative",
                path=f"operations.{operation}.repeat_times",
                value=count,
            )
        return count


class MappingConfig(ConfigAccessor):
    """Accessor over a plain nested mapping (e.g. parsed JSON or YAML)."""

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data: Mapping[str, Any] = data or {}

    def get(self, path: str, default: Any = None) -> Any:
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return node


class EnvConfig(ConfigAccessor):
    """Accessor that lets environment variables override a base configuration.

    ``operations.bridge.repeat_times`` is read from
    ``CHAINBASE_OPS_OPERATIONS__BRIDGE__REPEAT_TIMES`` when set. A ``.env``
    file is loaded once at construction.
    """

    def __init__(
        self,
        base: ConfigAccessor | Mapping[str, Any] | None = None,
        *,
        prefix: str = constants.ENV_PREFIX,
        environ: Mapping[str, str] | None = None,
        load_env_file: bool = True,
    ):
        if load_env_file and environ is None:
            load_dotenv()
        self._base = resolve_config(base)
        self._prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def env_name(self, path: str) -> str:
        return self._prefix + "__".join(part.upper() for part in path.split("."))

    def get(self, path: str, default: Any = None) -> Any:
        value = self._environ.get(self.env_name(path))
        if value is not None:
            return value
        return self._base.get(path, default)


def resolve_config(source: ConfigAccessor | Mapping[str, Any] | None) -> ConfigAccessor:
    """Return a single accessor for either an accessor object or a plain mapping."""
    if isinstance(source, ConfigAccessor):
        return source
    if source is None:
        return MappingConfig({})
    if isinstance(source, Mapping):
        return MappingConfig(source)
    raise ConfigurationError(
        "Unsupported configuration source", value=type(source).__name__
    )


# ----------------------------------------------------------------------
# Typed settings
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class NetworkParams:
    """Static parameters of one network."""

    name: str
    rpc_url: str
    chain_id: int
    explorer_url: str
    min_gwei: float = constants.GAS_MIN_GWEI
    max_gwei: float = constants.GAS_MAX_GWEI

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"

    @classmethod
    def from_accessor(
        cls, config: ConfigAccessor, network: Network, gas: GasPolicy
    ) -> NetworkParams:
        defaults = constants.SEPOLIA if network is Network.HOME else constants.CHAINBASE
        prefix = f"networks.{network.value}"
        params = cls(
            name=str(config.get(f"{prefix}.name", defaults["name"])),
            rpc_url=str(config.get(f"{prefix}.rpc_url", defaults["rpc_url"])),
            chain_id=config.get_int(f"{prefix}.chain_id", int(defaults["chain_id"])),
            explorer_url=str(config.get(f"{prefix}.explorer_url", defaults["explorer_url"])),
            min_gwei=config.get_float(f"{prefix}.min_gwei", gas.min_gwei),
            max_gwei=config.get_float(f"{prefix}.max_gwei", gas.max_gwei),
        )
        if params.min_gwei <= 0 or params.min_gwei > params.max_gwei:
            raise ConfigurationError(
                "Gas price bounds must satisfy 0 < min_gwei <= max_gwei",
                path=prefix,
                value=(params.min_gwei, params.max_gwei),
            )
        return params


@dataclass(frozen=True)
class GasPolicy:
    """Gas pricing and limit policy shared by both networks."""

    price_multiplier: float = constants.GAS_PRICE_MULTIPLIER
    retry_increase: float = constants.GAS_RETRY_INCREASE
    min_gwei: float = constants.GAS_MIN_GWEI
    max_gwei: float = constants.GAS_MAX_GWEI
    default_gas_limit: int = constants.DEFAULT_GAS_LIMIT
    estimate_buffer: float = constants.GAS_ESTIMATE_BUFFER

    @classmethod
    def from_accessor(cls, config: ConfigAccessor) -> GasPolicy:
        policy = cls(
            price_multiplier=config.get_float(
                "general.gas_price_multiplier", constants.GAS_PRICE_MULTIPLIER
            ),
            retry_increase=config.get_float("gas.retry_increase", constants.GAS_RETRY_INCREASE),
            min_gwei=config.get_float("gas.min_gwei", constants.GAS_MIN_GWEI),
            max_gwei=config.get_float("gas.max_gwei", constants.GAS_MAX_GWEI),
            default_gas_limit=config.get_int("gas.default_gas_limit", constants.DEFAULT_GAS_LIMIT),
            estimate_buffer=config.get_float("gas.estimate_buffer", constants.GAS_ESTIMATE_BUFFER),
        )
        if policy.price_multiplier <= 0 or policy.retry_increase < 1:
            raise ConfigurationError(
                "Gas multipliers must be positive and retry_increase at least 1",
                path="gas",
                value=(policy.price_multiplier, policy.retry_increase),
            )
        return policy


@dataclass(frozen=True)
class AmountRange:
    """Inclusive ETH range and display precision for randomised amounts."""

    min: float
    max: float
    decimals: int

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, path: str) -> AmountRange:
        try:
            amount = cls(
                min=float(data["min"]), max=float(data["max"]), decimals=int(data["decimals"])
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(
                "Amount range needs numeric min, max and decimals", path=path, value=dict(data)
            ) from exc
        if amount.min < 0 or amount.min > amount.max or amount.decimals < 0:
            raise ConfigurationError("Invalid amount range", path=path, value=dict(data))
        return amount


@dataclass(frozen=True)
class DelayRange:
    """Random pause, in seconds, applied before an operation."""

    min: float = 0.0
    max: float = 0.0

    @classmethod
    def from_accessor(cls, config: ConfigAccessor) -> DelayRange:
        delay = cls(
            min=config.get_float("general.delay.min", 0.0),
            max=config.get_float("general.delay.max", 0.0),
        )
        if delay.min < 0 or delay.min > delay.max:
            raise ConfigurationError(
                "Invalid delay range", path="general.delay", value=(delay.min, delay.max)
            )
        return delay


@dataclass(frozen=True)
class FallbackRoute:
    """Static destination and calldata used when the quoting service is unusable."""

    to: str
    data: str | None = None


@dataclass(frozen=True)
class BridgeSettings:
    """Settings for the bridge orchestrator and its batch driver."""

    enabled: bool = True
    amount: AmountRange = AmountRange(**constants.DEFAULT_BRIDGE_AMOUNT)
    directions: Mapping[BridgeDirection, bool] = field(
        default_factory=lambda: {direction: True for direction in BridgeDirection}
    )
    direction_amounts: Mapping[BridgeDirection, AmountRange] = field(default_factory=dict)
    repeat_times: int = 1
    api_url: str = constants.BRIDGE_API_URL
    host: str = constants.BRIDGE_HOST
    origin: str = constants.BRIDGE_ORIGIN
    request_timeout: float = constants.DEFAULT_REQUEST_TIMEOUT
    poll_interval: float = constants.BRIDGE_POLL_INTERVAL
    max_polls: int = constants.BRIDGE_MAX_POLLS
    cooldown: float = constants.OPERATION_COOLDOWN
    fallback_routes: Mapping[BridgeDirection, FallbackRoute] = field(default_factory=dict)

    def is_enabled(self, direction: BridgeDirection) -> bool:
        return self.directions.get(direction, True)

    def amount_for(self, direction: BridgeDirection) -> AmountRange:
        return self.direction_amounts.get(direction, self.amount)

    @property
    def enabled_directions(self) -> list[BridgeDirection]:
        return [direction for direction in BridgeDirection if self.is_enabled(direction)]

    @classmethod
    def from_accessor(cls, config: ConfigAccessor) -> BridgeSettings:
        base = "operations.bridge"
        amount_data = config.get_section(f"{base}.amount") or constants.DEFAULT_BRIDGE_AMOUNT
        amount = AmountRange.from_mapping(amount_data, path=f"{base}.amount")

        directions: dict[BridgeDirection, bool] = {}
        direction_amounts: dict[BridgeDirection, AmountRange] = {}
        fallback_routes: dict[BridgeDirection, FallbackRoute] = {}
        for direction in BridgeDirection:
            path = f"{base}.{direction.value}"
            directions[direction] = config.get_bool(f"{path}.enabled", True)
            override = config.get_section(f"{path}.amount")
            if override:
                direction_amounts[direction] = AmountRange.from_mapping(
                    override, path=f"{path}.amount"
                )
            fallback_to = config.get(f"{path}.fallback.to")
            if fallback_to:
                fallback_routes[direction] = FallbackRoute(
                    to=str(fallback_to), data=config.get(f"{path}.fallback.data")
                )

        settings = cls(
            enabled=config.get_bool(f"{base}.enabled", True),
            amount=amount,
            directions=directions,
            direction_amounts=direction_amounts,
            repeat_times=config.repeat_times("bridge", 1),
            api_url=str(config.get(f"{base}.api_url", constants.BRIDGE_API_URL)),
            host=str(config.get(f"{base}.host", constants.BRIDGE_HOST)),
            origin=str(config.get(f"{base}.origin", constants.BRIDGE_ORIGIN)),
            request_timeout=config.get_float(
                f"{base}.request_timeout", constants.DEFAULT_REQUEST_TIMEOUT
            ),
            poll_interval=config.get_float(f"{base}.poll_interval", constants.BRIDGE_POLL_INTERVAL),
            max_polls=config.get_int(f"{base}.max_polls", constants.BRIDGE_MAX_POLLS),
            cooldown=config.get_float(f"{base}.cooldown", constants.OPERATION_COOLDOWN),
            fallback_routes=fallback_routes,
        )
        if settings.max_polls < 0 or settings.poll_interval < 0 or settings.cooldown < 0:
            raise ConfigurationError(
                "Polling and cooldown values cannot be negative",
                path=base,
                value=(settings.poll_interval, settings.max_polls, settings.cooldown),
            )
        return settings


@dataclass(frozen=True)
class TransferSettings:
    """Settings for self-transfers of native ETH."""

    enabled: bool = True
    network: Network = Network.COMPANION
    amount: AmountRange = AmountRange(**constants.DEFAULT_TRANSFER_AMOUNT)
    repeat_times: int = 1
    cooldown: float = constants.OPERATION_COOLDOWN
    recipient: str | None = None

    @classmethod
    def from_accessor(cls, config: ConfigAccessor) -> TransferSettings:
        base = "operations.transfer"
        network_name = str(config.get(f"{base}.network", Network.COMPANION.value))
        try:
            network = Network(network_name)
        except ValueError as exc:
            raise ConfigurationError(
                "Unknown transfer network", path=f"{base}.network", value=network_name
            ) from exc
        amount_data = config.get_section(f"{base}.amount") or constants.DEFAULT_TRANSFER_AMOUNT
        return cls(
            enabled=config.get_bool(f"{base}.enabled", True),
            network=network,
            amount=AmountRange.from_mapping(amount_data, path=f"{base}.amount"),
            repeat_times=config.repeat_times("transfer", 1),
            cooldown=config.get_float(f"{base}.cooldown", constants.OPERATION_COOLDOWN),
            recipient=config.get(f"{base}.recipient"),
        )


@dataclass(frozen=True)
class ProxySettings:
    """Where the proxy list lives and how it is used."""

    enabled: bool = False
    file: str | None = None
    proxy_type: str = "http"
    rotation: str = "round_robin"
    rotate_every: int = 0

    @classmethod
    def from_accessor(cls, config: ConfigAccessor) -> ProxySettings:
        settings = cls(
            enabled=config.get_bool("proxy.enabled", False),
            file=config.get("proxy.file"),
            proxy_type=str(config.get("proxy.type", "http")).lower(),
            rotation=str(config.get("proxy.rotation", "round_robin")).lower(),
            rotate_every=config.get_int("proxy.rotate_every", 0),
        )
        if settings.proxy_type not in _PROXY_TYPES:
            raise ConfigurationError(
                "Unknown proxy type", path="proxy.type", value=settings.proxy_type
            )
        if settings.rotation not in _ROTATION_POLICIES:
            raise ConfigurationError(
                "Unknown proxy rotation policy", path="proxy.rotation", value=settings.rotation
            )
        if settings.rotate_every < 0:
            raise ConfigurationError(
                "rotate_every cannot be negative",
                path="proxy.rotate_every",
                value=settings.rotate_every,
            )
        return settings


@dataclass(frozen=True)
class AutomationSettings:
    """Aggregated settings resolved once from a configuration source."""

    gas: GasPolicy = GasPolicy()
    networks: Mapping[Network, NetworkParams] = field(default_factory=dict)
    bridge: BridgeSettings = BridgeSettings()
    transfer: TransferSettings = TransferSettings()
    proxy: ProxySettings = ProxySettings()
    delay: DelayRange = DelayRange()
    request_timeout: float = constants.DEFAULT_REQUEST_TIMEOUT
    receipt_timeout: float = constants.DEFAULT_RECEIPT_TIMEOUT

    def network(self, network: Network) -> NetworkParams:
        params = self.networks.get(network)
        if params is None:
            defaults = constants.SEPOLIA if network is Network.HOME else constants.CHAINBASE
            params = NetworkParams(
                name=str(defaults["name"]),
                rpc_url=str(defaults["rpc_url"]),
                chain_id=int(defaults["chain_id"]),
                explorer_url=str(defaults["explorer_url"]),
                min_gwei=self.gas.min_gwei,
                max_gwei=self.gas.max_gwei,
            )
        return params

    @classmethod
    def from_config(
        cls, source: ConfigAccessor | Mapping[str, Any] | None = None
    ) -> AutomationSettings:
        config = resolve_config(source)
        gas = GasPolicy.from_accessor(config)
        return cls(
            gas=gas,
            networks={
                network: NetworkParams.from_accessor(config, network, gas) for network in Network
            },
            bridge=BridgeSettings.from_accessor(config),
            transfer=TransferSettings.from_accessor(config),
            proxy=ProxySettings.from_accessor(config),
            delay=DelayRange.from_accessor(config),
            request_timeout=config.get_float(
                "general.request_timeout", constants.DEFAULT_REQUEST_TIMEOUT
            ),
            receipt_timeout=config.get_float(
                "general.receipt_timeout", constants.DEFAULT_RECEIPT_TIMEOUT
            ),
        )
