"""Exception hierarchy for chainbase-ops."""

from typing import Any


class ChainOpsError(Exception):
    """Base exception for all chainbase-ops errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ChainOpsError):
    """Raised when configuration values are missing or inconsistent."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.path = path
        self.value = value


class NetworkError(ChainOpsError):
    """Raised when network/connection issues occur."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class ValidationError(ChainOpsError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value


class BridgeQuoteError(ChainOpsError):
    """Raised when the bridge quoting service returns unusable data."""

    def __init__(
        self,
        message: str,
        route_id: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.route_id = route_id


class TransactionError(ChainOpsError):
    """Raised for transaction failures that carry a normalised kind."""

    def __init__(self, message: str, kind: str | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.kind = kind
