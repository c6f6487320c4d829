"""Classification of raw RPC, signing and transport errors into a closed taxonomy."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import requests
from web3.exceptions import ContractLogicError, TimeExhausted

from .types import ErrorClass, ErrorKind

CONNECTION_SIGNATURES = (
    "proxy",
    "etimedout",
    "econnrefused",
    "econnreset",
    "timed out",
    "connection reset",
    "connection refused",
    "connection aborted",
    "max retries exceeded",
)

_CODE_KINDS = {
    "INSUFFICIENT_FUNDS": ErrorKind.INSUFFICIENT_FUNDS,
    "NONCE_EXPIRED": ErrorKind.NONCE_EXPIRED,
    "REPLACEMENT_UNDERPRICED": ErrorKind.REPLACEMENT_UNDERPRICED,
    "UNPREDICTABLE_GAS_LIMIT": ErrorKind.UNPREDICTABLE_GAS_LIMIT,
    "CALL_EXCEPTION": ErrorKind.REVERTED,
    "TIMEOUT": ErrorKind.TIMEOUT_WAITING_RECEIPT,
}

# Checked in order; the first matching fragment wins.
_MESSAGE_KINDS = (
    ("insufficient funds", ErrorKind.INSUFFICIENT_FUNDS),
    ("nonce too low", ErrorKind.NONCE_EXPIRED),
    ("nonce has already been used", ErrorKind.NONCE_EXPIRED),
    ("already known", ErrorKind.NONCE_EXPIRED),
    ("replacement transaction underpriced", ErrorKind.REPLACEMENT_UNDERPRICED),
    ("transaction underpriced", ErrorKind.REPLACEMENT_UNDERPRICED),
    ("gas required exceeds", ErrorKind.UNPREDICTABLE_GAS_LIMIT),
    ("cannot estimate gas", ErrorKind.UNPREDICTABLE_GAS_LIMIT),
    ("always failing transaction", ErrorKind.UNPREDICTABLE_GAS_LIMIT),
    ("execution reverted", ErrorKind.UNPREDICTABLE_GAS_LIMIT),
)

_KIND_MESSAGES = {
    ErrorKind.INSUFFICIENT_FUNDS: "Insufficient funds for transaction",
    ErrorKind.NONCE_EXPIRED: "Nonce has already been used",
    ErrorKind.REPLACEMENT_UNDERPRICED: "Gas price too low to replace pending transaction",
    ErrorKind.UNPREDICTABLE_GAS_LIMIT: "Cannot estimate gas for transaction",
}

_CHAIN_SEMANTIC_KINDS = frozenset(
    {
        ErrorKind.INSUFFICIENT_FUNDS,
        ErrorKind.NONCE_EXPIRED,
        ErrorKind.REPLACEMENT_UNDERPRICED,
        ErrorKind.UNPREDICTABLE_GAS_LIMIT,
        ErrorKind.REVERTED,
    }
)


@dataclass(frozen=True)
class ClassifiedError:
    """Normalised view of a raw exception."""

    kind: ErrorKind
    error_class: ErrorClass
    message: str
    code: str | int | None = None

    @property
    def retryable(self) -> bool:
        return self.error_class is ErrorClass.CONNECTION


def error_message(exc: BaseException) -> str:
    """Best-effort human readable message, unwrapping JSON-RPC error payloads."""
    payload = _rpc_payload(exc)
    if payload is not None and isinstance(payload.get("message"), str):
        return payload["message"]
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or exc.__class__.__name__


def is_connection_error(exc: BaseException) -> bool:
    """Return True for transport failures that a proxy rotation may cure."""
    if isinstance(exc, requests.exceptions.ConnectionError | requests.exceptions.Timeout):
        return True
    if isinstance(exc, ConnectionError | TimeoutError) and not isinstance(exc, TimeExhausted):
        return True
    lowered = error_message(exc).lower()
    return any(signature in lowered for signature in CONNECTION_SIGNATURES)


def classify_error(exc: BaseException) -> ClassifiedError:
    """Map a raw exception onto the closed error taxonomy.

    A structured code (an ``code`` attribute or the JSON-RPC payload web3
    attaches) is preferred. Messages are matched only when no code is usable,
    and unknown messages are shortened to their first colon-delimited segment.
    """

    message = error_message(exc)
    code = _structured_code(exc)

    if isinstance(exc, TimeExhausted):
        return ClassifiedError(
            ErrorKind.TIMEOUT_WAITING_RECEIPT, ErrorClass.UNKNOWN, message, "TIMEOUT"
        )

    if isinstance(code, str) and code in _CODE_KINDS:
        kind = _CODE_KINDS[code]
        return ClassifiedError(kind, _class_for(kind), _clean_message(kind, message, exc), code)

    if isinstance(exc, ContractLogicError):
        kind = ErrorKind.UNPREDICTABLE_GAS_LIMIT
        return ClassifiedError(kind, ErrorClass.CHAIN_SEMANTIC, _KIND_MESSAGES[kind], code)

    lowered = message.lower()
    for fragment, kind in _MESSAGE_KINDS:
        if fragment in lowered:
            return ClassifiedError(kind, _class_for(kind), _KIND_MESSAGES[kind], code)

    if is_connection_error(exc):
        return ClassifiedError(ErrorKind.CONNECTION, ErrorClass.CONNECTION, message, code)

    short = message.split(":", 1)[0].strip() if ":" in message else message
    return ClassifiedError(ErrorKind.UNKNOWN, ErrorClass.UNKNOWN, short or message, code)


def _class_for(kind: ErrorKind) -> ErrorClass:
    if kind in _CHAIN_SEMANTIC_KINDS:
        return ErrorClass.CHAIN_SEMANTIC
    if kind is ErrorKind.CONNECTION:
        return ErrorClass.CONNECTION
    return ErrorClass.UNKNOWN


def _clean_message(kind: ErrorKind, message: str, exc: BaseException) -> str:
    if kind in _KIND_MESSAGES:
        return _KIND_MESSAGES[kind]
    reason = getattr(exc, "reason", None)
    if reason:
        return f"{kind.value}: {reason}"
    return message


def _structured_code(exc: BaseException) -> str | int | None:
    code = getattr(exc, "code", None)
    if isinstance(code, str | int) and not isinstance(code, bool):
        return code
    payload = _rpc_payload(exc)
    if payload is not None:
        payload_code = payload.get("code")
        if isinstance(payload_code, str | int):
            return payload_code
    return None


def _rpc_payload(exc: BaseException) -> Mapping[str, Any] | None:
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, Mapping):
        error = rpc_response.get("error")
        if isinstance(error, Mapping):
            return error
    if exc.args and isinstance(exc.args[0], Mapping):
        return exc.args[0]
    return None
