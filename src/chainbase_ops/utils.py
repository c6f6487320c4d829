"""Utility functions for chainbase-ops."""

from __future__ import annotations

import random
from collections.abc import Mapping, Sequence
from decimal import (
    ROUND_CEILING,
    ROUND_FLOOR,
    ROUND_HALF_UP,
    Decimal,
    InvalidOperation,
    localcontext,
)
from typing import Any

from hexbytes import HexBytes

from .exceptions import ValidationError
from .types import TransferAmount

WEI_PER_ETHER = Decimal(10**18)
WEI_PER_GWEI = Decimal(10**9)


def format_ether(wei: int) -> str:
    """Format a wei amount as a decimal ether string (always with a fractional part)."""
    with localcontext() as ctx:
        ctx.prec = max(40, len(str(abs(int(wei)))) + 4)
        text = format((Decimal(int(wei)) / WEI_PER_ETHER).normalize(), "f")
    if "." not in text:
        text += ".0"
    return text


def format_gwei(wei: int) -> str:
    with localcontext() as ctx:
        ctx.prec = 40
        text = format((Decimal(int(wei)) / WEI_PER_GWEI).normalize(), "f")
    return text


def gwei_to_wei(gwei: float | Decimal | str) -> int:
    """Convert a gwei amount to wei, truncating sub-wei precision."""
    try:
        value = Decimal(str(gwei))
    except (ValueError, InvalidOperation) as exc:
        raise ValidationError("Invalid gwei amount", field="gwei", value=gwei) from exc
    return int(value * WEI_PER_GWEI)


def ether_to_wei(ether: float | Decimal | str) -> int:
    try:
        value = Decimal(str(ether))
    except (ValueError, InvalidOperation) as exc:
        raise ValidationError("Invalid ether amount", field="ether", value=ether) from exc
    if value < 0:
        raise ValidationError("Ether amount cannot be negative", field="ether", value=ether)
    return int(value * WEI_PER_ETHER)


def random_amount(
    minimum: float, maximum: float, decimals: int, rng: random.Random | None = None
) -> TransferAmount:
    """Draw a uniform amount in [minimum, maximum] rounded to ``decimals`` places."""
    if decimals < 0:
        raise ValidationError("Decimals cannot be negative", field="decimals", value=decimals)
    if minimum > maximum:
        raise ValidationError(
            "Minimum amount exceeds maximum", field="amount", value=(minimum, maximum)
        )

    draw = (rng or random).uniform(minimum, maximum)
    quantizer = Decimal(1).scaleb(-decimals)
    low = Decimal(str(minimum))
    high = Decimal(str(maximum))
    amount = Decimal(str(draw)).quantize(quantizer, rounding=ROUND_HALF_UP)
    # Rounding can step past a bound that has more decimals than requested
    amount = min(
        max(amount, low.quantize(quantizer, rounding=ROUND_CEILING)),
        high.quantize(quantizer, rounding=ROUND_FLOOR),
    )

    ether = f"{amount:.{decimals}f}"
    return TransferAmount(ether=ether, wei=ether_to_wei(ether))


def normalise_private_key(private_key: str) -> str:
    key = private_key.strip()
    if not key:
        raise ValidationError("Private key is empty", field="private_key")
    if not key.startswith("0x"):
        key = "0x" + key
    return key


def serialise_receipt(receipt: Any) -> Any:
    """Serialise web3 receipt objects into JSON-friendly structures."""
    if receipt is None:
        return None
    if isinstance(receipt, Mapping):
        return {key: serialise_receipt(value) for key, value in receipt.items()}
    if isinstance(receipt, Sequence) and not isinstance(
        receipt, str | bytes | bytearray | HexBytes
    ):
        return [serialise_receipt(item) for item in receipt]
    if isinstance(receipt, bytes | bytearray | HexBytes):
        return HexBytes(receipt).to_0x_hex()
    return receipt
