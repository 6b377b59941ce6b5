"""Canonical encoding of actions for hashing and signing."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

import msgpack
from eth_utils import keccak

from ..errors import SigningError

if TYPE_CHECKING:
    from .actions import Action

MAX_NONCE = 2**64 - 1


def float_to_wire(x: float) -> str:
    """Render a price or size the way the exchange hashes it.

    Eight decimal places at most, trailing zeros stripped. Values that cannot
    be represented within 1e-12 at that precision are refused rather than
    silently rounded.
    """
    rounded = f"{x:.8f}"
    if abs(float(rounded) - x) >= 1e-12:
        raise ValueError(f"float_to_wire causes rounding: {x!r}")
    if rounded == "-0.00000000":
        rounded = "0"
    normalized = Decimal(rounded).normalize()
    return f"{normalized:f}"


def float_to_int(x: float, power: int) -> int:
    with_decimals = x * 10**power
    if abs(round(with_decimals) - with_decimals) >= 1e-3:
        raise ValueError(f"float_to_int causes rounding: {x!r}")
    return round(with_decimals)


def float_to_usd_int(x: float) -> int:
    """USD amount in the exchange's micro-unit integer form."""
    return float_to_int(x, 6)


def encode_action(action: "Action") -> bytes:
    """Canonical MessagePack bytes of an action's wire mapping."""
    try:
        return msgpack.packb(action.to_wire(), use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as exc:
        raise SigningError(f"Cannot encode {type(action).__name__}: {exc}") from exc


def action_hash(
    action: "Action",
    nonce: int,
    vault_address: str | None = None,
    expires_after: int | None = None,
) -> bytes:
    """Connection id of an L1 action: keccak over encoding, nonce and vault."""
    if not 0 <= nonce <= MAX_NONCE:
        raise SigningError(f"nonce out of range: {nonce}")

    data = encode_action(action)
    data += nonce.to_bytes(8, "big")
    if vault_address is None:
        data += b"\x00"
    else:
        data += b"\x01" + address_to_bytes(vault_address)
    if expires_after is not None:
        data += b"\x00" + expires_after.to_bytes(8, "big")
    return keccak(data)


def address_to_bytes(address: str) -> bytes:
    raw = address[2:] if address.startswith("0x") else address
    try:
        value = bytes.fromhex(raw)
    except ValueError as exc:
        raise SigningError(f"Invalid address: {address!r}") from exc
    if len(value) != 20:
        raise SigningError(f"Invalid address length: {address!r}")
    return value
