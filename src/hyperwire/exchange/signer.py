"""EIP-712 signing of actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_hex

from ..errors import ConfigError, SigningError
from .actions import Action, L1Action, UserSignedAction
from .encoding import action_hash

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

EIP712_DOMAIN_TYPES = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

AGENT_TYPES = [
    {"name": "source", "type": "string"},
    {"name": "connectionId", "type": "bytes32"},
]


@dataclass(frozen=True, slots=True)
class Signature:
    r: str
    s: str
    v: int

    def to_wire(self) -> dict[str, Any]:
        return {"r": self.r, "s": self.s, "v": self.v}


def l1_payload(connection_id: bytes, is_mainnet: bool) -> dict[str, Any]:
    """Typed data for the phantom agent that stands in for an L1 action."""
    return {
        "domain": {
            "chainId": 1337,
            "name": "Exchange",
            "verifyingContract": ZERO_ADDRESS,
            "version": "1",
        },
        "types": {
            "Agent": AGENT_TYPES,
            "EIP712Domain": EIP712_DOMAIN_TYPES,
        },
        "primaryType": "Agent",
        "message": {
            "source": "a" if is_mainnet else "b",
            "connectionId": connection_id,
        },
    }


def user_signed_payload(action: UserSignedAction) -> dict[str, Any]:
    return {
        "domain": {
            "name": "HyperliquidSignTransaction",
            "version": "1",
            "chainId": int(action.to_wire()["signatureChainId"], 16),
            "verifyingContract": ZERO_ADDRESS,
        },
        "types": {
            action.primary_type: action.typed_fields(),
            "EIP712Domain": EIP712_DOMAIN_TYPES,
        },
        "primaryType": action.primary_type,
        "message": action.typed_message(),
    }


class Signer:
    """Signs actions with a single private key.

    The key never leaves this object: it is not logged, not included in
    ``repr`` and not exposed as an attribute.
    """

    def __init__(self, private_key: str, *, is_mainnet: bool = True, vault_address: str | None = None):
        try:
            self._account = Account.from_key(private_key)
        except Exception as exc:  # eth_keys raises its own ValidationError
            raise ConfigError("Invalid private key material") from exc
        self.is_mainnet = is_mainnet
        self.vault_address = vault_address.lower() if vault_address else None

    def __repr__(self) -> str:
        return f"Signer(address={self.address}, is_mainnet={self.is_mainnet})"

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, action: Action, nonce: int, *, expires_after: int | None = None) -> Signature:
        """Sign ``action`` at ``nonce``.

        User-signed actions must already be stamped with the same nonce.
        Deterministic for identical inputs (RFC 6979 nonces).
        """
        if isinstance(action, UserSignedAction):
            if getattr(action, action.nonce_field) != nonce:
                raise SigningError(f"{type(action).__name__} is not stamped with nonce {nonce}")
            return self._sign_typed(user_signed_payload(action))
        if isinstance(action, L1Action):
            connection_id = action_hash(action, nonce, self.vault_address, expires_after)
            return self._sign_typed(l1_payload(connection_id, self.is_mainnet))
        raise SigningError(f"Unsupported action type: {type(action).__name__}")

    def _sign_typed(self, data: dict[str, Any]) -> Signature:
        try:
            signable = encode_typed_data(full_message=data)
            signed = self._account.sign_message(signable)
        except Exception as exc:
            raise SigningError(f"Failed to sign {data['primaryType']}: {exc}") from exc
        return Signature(r=to_hex(signed.r), s=to_hex(signed.s), v=signed.v)
