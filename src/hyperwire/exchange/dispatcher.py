"""Signed action submission."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from ..errors import DispatchError, ProtocolError, Rejected, Unreachable
from .actions import Action, UserSignedAction
from .nonce import NonceManager, now_ms
from .protocol import HttpTransport
from .responses import ExchangeResponse, parse_exchange_response
from .signer import Signature, Signer

logger = logging.getLogger(__name__)

EXCHANGE_PATH = "/exchange"


class DispatchStatus(Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"
    PROTOCOL_ERROR = "protocol_error"


@dataclass(frozen=True, slots=True)
class SignedRequest:
    """An action bound to its nonce and signature, ready to send."""

    action: Action
    nonce: int
    signature: Signature
    vault_address: str | None = None
    expires_after: int | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "action": self.action.to_wire(),
            "nonce": self.nonce,
            "signature": self.signature.to_wire(),
            "vaultAddress": self.vault_address,
        }
        if self.expires_after is not None:
            payload["expiresAfter"] = self.expires_after
        return payload


@dataclass(frozen=True, slots=True)
class SubmitResult:
    """Outcome of one submission.

    Exactly one of ``response`` and ``error`` is set. A timeout is reported
    as ``Unreachable`` with ``timed_out`` set: the action may still have been
    executed.
    """

    nonce: int
    response: ExchangeResponse | None = None
    error: DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> DispatchStatus:
        if self.error is None:
            return DispatchStatus.ACCEPTED
        if isinstance(self.error, Rejected):
            return DispatchStatus.REJECTED
        if isinstance(self.error, Unreachable):
            return DispatchStatus.UNREACHABLE
        return DispatchStatus.PROTOCOL_ERROR

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, Unreachable) and self.error.timed_out

    def raise_for_status(self) -> ExchangeResponse:
        if self.error is not None:
            raise self.error
        return self.response


class RequestDispatcher:
    """Signs actions and sends each one exactly once.

    There is no retry at this layer: resending a signed trading action after
    an unknown outcome risks executing it twice.
    """

    def __init__(
        self,
        transport: HttpTransport,
        signer: Signer,
        nonces: NonceManager,
        *,
        timeout: float = 10.0,
        expires_after_ms: int | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.transport = transport
        self.signer = signer
        self.nonces = nonces
        self.timeout = timeout
        self.expires_after_ms = expires_after_ms
        self._clock = clock

    def sign(self, action: Action, nonce: int) -> SignedRequest:
        """Bind ``action`` to ``nonce`` and sign it. Raises ``SigningError``."""
        if isinstance(action, UserSignedAction):
            action = action.stamped(nonce, is_mainnet=self.signer.is_mainnet)
            signature = self.signer.sign(action, nonce)
            return SignedRequest(action=action, nonce=nonce, signature=signature)

        expires_after = None
        if self.expires_after_ms is not None:
            expires_after = self._clock() + self.expires_after_ms
        signature = self.signer.sign(action, nonce, expires_after=expires_after)
        return SignedRequest(
            action=action,
            nonce=nonce,
            signature=signature,
            vault_address=self.signer.vault_address,
            expires_after=expires_after,
        )

    async def submit(self, action: Action, *, timeout: float | None = None) -> SubmitResult:
        """Sign and send ``action``; one network round trip.

        Signing problems raise ``SigningError``. Every transport or exchange
        outcome is returned inside the ``SubmitResult``.
        """
        nonce = self.nonces.next()
        request = self.sign(action, nonce)
        payload = request.to_payload()
        action_type = payload["action"]["type"]
        limit = self.timeout if timeout is None else timeout

        logger.debug("submitting %s nonce=%d", action_type, nonce)

        try:
            async with asyncio.timeout(limit):
                raw = await self.transport.post(EXCHANGE_PATH, payload)
        except TimeoutError:
            logger.warning("%s nonce=%d timed out after %.1fs; outcome unknown", action_type, nonce, limit)
            return SubmitResult(
                nonce,
                error=Unreachable(f"No response within {limit}s", timed_out=True),
            )
        except asyncio.CancelledError:
            logger.warning("%s nonce=%d cancelled by caller; it may still execute", action_type, nonce)
            raise
        except DispatchError as exc:
            logger.warning("%s nonce=%d failed: %s", action_type, nonce, exc)
            return SubmitResult(nonce, error=exc)

        try:
            response = parse_exchange_response(raw)
        except Rejected as exc:
            logger.info("%s nonce=%d rejected: %s", action_type, nonce, exc.reason)
            return SubmitResult(nonce, error=exc)
        except (ProtocolError, Unreachable) as exc:
            logger.error("%s nonce=%d: %s", action_type, nonce, exc)
            return SubmitResult(nonce, error=exc)

        logger.info("%s nonce=%d accepted oids=%s", action_type, nonce, response.order_ids)
        return SubmitResult(nonce, response=response)
