"""Decoding of exchange responses into typed results."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from ..errors import ProtocolError, Rejected, Unreachable
from .protocol import HttpResponse


@dataclass(frozen=True, slots=True)
class Resting:
    oid: int
    cloid: str | None = None


@dataclass(frozen=True, slots=True)
class Filled:
    oid: int
    total_sz: str
    avg_px: str
    cloid: str | None = None


@dataclass(frozen=True, slots=True)
class Acknowledged:
    """Status without an order id: ``success``, ``waitingForFill`` or ``waitingForTrigger``."""

    kind: str


@dataclass(frozen=True, slots=True)
class OrderError:
    message: str


OrderStatus = Union[Resting, Filled, Acknowledged, OrderError]


@dataclass(frozen=True, slots=True)
class ExchangeResponse:
    response_type: str
    statuses: tuple[OrderStatus, ...] = ()
    raw: Any = None

    @property
    def order_ids(self) -> list[int]:
        return [s.oid for s in self.statuses if isinstance(s, (Resting, Filled))]

    @property
    def errors(self) -> list[str]:
        return [s.message for s in self.statuses if isinstance(s, OrderError)]


def _parse_status(item: Any) -> OrderStatus:
    if isinstance(item, str):
        return Acknowledged(item)
    if not isinstance(item, dict) or len(item) != 1:
        raise ProtocolError(f"Unexpected order status: {item!r}")

    (kind, body), = item.items()
    try:
        if kind == "resting":
            return Resting(oid=int(body["oid"]), cloid=body.get("cloid"))
        if kind == "filled":
            return Filled(
                oid=int(body["oid"]),
                total_sz=str(body["totalSz"]),
                avg_px=str(body["avgPx"]),
                cloid=body.get("cloid"),
            )
        if kind == "error":
            return OrderError(str(body))
    except (KeyError, TypeError, ValueError) as exc:
        raise ProtocolError(f"Malformed {kind} status: {item!r}") from exc
    raise ProtocolError(f"Unknown order status kind: {kind}")


def parse_exchange_response(response: HttpResponse) -> ExchangeResponse:
    """Turn a raw ``/exchange`` answer into an ``ExchangeResponse``.

    Raises ``Rejected`` when the exchange refused the action as a whole (an
    ``err`` status, a 4xx answer, or every order in the batch erroring) and
    ``ProtocolError`` when the answer cannot be understood. A 5xx answer is
    ``Unreachable``: the action may or may not have been applied.
    """
    if 400 <= response.status < 500:
        raise Rejected(_error_message(response.text), status_code=response.status)
    if response.status >= 500:
        raise Unreachable(f"Server error {response.status}: {response.text[:200]}")

    try:
        data = json.loads(response.text)
    except json.JSONDecodeError as exc:
        raise ProtocolError("Response is not JSON", body=response.text) from exc

    if not isinstance(data, dict) or "status" not in data:
        raise ProtocolError("Response has no status", body=response.text)

    if data["status"] == "err":
        raise Rejected(str(data.get("response", "")), status_code=response.status)
    if data["status"] != "ok":
        raise ProtocolError(f"Unknown response status: {data['status']!r}", body=response.text)

    body = data.get("response")
    if not isinstance(body, dict) or "type" not in body:
        raise ProtocolError("Response body has no type", body=response.text)

    raw_statuses = (body.get("data") or {}).get("statuses", [])
    statuses = tuple(_parse_status(item) for item in raw_statuses)

    if statuses and all(isinstance(s, OrderError) for s in statuses):
        raise Rejected("; ".join(s.message for s in statuses), status_code=response.status)

    return ExchangeResponse(response_type=body["type"], statuses=statuses, raw=data)


def _error_message(text: str) -> str:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(data, dict):
        return str(data.get("msg") or data.get("response") or data.get("error") or text)
    return text
