"""Read-only queries against the ``/info`` endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..errors import ProtocolError, Rejected, Unreachable
from ..exchange.protocol import HttpTransport

logger = logging.getLogger(__name__)

INFO_PATH = "/info"


class InfoClient:
    """Market and account state queries.

    Unlike trading actions these are safe to repeat, so failures are raised
    as ``Unreachable``/``ProtocolError``/``Rejected`` rather than returned.
    """

    def __init__(self, transport: HttpTransport):
        self.transport = transport

    async def query(self, payload: dict[str, Any]) -> Any:
        raw = await self.transport.post(INFO_PATH, payload)
        if 400 <= raw.status < 500:
            raise Rejected(raw.text, status_code=raw.status)
        if raw.status >= 500:
            raise Unreachable(f"Server error {raw.status}", outcome_unknown=False)
        try:
            return json.loads(raw.text)
        except json.JSONDecodeError as exc:
            raise ProtocolError(f"{payload.get('type')} response is not JSON", body=raw.text) from exc

    async def meta(self, dex: str = "") -> dict[str, Any]:
        """Perpetuals universe: names, ``szDecimals`` and max leverage."""
        payload: dict[str, Any] = {"type": "meta"}
        if dex:
            payload["dex"] = dex
        return await self.query(payload)

    async def spot_meta(self) -> dict[str, Any]:
        return await self.query({"type": "spotMeta"})

    async def all_mids(self) -> dict[str, str]:
        return await self.query({"type": "allMids"})

    async def user_state(self, address: str) -> dict[str, Any]:
        """Perpetuals margin summary and positions."""
        return await self.query({"type": "clearinghouseState", "user": address})

    async def spot_user_state(self, address: str) -> dict[str, Any]:
        return await self.query({"type": "spotClearinghouseState", "user": address})

    async def open_orders(self, address: str) -> list[dict[str, Any]]:
        return await self.query({"type": "openOrders", "user": address})

    async def frontend_open_orders(self, address: str) -> list[dict[str, Any]]:
        return await self.query({"type": "frontendOpenOrders", "user": address})

    async def user_fills(self, address: str) -> list[dict[str, Any]]:
        return await self.query({"type": "userFills", "user": address})

    async def user_fills_by_time(
        self, address: str, start_time: int, end_time: int | None = None
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {"type": "userFillsByTime", "user": address, "startTime": start_time}
        if end_time is not None:
            payload["endTime"] = end_time
        return await self.query(payload)

    async def user_fees(self, address: str) -> dict[str, Any]:
        return await self.query({"type": "userFees", "user": address})

    async def user_role(self, address: str) -> dict[str, Any]:
        return await self.query({"type": "userRole", "user": address})

    async def funding_history(
        self, coin: str, start_time: int, end_time: int | None = None
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {"type": "fundingHistory", "coin": coin, "startTime": start_time}
        if end_time is not None:
            payload["endTime"] = end_time
        return await self.query(payload)

    async def l2_snapshot(self, coin: str) -> dict[str, Any]:
        return await self.query({"type": "l2Book", "coin": coin})

    async def candles_snapshot(
        self, coin: str, interval: str, start_time: int, end_time: int
    ) -> list[dict[str, Any]]:
        req = {"coin": coin, "interval": interval, "startTime": start_time, "endTime": end_time}
        return await self.query({"type": "candleSnapshot", "req": req})

    async def query_order_by_oid(self, address: str, oid: int) -> dict[str, Any]:
        return await self.query({"type": "orderStatus", "user": address, "oid": oid})

    async def query_order_by_cloid(self, address: str, cloid: str) -> dict[str, Any]:
        return await self.query({"type": "orderStatus", "user": address, "oid": cloid})
