"""aiohttp implementation of the HTTP transport."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from ..errors import Unreachable
from .protocol import HttpResponse

logger = logging.getLogger(__name__)


class AiohttpTransport:
    """Posts JSON to the exchange API over a lazily created aiohttp session."""

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        user_agent: str = "hyperwire/0.1",
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self._owns_session = session is None
        self.user_agent = user_agent

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            connector = aiohttp.TCPConnector()
            self.session = aiohttp.ClientSession(connector=connector)
            self._owns_session = True
        return self.session

    def _get_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }

    async def post(self, path: str, payload: dict[str, Any]) -> HttpResponse:
        session = await self._ensure_session()
        url = f"{self.base_url}{path}"
        body = json.dumps(payload)

        try:
            async with session.post(url, data=body, headers=self._get_headers()) as resp:
                text = await resp.text()
                return HttpResponse(resp.status, text)
        except aiohttp.ClientConnectorError as exc:
            # nothing was sent
            raise Unreachable(f"Cannot connect to {url}: {exc}", outcome_unknown=False) from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise Unreachable(f"Request to {url} failed: {exc}") from exc

    async def close(self) -> None:
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()
