"""WebSocket transport for the subscription manager."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import aiohttp

from ..errors import ConnectionLost

logger = logging.getLogger(__name__)


class StreamConnection(Protocol):
    """One live duplex connection.

    ``receive`` returns the next text frame (possibly empty for control
    frames) and raises ``ConnectionLost`` once the connection is gone.
    """

    async def send(self, payload: dict[str, Any]) -> None: ...

    async def receive(self) -> str: ...

    async def close(self) -> None: ...


class StreamTransport(Protocol):
    async def connect(self) -> StreamConnection: ...

    async def close(self) -> None: ...


class AiohttpStreamConnection:
    def __init__(self, ws: aiohttp.ClientWebSocketResponse):
        self._ws = ws

    async def send(self, payload: dict[str, Any]) -> None:
        if self._ws.closed:
            raise ConnectionLost("send on closed connection")
        try:
            await self._ws.send_str(json.dumps(payload))
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            raise ConnectionLost(f"send failed: {exc}") from exc

    async def receive(self) -> str:
        msg = await self._ws.receive()
        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            try:
                return msg.data.decode("utf-8")
            except UnicodeDecodeError as exc:
                logger.warning("dropping binary frame that is not UTF-8: %s", exc)
                return ""
        if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
            raise ConnectionLost(f"closed by peer (code={self._ws.close_code})")
        if msg.type == aiohttp.WSMsgType.ERROR:
            raise ConnectionLost(f"websocket error: {self._ws.exception()}")
        # protocol-level ping/pong is answered by aiohttp
        return ""

    async def close(self) -> None:
        if not self._ws.closed:
            await self._ws.close()


class AiohttpStreamTransport:
    """Opens websocket connections over a lazily created aiohttp session."""

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        connect_timeout: float = 10.0,
    ):
        self.url = url
        self.session = session
        self._owns_session = session is None
        self.connect_timeout = connect_timeout

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
        return self.session

    async def connect(self) -> AiohttpStreamConnection:
        session = await self._ensure_session()
        logger.debug("connecting to %s", self.url)
        try:
            async with asyncio.timeout(self.connect_timeout):
                ws = await session.ws_connect(self.url, autoping=True)
        except (aiohttp.ClientError, OSError, TimeoutError) as exc:
            raise ConnectionLost(f"Cannot connect to {self.url}: {exc}") from exc
        return AiohttpStreamConnection(ws)

    async def close(self) -> None:
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()
