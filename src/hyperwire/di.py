from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .errors import ConfigError
from .exchange.client import ExchangeClient
from .exchange.dispatcher import RequestDispatcher
from .exchange.nonce import NonceManager
from .exchange.protocol import HttpTransport
from .exchange.signer import Signer
from .exchange.transport import AiohttpTransport
from .info.client import InfoClient
from .stream.backoff import Backoff
from .stream.manager import SubscriptionManager
from .stream.transport import AiohttpStreamTransport, StreamTransport

if TYPE_CHECKING:
    from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContainer:
    settings: "Settings"
    transport: HttpTransport
    info: InfoClient
    stream: SubscriptionManager
    shutdown: asyncio.Event = field(default_factory=asyncio.Event)
    signer: Signer | None = None
    nonces: NonceManager | None = None
    dispatcher: RequestDispatcher | None = None
    exchange: ExchangeClient | None = None

    @property
    def account_address(self) -> str | None:
        if self.settings.account.account_address:
            return self.settings.account.account_address
        return self.signer.address if self.signer else None

    def require_exchange(self) -> ExchangeClient:
        if self.exchange is None:
            raise ConfigError("account.private_key is required for trading commands")
        return self.exchange

    async def aclose(self) -> None:
        self.shutdown.set()
        await self.stream.close()
        await self.transport.close()


def build_container(
    settings: "Settings",
    *,
    transport: HttpTransport | None = None,
    stream_transport: StreamTransport | None = None,
) -> AppContainer:
    """Wire clients from settings. Trading pieces exist only when a key is configured."""
    network = settings.network
    transport = transport or AiohttpTransport(network.api_url)
    info = InfoClient(transport)

    stream = SubscriptionManager(
        stream_transport or AiohttpStreamTransport(network.ws_url),
        backoff=Backoff.from_settings(settings.backoff),
        ping_interval=settings.stream.ping_interval,
        pong_timeout=settings.stream.pong_timeout,
        ack_timeout=settings.stream.resubscribe_ack_timeout,
        require_ack=settings.stream.require_ack,
    )

    container = AppContainer(settings=settings, transport=transport, info=info, stream=stream)

    key = settings.account.private_key
    if key is None:
        logger.info("no private key configured; read-only mode")
        return container

    container.signer = Signer(
        key.get_secret_value(),
        is_mainnet=network.is_mainnet,
        vault_address=settings.account.vault_address,
    )
    container.nonces = NonceManager()
    container.dispatcher = RequestDispatcher(
        transport,
        container.signer,
        container.nonces,
        timeout=settings.dispatch.request_timeout,
        expires_after_ms=settings.dispatch.expires_after_ms,
    )
    container.exchange = ExchangeClient(
        container.dispatcher,
        info,
        account_address=settings.account.account_address,
    )
    logger.info("signer ready for %s on %s", container.signer.address, network.name)
    return container
