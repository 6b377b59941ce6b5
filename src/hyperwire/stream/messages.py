"""Inbound stream messages."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import ProtocolError

logger = logging.getLogger(__name__)


class Channel(str, Enum):
    ALL_MIDS = "allMids"
    L2_BOOK = "l2Book"
    TRADES = "trades"
    CANDLE = "candle"
    BBO = "bbo"
    ACTIVE_ASSET_CTX = "activeAssetCtx"
    ACTIVE_SPOT_ASSET_CTX = "activeSpotAssetCtx"
    ACTIVE_ASSET_DATA = "activeAssetData"
    USER = "user"
    USER_FILLS = "userFills"
    ORDER_UPDATES = "orderUpdates"
    USER_FUNDINGS = "userFundings"
    USER_NON_FUNDING_LEDGER_UPDATES = "userNonFundingLedgerUpdates"
    WEB_DATA2 = "webData2"
    NOTIFICATION = "notification"
    USER_TWAP_SLICE_FILLS = "userTwapSliceFills"
    SUBSCRIPTION_RESPONSE = "subscriptionResponse"
    PONG = "pong"
    ERROR = "error"


CONTROL_CHANNELS = frozenset({Channel.SUBSCRIPTION_RESPONSE, Channel.PONG, Channel.ERROR})

_USER_KEYED = {
    Channel.USER_FILLS,
    Channel.USER_FUNDINGS,
    Channel.USER_NON_FUNDING_LEDGER_UPDATES,
    Channel.WEB_DATA2,
    Channel.USER_TWAP_SLICE_FILLS,
}

_COIN_KEYED = {Channel.L2_BOOK, Channel.BBO}


@dataclass(frozen=True, slots=True)
class StreamMessage:
    channel: Channel
    data: Any
    topic_key: str | None = None


def topic_key_for(channel: Channel, data: Any) -> str | None:
    """Key of the topic a payload belongs to, or ``None`` for control frames."""
    if channel in CONTROL_CHANNELS:
        return None
    if channel is Channel.ALL_MIDS:
        return "allMids"
    if channel is Channel.USER:
        return "userEvents"
    if channel is Channel.ORDER_UPDATES:
        return "orderUpdates"
    if channel is Channel.NOTIFICATION:
        return "notification"
    if channel is Channel.TRADES:
        if not data:
            return None
        return f"trades:{data[0]['coin'].lower()}"
    if channel is Channel.CANDLE:
        return f"candle:{data['s'].lower()},{data['i']}"
    if channel in (Channel.ACTIVE_ASSET_CTX, Channel.ACTIVE_SPOT_ASSET_CTX):
        return f"activeAssetCtx:{data['coin'].lower()}"
    if channel is Channel.ACTIVE_ASSET_DATA:
        return f"activeAssetData:{data['coin'].lower()},{data['user'].lower()}"
    if channel in _COIN_KEYED:
        return f"{channel.value}:{data['coin'].lower()}"
    if channel in _USER_KEYED:
        return f"{channel.value}:{data['user'].lower()}"
    return None


def parse_message(text: str) -> StreamMessage | None:
    """Decode one text frame.

    Returns ``None`` for frames that are not JSON objects (the server greets
    with plain text) and for channels this client does not know.
    """
    if not text.startswith("{"):
        return None
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolError("Stream frame is not valid JSON", body=text) from exc

    try:
        channel = Channel(raw.get("channel"))
    except ValueError:
        logger.debug("unhandled stream channel: %s", raw.get("channel"))
        return None

    data = raw.get("data")
    try:
        key = topic_key_for(channel, data)
    except (KeyError, TypeError, AttributeError, IndexError) as exc:
        raise ProtocolError(f"Malformed {channel.value} payload", body=text) from exc
    return StreamMessage(channel=channel, data=data, topic_key=key)
