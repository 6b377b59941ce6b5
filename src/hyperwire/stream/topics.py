"""Streaming topics and their demultiplexing keys."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# topic type -> parameters it requires
TOPIC_PARAMS: dict[str, tuple[str, ...]] = {
    "allMids": (),
    "l2Book": ("coin",),
    "trades": ("coin",),
    "candle": ("coin", "interval"),
    "bbo": ("coin",),
    "activeAssetCtx": ("coin",),
    "activeAssetData": ("user", "coin"),
    "userEvents": ("user",),
    "userFills": ("user",),
    "orderUpdates": ("user",),
    "userFundings": ("user",),
    "userNonFundingLedgerUpdates": ("user",),
    "webData2": ("user",),
    "notification": ("user",),
    "userTwapSliceFills": ("user",),
}

# inbound messages for these carry no user, so every subscriber shares one key
_UNKEYED_USER_TOPICS = {"userEvents", "orderUpdates", "notification"}


@dataclass(frozen=True, slots=True)
class Topic:
    """A subscription target. Construct through the classmethods."""

    type: str
    coin: str | None = None
    user: str | None = None
    interval: str | None = None

    def __post_init__(self) -> None:
        required = TOPIC_PARAMS.get(self.type)
        if required is None:
            raise ValueError(f"Unknown topic type: {self.type}")
        for name in ("coin", "user", "interval"):
            present = getattr(self, name) is not None
            if present != (name in required):
                raise ValueError(f"Topic {self.type} {'requires' if not present else 'does not take'} {name}")

    @property
    def key(self) -> str:
        """Demultiplexing key; inbound messages are keyed the same way."""
        if self.type == "allMids" or self.type in _UNKEYED_USER_TOPICS:
            return self.type
        if self.type == "candle":
            return f"candle:{self.coin.lower()},{self.interval}"
        if self.type == "activeAssetData":
            return f"activeAssetData:{self.coin.lower()},{self.user.lower()}"
        if self.coin is not None:
            return f"{self.type}:{self.coin.lower()}"
        return f"{self.type}:{self.user.lower()}"

    def conflicts_with(self, other: "Topic") -> bool:
        """True when both share a key but target different accounts.

        Only one account can hold a ``userEvents``, ``orderUpdates`` or
        ``notification`` subscription per connection.
        """
        if self.type not in _UNKEYED_USER_TOPICS or self.key != other.key:
            return False
        return (self.user or "").lower() != (other.user or "").lower()

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"type": self.type}
        for name in TOPIC_PARAMS[self.type]:
            wire[name] = getattr(self, name)
        return wire

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "Topic":
        kind = data.get("type")
        if kind not in TOPIC_PARAMS:
            raise ValueError(f"Unknown topic type: {kind}")
        return cls(kind, **{name: data.get(name) for name in TOPIC_PARAMS[kind]})

    @classmethod
    def all_mids(cls) -> "Topic":
        return cls("allMids")

    @classmethod
    def l2_book(cls, coin: str) -> "Topic":
        return cls("l2Book", coin=coin)

    @classmethod
    def trades(cls, coin: str) -> "Topic":
        return cls("trades", coin=coin)

    @classmethod
    def candle(cls, coin: str, interval: str) -> "Topic":
        return cls("candle", coin=coin, interval=interval)

    @classmethod
    def bbo(cls, coin: str) -> "Topic":
        return cls("bbo", coin=coin)

    @classmethod
    def active_asset_ctx(cls, coin: str) -> "Topic":
        return cls("activeAssetCtx", coin=coin)

    @classmethod
    def active_asset_data(cls, user: str, coin: str) -> "Topic":
        return cls("activeAssetData", coin=coin, user=user)

    @classmethod
    def user_events(cls, user: str) -> "Topic":
        return cls("userEvents", user=user)

    @classmethod
    def user_fills(cls, user: str) -> "Topic":
        return cls("userFills", user=user)

    @classmethod
    def order_updates(cls, user: str) -> "Topic":
        return cls("orderUpdates", user=user)

    @classmethod
    def user_fundings(cls, user: str) -> "Topic":
        return cls("userFundings", user=user)

    @classmethod
    def user_non_funding_ledger_updates(cls, user: str) -> "Topic":
        return cls("userNonFundingLedgerUpdates", user=user)

    @classmethod
    def web_data2(cls, user: str) -> "Topic":
        return cls("webData2", user=user)

    @classmethod
    def notification(cls, user: str) -> "Topic":
        return cls("notification", user=user)

    @classmethod
    def user_twap_slice_fills(cls, user: str) -> "Topic":
        return cls("userTwapSliceFills", user=user)


def subscribe_frame(topic: Topic) -> dict[str, Any]:
    return {"method": "subscribe", "subscription": topic.to_wire()}


def unsubscribe_frame(topic: Topic) -> dict[str, Any]:
    return {"method": "unsubscribe", "subscription": topic.to_wire()}


PING_FRAME: dict[str, Any] = {"method": "ping"}
