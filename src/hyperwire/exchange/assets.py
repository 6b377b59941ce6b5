"""Coin name to asset id resolution and exchange price rounding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..errors import AssetNotFoundError

logger = logging.getLogger(__name__)

SPOT_ASSET_OFFSET = 10_000
PERP_MAX_DECIMALS = 6
SPOT_MAX_DECIMALS = 8


@dataclass(frozen=True, slots=True)
class AssetInfo:
    name: str
    asset: int
    sz_decimals: int

    @property
    def is_spot(self) -> bool:
        return self.asset >= SPOT_ASSET_OFFSET


class AssetDirectory:
    """Maps coin names (``BTC``, ``PURR/USDC``, ``@107``) to asset ids."""

    def __init__(self, assets: list[AssetInfo] | None = None):
        self._by_name: dict[str, AssetInfo] = {}
        for info in assets or []:
            self.add(info)

    def add(self, info: AssetInfo, *aliases: str) -> None:
        self._by_name[info.name] = info
        for alias in aliases:
            self._by_name[alias] = info

    @classmethod
    def from_meta(cls, meta: dict[str, Any], spot_meta: dict[str, Any] | None = None) -> "AssetDirectory":
        directory = cls()
        for index, entry in enumerate(meta.get("universe", [])):
            directory.add(AssetInfo(entry["name"], index, int(entry["szDecimals"])))

        if spot_meta:
            tokens = {token["index"]: token for token in spot_meta.get("tokens", [])}
            for entry in spot_meta.get("universe", []):
                asset = SPOT_ASSET_OFFSET + entry["index"]
                base, quote = entry["tokens"]
                base_token = tokens.get(base)
                if base_token is None or quote not in tokens:
                    logger.debug("skipping spot pair %s with unknown tokens", entry.get("name"))
                    continue
                pair_name = f"{base_token['name']}/{tokens[quote]['name']}"
                info = AssetInfo(entry["name"], asset, int(base_token["szDecimals"]))
                directory.add(info, pair_name)

        logger.debug("asset directory loaded with %d names", len(directory))
        return directory

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, coin: str) -> bool:
        return coin in self._by_name

    def get(self, coin: str) -> AssetInfo:
        try:
            return self._by_name[coin]
        except KeyError:
            raise AssetNotFoundError(coin) from None

    def asset_id(self, coin: str) -> int:
        return self.get(coin).asset


def round_size(sz: float, sz_decimals: int) -> float:
    return round(sz, sz_decimals)


def round_price(px: float, info: AssetInfo) -> float:
    """Five significant figures, then the asset's allowed decimals."""
    max_decimals = SPOT_MAX_DECIMALS if info.is_spot else PERP_MAX_DECIMALS
    decimals = max(max_decimals - info.sz_decimals, 0)
    return round(float(f"{px:.5g}"), decimals)


def slippage_price(mid: float, is_buy: bool, slippage: float, info: AssetInfo) -> float:
    px = mid * (1 + slippage) if is_buy else mid * (1 - slippage)
    return round_price(px, info)
