"""High-level trading client."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING

from eth_account import Account

from ..errors import AssetNotFoundError, NoPositionError
from .actions import (
    Action,
    ApproveAgent,
    ApproveBuilderFee,
    BuilderInfo,
    CancelByCloid,
    CancelOrder,
    CancelSpec,
    ClaimRewards,
    CloidCancelSpec,
    EvmUserModify,
    LimitOrderType,
    ModifyOrder,
    ModifySpec,
    Noop,
    OrderSpec,
    OrderType,
    PlaceOrder,
    ScheduleCancel,
    SetReferrer,
    SpotSend,
    TwapCancel,
    TwapOrder,
    UpdateIsolatedMargin,
    UpdateLeverage,
    UsdClassTransfer,
    UsdSend,
    VaultTransfer,
    Withdraw,
)
from .assets import AssetDirectory, round_size, slippage_price
from .encoding import float_to_usd_int, float_to_wire
from .dispatcher import RequestDispatcher, SubmitResult

if TYPE_CHECKING:
    from ..info.client import InfoClient

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE = 0.05


def _amount(value: float | str) -> str:
    """Signed transfer amounts are decimal strings; text passes through as given."""
    return value if isinstance(value, str) else float_to_wire(value)


class ExchangeClient:
    """Trading operations addressed by coin name.

    Every method builds one action and hands it to the dispatcher, returning
    its ``SubmitResult`` unchanged.
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        info: "InfoClient",
        *,
        assets: AssetDirectory | None = None,
        account_address: str | None = None,
    ):
        self.dispatcher = dispatcher
        self.info = info
        self.assets = assets
        self.account_address = account_address or dispatcher.signer.address

    async def load_assets(self) -> AssetDirectory:
        meta = await self.info.meta()
        spot_meta = await self.info.spot_meta()
        self.assets = AssetDirectory.from_meta(meta, spot_meta)
        return self.assets

    async def _directory(self) -> AssetDirectory:
        if self.assets is None:
            return await self.load_assets()
        return self.assets

    async def _asset(self, coin: str) -> int:
        return (await self._directory()).asset_id(coin)

    async def submit_action(self, action: Action, *, timeout: float | None = None) -> SubmitResult:
        return await self.dispatcher.submit(action, timeout=timeout)

    # -- orders ----------------------------------------------------------------

    async def build_order(
        self,
        coin: str,
        is_buy: bool,
        sz: float,
        limit_px: float,
        order_type: OrderType | None = None,
        *,
        reduce_only: bool = False,
        cloid: str | None = None,
    ) -> OrderSpec:
        return OrderSpec(
            asset=await self._asset(coin),
            is_buy=is_buy,
            sz=sz,
            limit_px=limit_px,
            order_type=order_type or LimitOrderType(),
            reduce_only=reduce_only,
            cloid=cloid,
        )

    async def order(
        self,
        coin: str,
        is_buy: bool,
        sz: float,
        limit_px: float,
        order_type: OrderType | None = None,
        *,
        reduce_only: bool = False,
        cloid: str | None = None,
        builder: BuilderInfo | None = None,
    ) -> SubmitResult:
        spec = await self.build_order(
            coin, is_buy, sz, limit_px, order_type, reduce_only=reduce_only, cloid=cloid
        )
        return await self.bulk_orders([spec], builder=builder)

    async def bulk_orders(
        self,
        orders: list[OrderSpec],
        *,
        grouping: str = "na",
        builder: BuilderInfo | None = None,
    ) -> SubmitResult:
        return await self.submit_action(PlaceOrder(tuple(orders), grouping, builder))

    async def market_open(
        self,
        coin: str,
        is_buy: bool,
        sz: float,
        *,
        px: float | None = None,
        slippage: float = DEFAULT_SLIPPAGE,
        cloid: str | None = None,
        builder: BuilderInfo | None = None,
    ) -> SubmitResult:
        """Aggressive IOC limit order priced ``slippage`` through the mid."""
        info = (await self._directory()).get(coin)
        limit_px = await self._slippage_price(coin, is_buy, slippage, px)
        return await self.order(
            coin,
            is_buy,
            round_size(sz, info.sz_decimals),
            limit_px,
            LimitOrderType("Ioc"),
            cloid=cloid,
            builder=builder,
        )

    async def market_close(
        self,
        coin: str,
        sz: float | None = None,
        *,
        px: float | None = None,
        slippage: float = DEFAULT_SLIPPAGE,
        cloid: str | None = None,
    ) -> SubmitResult:
        """Reduce-only IOC order against the current position in ``coin``.

        Raises ``NoPositionError`` when the account holds none.
        """
        info = (await self._directory()).get(coin)
        state = await self.info.user_state(self.account_address)
        for entry in state.get("assetPositions", []):
            position = entry.get("position", {})
            if position.get("coin") != coin:
                continue
            szi = float(position["szi"])
            if szi == 0:
                break
            is_buy = szi < 0
            limit_px = await self._slippage_price(coin, is_buy, slippage, px)
            return await self.order(
                coin,
                is_buy,
                round_size(sz if sz is not None else abs(szi), info.sz_decimals),
                limit_px,
                LimitOrderType("Ioc"),
                reduce_only=True,
                cloid=cloid,
            )
        raise NoPositionError(coin)

    async def _slippage_price(self, coin: str, is_buy: bool, slippage: float, px: float | None) -> float:
        info = (await self._directory()).get(coin)
        if px is None:
            mids = await self.info.all_mids()
            if coin not in mids:
                raise AssetNotFoundError(coin)
            px = float(mids[coin])
        return slippage_price(px, is_buy, slippage, info)

    async def cancel(self, coin: str, oid: int) -> SubmitResult:
        return await self.bulk_cancel([(coin, oid)])

    async def bulk_cancel(self, cancels: list[tuple[str, int]]) -> SubmitResult:
        specs = [CancelSpec(await self._asset(coin), oid) for coin, oid in cancels]
        return await self.submit_action(CancelOrder(tuple(specs)))

    async def cancel_by_cloid(self, coin: str, cloid: str) -> SubmitResult:
        spec = CloidCancelSpec(await self._asset(coin), cloid)
        return await self.submit_action(CancelByCloid((spec,)))

    async def modify_order(
        self,
        oid: int | str,
        coin: str,
        is_buy: bool,
        sz: float,
        limit_px: float,
        order_type: OrderType | None = None,
        *,
        reduce_only: bool = False,
        cloid: str | None = None,
    ) -> SubmitResult:
        spec = await self.build_order(
            coin, is_buy, sz, limit_px, order_type, reduce_only=reduce_only, cloid=cloid
        )
        return await self.submit_action(ModifyOrder((ModifySpec(oid, spec),)))

    async def schedule_cancel(self, time: int | None = None) -> SubmitResult:
        return await self.submit_action(ScheduleCancel(time))

    async def twap_order(
        self,
        coin: str,
        is_buy: bool,
        sz: float,
        minutes: int,
        *,
        reduce_only: bool = False,
        randomize: bool = False,
    ) -> SubmitResult:
        action = TwapOrder(await self._asset(coin), is_buy, sz, minutes, reduce_only, randomize)
        return await self.submit_action(action)

    async def twap_cancel(self, coin: str, twap_id: int) -> SubmitResult:
        return await self.submit_action(TwapCancel(await self._asset(coin), twap_id))

    # -- account -----------------------------------------------------------------

    async def update_leverage(self, coin: str, leverage: int, *, is_cross: bool = True) -> SubmitResult:
        return await self.submit_action(UpdateLeverage(await self._asset(coin), is_cross, leverage))

    async def update_isolated_margin(self, coin: str, amount: float) -> SubmitResult:
        """Add (positive) or remove (negative) isolated margin in USD."""
        action = UpdateIsolatedMargin(await self._asset(coin), True, float_to_usd_int(amount))
        return await self.submit_action(action)

    async def usd_transfer(self, destination: str, amount: float | str) -> SubmitResult:
        return await self.submit_action(UsdSend(destination, _amount(amount)))

    async def spot_transfer(self, destination: str, token: str, amount: float | str) -> SubmitResult:
        return await self.submit_action(SpotSend(destination, token, _amount(amount)))

    async def withdraw_from_bridge(self, destination: str, amount: float | str) -> SubmitResult:
        return await self.submit_action(Withdraw(destination, _amount(amount)))

    async def usd_class_transfer(self, amount: float | str, to_perp: bool) -> SubmitResult:
        return await self.submit_action(UsdClassTransfer(_amount(amount), to_perp))

    async def vault_transfer(self, vault_address: str, is_deposit: bool, usd: float) -> SubmitResult:
        return await self.submit_action(VaultTransfer(vault_address, is_deposit, float_to_usd_int(usd)))

    async def approve_agent(self, name: str | None = None) -> tuple[str, SubmitResult]:
        """Authorise a freshly generated agent key; returns the key and the result."""
        agent_key = "0x" + secrets.token_hex(32)
        agent = Account.from_key(agent_key)
        result = await self.submit_action(ApproveAgent(agent.address, name))
        return agent_key, result

    async def approve_builder_fee(self, builder: str, max_fee_rate: str) -> SubmitResult:
        return await self.submit_action(ApproveBuilderFee(builder, max_fee_rate))

    async def set_referrer(self, code: str) -> SubmitResult:
        return await self.submit_action(SetReferrer(code))

    async def noop(self) -> SubmitResult:
        return await self.submit_action(Noop())

    async def use_big_blocks(self, enable: bool) -> SubmitResult:
        return await self.submit_action(EvmUserModify(enable))

    async def claim_rewards(self) -> SubmitResult:
        return await self.submit_action(ClaimRewards())
