"""Typed trading actions and their wire mappings.

Every action is an immutable dataclass. ``to_wire()`` returns the mapping the
exchange expects, with keys inserted in the exchange-defined order so that
the MessagePack encoding (and therefore the signed hash) is byte-stable.

L1 actions are signed through the phantom-agent scheme; user-signed actions
carry their own nonce field and are signed as EIP-712 typed data.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Union

from .encoding import float_to_wire

SIGNATURE_CHAIN_ID = "0x66eee"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_CLOID_RE = re.compile(r"^0x[0-9a-fA-F]{32}$")

Tif = Literal["Alo", "Ioc", "Gtc"]
Grouping = Literal["na", "normalTpsl", "positionTpsl"]


def _check_address(value: str, what: str) -> str:
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise ValueError(f"{what} must be a 0x-prefixed 20-byte hex address, got {value!r}")
    return value


def _check_cloid(value: str) -> str:
    if not isinstance(value, str) or not _CLOID_RE.match(value):
        raise ValueError(f"cloid must be 0x followed by 32 hex characters, got {value!r}")
    return value.lower()


def _freeze(obj: Any, name: str) -> None:
    object.__setattr__(obj, name, tuple(getattr(obj, name)))


# -- order building blocks ---------------------------------------------------


@dataclass(frozen=True, slots=True)
class LimitOrderType:
    tif: Tif = "Gtc"

    def __post_init__(self) -> None:
        if self.tif not in ("Alo", "Ioc", "Gtc"):
            raise ValueError(f"Unsupported time in force: {self.tif}")

    def to_wire(self) -> dict[str, Any]:
        return {"limit": {"tif": self.tif}}


@dataclass(frozen=True, slots=True)
class TriggerOrderType:
    trigger_px: float
    is_market: bool
    tpsl: Literal["tp", "sl"]

    def __post_init__(self) -> None:
        if self.tpsl not in ("tp", "sl"):
            raise ValueError(f"Unsupported trigger kind: {self.tpsl}")

    def to_wire(self) -> dict[str, Any]:
        return {
            "trigger": {
                "isMarket": self.is_market,
                "triggerPx": float_to_wire(self.trigger_px),
                "tpsl": self.tpsl,
            }
        }


OrderType = Union[LimitOrderType, TriggerOrderType]


@dataclass(frozen=True, slots=True)
class OrderSpec:
    """One order inside a PlaceOrder or ModifyOrder action."""

    asset: int
    is_buy: bool
    sz: float
    limit_px: float
    order_type: OrderType = LimitOrderType()
    reduce_only: bool = False
    cloid: str | None = None

    def __post_init__(self) -> None:
        if self.asset < 0:
            raise ValueError(f"asset id must be non-negative, got {self.asset}")
        if self.sz <= 0:
            raise ValueError(f"order size must be positive, got {self.sz}")
        if self.limit_px < 0:
            raise ValueError(f"limit price must be non-negative, got {self.limit_px}")
        if self.cloid is not None:
            object.__setattr__(self, "cloid", _check_cloid(self.cloid))

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "a": self.asset,
            "b": self.is_buy,
            "p": float_to_wire(self.limit_px),
            "s": float_to_wire(self.sz),
            "r": self.reduce_only,
            "t": self.order_type.to_wire(),
        }
        if self.cloid is not None:
            wire["c"] = self.cloid
        return wire


@dataclass(frozen=True, slots=True)
class BuilderInfo:
    """Builder fee attached to an order action; ``fee`` is in tenths of a basis point."""

    address: str
    fee: int

    def __post_init__(self) -> None:
        _check_address(self.address, "builder address")
        if self.fee < 0:
            raise ValueError("builder fee must be non-negative")

    def to_wire(self) -> dict[str, Any]:
        return {"b": self.address.lower(), "f": self.fee}


@dataclass(frozen=True, slots=True)
class CancelSpec:
    asset: int
    oid: int

    def to_wire(self) -> dict[str, Any]:
        return {"a": self.asset, "o": self.oid}


@dataclass(frozen=True, slots=True)
class CloidCancelSpec:
    asset: int
    cloid: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "cloid", _check_cloid(self.cloid))

    def to_wire(self) -> dict[str, Any]:
        return {"asset": self.asset, "cloid": self.cloid}


@dataclass(frozen=True, slots=True)
class ModifySpec:
    """Replace the order identified by ``oid`` (exchange id or cloid) with ``order``."""

    oid: int | str
    order: OrderSpec

    def __post_init__(self) -> None:
        if isinstance(self.oid, str):
            object.__setattr__(self, "oid", _check_cloid(self.oid))

    def to_wire(self) -> dict[str, Any]:
        return {"oid": self.oid, "order": self.order.to_wire()}


# -- L1 actions ----------------------------------------------------------------


class L1Action:
    """Marker base for actions signed through the phantom agent."""

    __slots__ = ()
    action_type: ClassVar[str]

    def to_wire(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class PlaceOrder(L1Action):
    action_type: ClassVar[str] = "order"

    orders: tuple[OrderSpec, ...]
    grouping: Grouping = "na"
    builder: BuilderInfo | None = None

    def __post_init__(self) -> None:
        _freeze(self, "orders")
        if not self.orders:
            raise ValueError("PlaceOrder needs at least one order")
        if self.grouping not in ("na", "normalTpsl", "positionTpsl"):
            raise ValueError(f"Unsupported grouping: {self.grouping}")

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "type": self.action_type,
            "orders": [order.to_wire() for order in self.orders],
            "grouping": self.grouping,
        }
        if self.builder is not None:
            wire["builder"] = self.builder.to_wire()
        return wire


@dataclass(frozen=True, slots=True)
class CancelOrder(L1Action):
    action_type: ClassVar[str] = "cancel"

    cancels: tuple[CancelSpec, ...]

    def __post_init__(self) -> None:
        _freeze(self, "cancels")
        if not self.cancels:
            raise ValueError("CancelOrder needs at least one cancel")

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.action_type, "cancels": [c.to_wire() for c in self.cancels]}


@dataclass(frozen=True, slots=True)
class CancelByCloid(L1Action):
    action_type: ClassVar[str] = "cancelByCloid"

    cancels: tuple[CloidCancelSpec, ...]

    def __post_init__(self) -> None:
        _freeze(self, "cancels")
        if not self.cancels:
            raise ValueError("CancelByCloid needs at least one cancel")

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.action_type, "cancels": [c.to_wire() for c in self.cancels]}


@dataclass(frozen=True, slots=True)
class ModifyOrder(L1Action):
    action_type: ClassVar[str] = "batchModify"

    modifies: tuple[ModifySpec, ...]

    def __post_init__(self) -> None:
        _freeze(self, "modifies")
        if not self.modifies:
            raise ValueError("ModifyOrder needs at least one modification")

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.action_type, "modifies": [m.to_wire() for m in self.modifies]}


@dataclass(frozen=True, slots=True)
class UpdateLeverage(L1Action):
    action_type: ClassVar[str] = "updateLeverage"

    asset: int
    is_cross: bool
    leverage: int

    def __post_init__(self) -> None:
        if self.leverage < 1:
            raise ValueError(f"leverage must be at least 1, got {self.leverage}")

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "asset": self.asset,
            "isCross": self.is_cross,
            "leverage": self.leverage,
        }


@dataclass(frozen=True, slots=True)
class UpdateIsolatedMargin(L1Action):
    """``ntli`` is the signed USD amount in micro-units (1e-6 USD)."""

    action_type: ClassVar[str] = "updateIsolatedMargin"

    asset: int
    is_buy: bool
    ntli: int

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "asset": self.asset,
            "isBuy": self.is_buy,
            "ntli": self.ntli,
        }


@dataclass(frozen=True, slots=True)
class ScheduleCancel(L1Action):
    """Cancel all open orders at ``time`` (ms); ``None`` clears the schedule."""

    action_type: ClassVar[str] = "scheduleCancel"

    time: int | None = None

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"type": self.action_type}
        if self.time is not None:
            wire["time"] = self.time
        return wire


@dataclass(frozen=True, slots=True)
class VaultTransfer(L1Action):
    """``usd`` is in micro-units (1e-6 USD)."""

    action_type: ClassVar[str] = "vaultTransfer"

    vault_address: str
    is_deposit: bool
    usd: int

    def __post_init__(self) -> None:
        _check_address(self.vault_address, "vault address")

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "vaultAddress": self.vault_address.lower(),
            "isDeposit": self.is_deposit,
            "usd": self.usd,
        }


@dataclass(frozen=True, slots=True)
class SetReferrer(L1Action):
    action_type: ClassVar[str] = "setReferrer"

    code: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.action_type, "code": self.code}


@dataclass(frozen=True, slots=True)
class TwapOrder(L1Action):
    action_type: ClassVar[str] = "twapOrder"

    asset: int
    is_buy: bool
    sz: float
    minutes: int
    reduce_only: bool = False
    randomize: bool = False

    def __post_init__(self) -> None:
        if self.sz <= 0:
            raise ValueError(f"twap size must be positive, got {self.sz}")
        if self.minutes <= 0:
            raise ValueError(f"twap duration must be positive, got {self.minutes}")

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "twap": {
                "a": self.asset,
                "b": self.is_buy,
                "s": float_to_wire(self.sz),
                "r": self.reduce_only,
                "m": self.minutes,
                "t": self.randomize,
            },
        }


@dataclass(frozen=True, slots=True)
class TwapCancel(L1Action):
    action_type: ClassVar[str] = "twapCancel"

    asset: int
    twap_id: int

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.action_type, "a": self.asset, "t": self.twap_id}


@dataclass(frozen=True, slots=True)
class Noop(L1Action):
    """Consumes a nonce without side effects."""

    action_type: ClassVar[str] = "noop"

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.action_type}


@dataclass(frozen=True, slots=True)
class EvmUserModify(L1Action):
    action_type: ClassVar[str] = "evmUserModify"

    using_big_blocks: bool

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.action_type, "usingBigBlocks": self.using_big_blocks}


@dataclass(frozen=True, slots=True)
class ClaimRewards(L1Action):
    action_type: ClassVar[str] = "claimRewards"

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.action_type}


# -- user-signed actions -------------------------------------------------------


class UserSignedAction:
    """Base for actions signed directly as EIP-712 typed data.

    The nonce lives inside the action (``time`` or ``nonce``), together with
    the chain name; both are stamped by ``stamped()`` right before signing.
    """

    __slots__ = ()
    action_type: ClassVar[str]
    primary_type: ClassVar[str]
    nonce_field: ClassVar[str]
    sign_types: ClassVar[tuple[tuple[str, str], ...]]

    def stamped(self, nonce: int, *, is_mainnet: bool):
        return dataclasses.replace(
            self,
            **{self.nonce_field: nonce},
            hyperliquid_chain="Mainnet" if is_mainnet else "Testnet",
        )

    def to_wire(self) -> dict[str, Any]:
        raise NotImplementedError

    def typed_message(self) -> dict[str, Any]:
        wire = self.to_wire()
        return {name: wire[name] for name, _ in self.sign_types}

    def typed_fields(self) -> list[dict[str, str]]:
        return [{"name": name, "type": kind} for name, kind in self.sign_types]


@dataclass(frozen=True, slots=True)
class UsdSend(UserSignedAction):
    action_type: ClassVar[str] = "usdSend"
    primary_type: ClassVar[str] = "HyperliquidTransaction:UsdSend"
    nonce_field: ClassVar[str] = "time"
    sign_types: ClassVar[tuple[tuple[str, str], ...]] = (
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    )

    destination: str
    amount: str
    time: int = 0
    hyperliquid_chain: str = ""

    def __post_init__(self) -> None:
        _check_address(self.destination, "destination")

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "signatureChainId": SIGNATURE_CHAIN_ID,
            "hyperliquidChain": self.hyperliquid_chain,
            "destination": self.destination,
            "amount": self.amount,
            "time": self.time,
        }


@dataclass(frozen=True, slots=True)
class SpotSend(UserSignedAction):
    action_type: ClassVar[str] = "spotSend"
    primary_type: ClassVar[str] = "HyperliquidTransaction:SpotSend"
    nonce_field: ClassVar[str] = "time"
    sign_types: ClassVar[tuple[tuple[str, str], ...]] = (
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("token", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    )

    destination: str
    token: str
    amount: str
    time: int = 0
    hyperliquid_chain: str = ""

    def __post_init__(self) -> None:
        _check_address(self.destination, "destination")

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "signatureChainId": SIGNATURE_CHAIN_ID,
            "hyperliquidChain": self.hyperliquid_chain,
            "destination": self.destination,
            "token": self.token,
            "amount": self.amount,
            "time": self.time,
        }


@dataclass(frozen=True, slots=True)
class Withdraw(UserSignedAction):
    """Withdraw USDC through the bridge."""

    action_type: ClassVar[str] = "withdraw3"
    primary_type: ClassVar[str] = "HyperliquidTransaction:Withdraw"
    nonce_field: ClassVar[str] = "time"
    sign_types: ClassVar[tuple[tuple[str, str], ...]] = (
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    )

    destination: str
    amount: str
    time: int = 0
    hyperliquid_chain: str = ""

    def __post_init__(self) -> None:
        _check_address(self.destination, "destination")

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "signatureChainId": SIGNATURE_CHAIN_ID,
            "hyperliquidChain": self.hyperliquid_chain,
            "destination": self.destination,
            "amount": self.amount,
            "time": self.time,
        }


@dataclass(frozen=True, slots=True)
class UsdClassTransfer(UserSignedAction):
    """Move USDC between the spot and perp balances."""

    action_type: ClassVar[str] = "usdClassTransfer"
    primary_type: ClassVar[str] = "HyperliquidTransaction:UsdClassTransfer"
    nonce_field: ClassVar[str] = "nonce"
    sign_types: ClassVar[tuple[tuple[str, str], ...]] = (
        ("hyperliquidChain", "string"),
        ("amount", "string"),
        ("toPerp", "bool"),
        ("nonce", "uint64"),
    )

    amount: str
    to_perp: bool
    nonce: int = 0
    hyperliquid_chain: str = ""

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "signatureChainId": SIGNATURE_CHAIN_ID,
            "hyperliquidChain": self.hyperliquid_chain,
            "amount": self.amount,
            "toPerp": self.to_perp,
            "nonce": self.nonce,
        }


@dataclass(frozen=True, slots=True)
class ApproveAgent(UserSignedAction):
    action_type: ClassVar[str] = "approveAgent"
    primary_type: ClassVar[str] = "HyperliquidTransaction:ApproveAgent"
    nonce_field: ClassVar[str] = "nonce"
    sign_types: ClassVar[tuple[tuple[str, str], ...]] = (
        ("hyperliquidChain", "string"),
        ("agentAddress", "address"),
        ("agentName", "string"),
        ("nonce", "uint64"),
    )

    agent_address: str
    agent_name: str | None = None
    nonce: int = 0
    hyperliquid_chain: str = ""

    def __post_init__(self) -> None:
        _check_address(self.agent_address, "agent address")

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "type": self.action_type,
            "signatureChainId": SIGNATURE_CHAIN_ID,
            "hyperliquidChain": self.hyperliquid_chain,
            "agentAddress": self.agent_address.lower(),
        }
        # an unnamed agent is signed with "" but sent without the field
        if self.agent_name is not None:
            wire["agentName"] = self.agent_name
        wire["nonce"] = self.nonce
        return wire

    def typed_message(self) -> dict[str, Any]:
        return {
            "hyperliquidChain": self.hyperliquid_chain,
            "agentAddress": self.agent_address.lower(),
            "agentName": self.agent_name or "",
            "nonce": self.nonce,
        }


@dataclass(frozen=True, slots=True)
class ApproveBuilderFee(UserSignedAction):
    action_type: ClassVar[str] = "approveBuilderFee"
    primary_type: ClassVar[str] = "HyperliquidTransaction:ApproveBuilderFee"
    nonce_field: ClassVar[str] = "nonce"
    sign_types: ClassVar[tuple[tuple[str, str], ...]] = (
        ("hyperliquidChain", "string"),
        ("maxFeeRate", "string"),
        ("builder", "address"),
        ("nonce", "uint64"),
    )

    builder: str
    max_fee_rate: str
    nonce: int = 0
    hyperliquid_chain: str = ""

    def __post_init__(self) -> None:
        _check_address(self.builder, "builder address")

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.action_type,
            "signatureChainId": SIGNATURE_CHAIN_ID,
            "hyperliquidChain": self.hyperliquid_chain,
            "maxFeeRate": self.max_fee_rate,
            "builder": self.builder.lower(),
            "nonce": self.nonce,
        }


Action = Union[
    PlaceOrder,
    CancelOrder,
    CancelByCloid,
    ModifyOrder,
    UpdateLeverage,
    UpdateIsolatedMargin,
    ScheduleCancel,
    VaultTransfer,
    SetReferrer,
    TwapOrder,
    TwapCancel,
    Noop,
    EvmUserModify,
    ClaimRewards,
    UsdSend,
    SpotSend,
    Withdraw,
    UsdClassTransfer,
    ApproveAgent,
    ApproveBuilderFee,
]

L1_ACTIONS: tuple[type, ...] = (
    PlaceOrder,
    CancelOrder,
    CancelByCloid,
    ModifyOrder,
    UpdateLeverage,
    UpdateIsolatedMargin,
    ScheduleCancel,
    VaultTransfer,
    SetReferrer,
    TwapOrder,
    TwapCancel,
    Noop,
    EvmUserModify,
    ClaimRewards,
)

USER_SIGNED_ACTIONS: tuple[type, ...] = (
    UsdSend,
    SpotSend,
    Withdraw,
    UsdClassTransfer,
    ApproveAgent,
    ApproveBuilderFee,
)
