"""Signing and order-submission pipeline."""

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
    PlaceOrder,
    ScheduleCancel,
    SetReferrer,
    SpotSend,
    TriggerOrderType,
    TwapCancel,
    TwapOrder,
    UpdateIsolatedMargin,
    UpdateLeverage,
    UsdClassTransfer,
    UsdSend,
    VaultTransfer,
    Withdraw,
)
from .assets import AssetDirectory, AssetInfo
from .client import ExchangeClient
from .dispatcher import DispatchStatus, RequestDispatcher, SignedRequest, SubmitResult
from .encoding import action_hash, encode_action, float_to_wire
from .nonce import NonceManager
from .protocol import HttpResponse, HttpTransport
from .responses import Acknowledged, ExchangeResponse, Filled, OrderError, Resting
from .signer import Signature, Signer
from .transport import AiohttpTransport

__all__ = [
    "Action",
    "ApproveAgent",
    "ApproveBuilderFee",
    "BuilderInfo",
    "CancelByCloid",
    "CancelOrder",
    "CancelSpec",
    "ClaimRewards",
    "CloidCancelSpec",
    "EvmUserModify",
    "LimitOrderType",
    "ModifyOrder",
    "ModifySpec",
    "Noop",
    "OrderSpec",
    "PlaceOrder",
    "ScheduleCancel",
    "SetReferrer",
    "SpotSend",
    "TriggerOrderType",
    "TwapCancel",
    "TwapOrder",
    "UpdateIsolatedMargin",
    "UpdateLeverage",
    "UsdClassTransfer",
    "UsdSend",
    "VaultTransfer",
    "Withdraw",
    "AssetDirectory",
    "AssetInfo",
    "ExchangeClient",
    "DispatchStatus",
    "RequestDispatcher",
    "SignedRequest",
    "SubmitResult",
    "action_hash",
    "encode_action",
    "float_to_wire",
    "NonceManager",
    "HttpResponse",
    "HttpTransport",
    "Acknowledged",
    "ExchangeResponse",
    "Filled",
    "OrderError",
    "Resting",
    "Signature",
    "Signer",
    "AiohttpTransport",
]
