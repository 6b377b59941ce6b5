"""hyperwire: signing, submission and streaming client for Hyperliquid."""

from .errors import (
    ConfigError,
    ConnectionLost,
    HyperwireError,
    ProtocolError,
    Rejected,
    SigningError,
    StreamFatal,
    Unreachable,
)
from .exchange import ExchangeClient, NonceManager, RequestDispatcher, Signer, SubmitResult
from .info import InfoClient
from .settings import Settings
from .stream import SubscriptionManager, Topic

__all__ = [
    "ConfigError",
    "ConnectionLost",
    "ExchangeClient",
    "HyperwireError",
    "InfoClient",
    "NonceManager",
    "ProtocolError",
    "Rejected",
    "RequestDispatcher",
    "Settings",
    "Signer",
    "SigningError",
    "StreamFatal",
    "SubmitResult",
    "SubscriptionManager",
    "Topic",
    "Unreachable",
]
