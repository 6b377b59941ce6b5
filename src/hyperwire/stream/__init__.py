from .backoff import Backoff
from .manager import ConnectionState, SubscriptionHandle, SubscriptionManager
from .messages import Channel, StreamMessage, parse_message
from .topics import Topic
from .transport import AiohttpStreamTransport, StreamConnection, StreamTransport

__all__ = [
    "AiohttpStreamTransport",
    "Backoff",
    "Channel",
    "ConnectionState",
    "StreamConnection",
    "StreamMessage",
    "StreamTransport",
    "SubscriptionHandle",
    "SubscriptionManager",
    "Topic",
    "parse_message",
]
