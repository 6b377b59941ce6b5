"""Exception hierarchy shared by the signing pipeline and the stream manager."""

from __future__ import annotations


class HyperwireError(Exception):
    """Base class for all client errors."""


class ConfigError(HyperwireError):
    """Raised for unusable configuration or key material. Not retryable."""


class SigningError(HyperwireError):
    """Raised when an action cannot be encoded or signed. Not retryable."""


class AssetNotFoundError(HyperwireError):
    """Raised when a coin name is missing from the asset directory."""

    def __init__(self, coin: str):
        super().__init__(f"Asset not found: {coin}")
        self.coin = coin


class NoPositionError(HyperwireError):
    """Raised when closing a position the account does not hold."""

    def __init__(self, coin: str):
        super().__init__(f"No open position in {coin}")
        self.coin = coin


class DispatchError(HyperwireError):
    """Base class for request outcomes other than acceptance."""

    retryable = False


class Unreachable(DispatchError):
    """The exchange could not be reached or did not answer in time.

    When ``outcome_unknown`` is set the request may have reached the exchange
    and been executed; callers must reconcile before resubmitting.
    """

    retryable = True

    def __init__(self, message: str, *, timed_out: bool = False, outcome_unknown: bool = True):
        super().__init__(message)
        self.timed_out = timed_out
        self.outcome_unknown = outcome_unknown


class ProtocolError(DispatchError):
    """The exchange answered with something that could not be decoded."""

    retryable = True

    def __init__(self, message: str, *, body: str | None = None):
        super().__init__(message)
        self.body = body


class Rejected(DispatchError):
    """The exchange refused the action. A normal business outcome."""

    def __init__(self, reason: str, *, status_code: int | None = None):
        super().__init__(f"Rejected: {reason}")
        self.reason = reason
        self.status_code = status_code


class StreamError(HyperwireError):
    """Base class for streaming connection failures."""


class ConnectionLost(StreamError):
    """The streaming connection dropped; the manager reconnects on its own."""


class StreamFatal(StreamError):
    """Reconnection gave up after the configured ceiling."""

    def __init__(self, message: str, *, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts
