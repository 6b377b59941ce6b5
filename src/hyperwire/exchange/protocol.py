"""Transport contract the request side depends on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """Raw HTTP answer: status code and undecoded body."""

    status: int
    text: str


class HttpTransport(Protocol):
    """Sends one JSON request and returns the raw answer.

    Implementations raise ``Unreachable`` when the request could not be
    completed at the network level. They never retry.
    """

    async def post(self, path: str, payload: dict[str, Any]) -> HttpResponse:
        """POST ``payload`` as JSON to ``path`` relative to the API base URL."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
