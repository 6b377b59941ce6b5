"""Pytest configuration and fixtures."""

import asyncio
import json

import pytest

from hyperwire.exchange.nonce import NonceManager
from hyperwire.exchange.protocol import HttpResponse
from hyperwire.exchange.signer import Signer

TEST_PRIVATE_KEY = "0x0123456789012345678901234567890123456789012345678901234567890123"
FIXED_NOW_MS = 1_700_000_000_000


class FakeHttpTransport:
    """Records posts and answers through ``handler(path, payload)``.

    The handler may return a JSON-able object, an ``HttpResponse`` or an
    exception instance to raise.
    """

    def __init__(self, handler=None):
        self.handler = handler
        self.requests = []
        self.delay = 0.0
        self.closed = False

    async def post(self, path, payload):
        self.requests.append((path, payload))
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.handler(path, payload) if self.handler else resting_response()
        if isinstance(result, Exception):
            raise result
        if isinstance(result, HttpResponse):
            return result
        return HttpResponse(200, json.dumps(result))

    async def close(self):
        self.closed = True

    @property
    def exchange_payloads(self):
        return [payload for path, payload in self.requests if path == "/exchange"]


def resting_response(*oids):
    return {
        "status": "ok",
        "response": {
            "type": "order",
            "data": {"statuses": [{"resting": {"oid": oid}} for oid in (oids or (77,))]},
        },
    }


META = {
    "universe": [
        {"name": "BTC", "szDecimals": 5, "maxLeverage": 50},
        {"name": "ETH", "szDecimals": 4, "maxLeverage": 50},
    ]
}

SPOT_META = {
    "tokens": [
        {"name": "USDC", "index": 0, "szDecimals": 8},
        {"name": "PURR", "index": 1, "szDecimals": 0},
    ],
    "universe": [
        {"name": "PURR/USDC", "tokens": [1, 0], "index": 0},
        {"name": "@1", "tokens": [2, 0], "index": 1},
    ],
}


def info_and_exchange_handler(exchange_answer=None, **info_answers):
    """Route ``/info`` by query type and ``/exchange`` to a fixed answer."""
    answers = {"meta": META, "spotMeta": SPOT_META, **info_answers}

    def handler(path, payload):
        if path == "/info":
            return answers[payload["type"]]
        return exchange_answer if exchange_answer is not None else resting_response()

    return handler


@pytest.fixture
def private_key():
    """Test signing key (never a funded account)."""
    return TEST_PRIVATE_KEY


@pytest.fixture
def signer(private_key):
    return Signer(private_key, is_mainnet=True)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW_MS


@pytest.fixture
def nonces(clock):
    return NonceManager(clock=clock)


@pytest.fixture
def fake_transport():
    return FakeHttpTransport()


@pytest.fixture
def transport_factory():
    return FakeHttpTransport


@pytest.fixture
def routed_handler():
    return info_and_exchange_handler


@pytest.fixture
def sample_meta():
    return META


@pytest.fixture
def sample_spot_meta():
    return SPOT_META


@pytest.fixture
def resting():
    return resting_response
