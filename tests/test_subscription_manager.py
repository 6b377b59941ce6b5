"""Tests for the subscription manager with a scripted websocket."""

import asyncio
import contextlib
import json
import logging

import pytest
import pytest_asyncio

from hyperwire.errors import ConnectionLost, StreamError, StreamFatal
from hyperwire.stream.backoff import Backoff
from hyperwire.stream.manager import ConnectionState, SubscriptionManager
from hyperwire.stream.topics import PING_FRAME, Topic, subscribe_frame, unsubscribe_frame

BTC_BOOK = Topic.l2_book("BTC")
ETH_TRADES = Topic.trades("ETH")


class FakeConnection:
    def __init__(self):
        self.sent = []
        self.inbox = asyncio.Queue()
        self.closed = False

    async def send(self, payload):
        if self.closed:
            raise ConnectionLost("closed")
        self.sent.append(payload)

    async def receive(self):
        item = await self.inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True

    def push(self, channel, data):
        self.inbox.put_nowait(json.dumps({"channel": channel, "data": data}))

    def ack(self, topic):
        self.push("subscriptionResponse", {"method": "subscribe", "subscription": topic.to_wire()})

    def book(self, coin, time):
        self.push("l2Book", {"coin": coin, "levels": [[], []], "time": time})

    def drop(self):
        self.inbox.put_nowait(ConnectionLost("dropped by test"))


class FakeStreamTransport:
    def __init__(self, failures=0):
        self.connections = []
        self.failures = failures
        self.attempts = 0
        self.closed = False

    async def connect(self):
        self.attempts += 1
        if self.failures:
            self.failures -= 1
            raise ConnectionLost("connection refused")
        conn = FakeConnection()
        self.connections.append(conn)
        return conn

    async def close(self):
        self.closed = True


async def wait_for(predicate, timeout=2.0):
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


def _fast_backoff(max_attempts=10):
    return Backoff(base_delay=0.01, max_delay=0.01, jitter=0, max_attempts=max_attempts)


@pytest_asyncio.fixture
async def stream():
    transport = FakeStreamTransport()
    manager = SubscriptionManager(transport, backoff=_fast_backoff())
    yield transport, manager
    await manager.close()


async def _connected(transport, manager, *topics):
    """Wait for the first connection and acknowledge ``topics``."""
    await wait_for(lambda: transport.connections and len(transport.connections[-1].sent) >= len(topics))
    conn = transport.connections[-1]
    for topic in topics:
        conn.ack(topic)
    await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
    return conn


class TestSubscriptionManager:
    """Tests for SubscriptionManager."""

    @pytest.mark.asyncio
    async def test_first_subscribe_connects(self, stream):
        transport, manager = stream
        books = []
        await manager.subscribe(BTC_BOOK, books.append)
        conn = await _connected(transport, manager, BTC_BOOK)

        assert conn.sent == [subscribe_frame(BTC_BOOK)]
        conn.book("BTC", 1)
        await wait_for(lambda: books)
        assert books[0].data["time"] == 1

    @pytest.mark.asyncio
    async def test_resubscribes_every_topic_before_delivery(self, stream):
        transport, manager = stream
        books, trades = [], []
        await manager.subscribe(BTC_BOOK, books.append)
        first = await _connected(transport, manager, BTC_BOOK)
        await manager.subscribe(ETH_TRADES, trades.append)
        assert first.sent[-1] == subscribe_frame(ETH_TRADES)
        first.ack(ETH_TRADES)

        first.drop()
        await wait_for(lambda: len(transport.connections) == 2 and len(transport.connections[1].sent) == 2)
        second = transport.connections[1]

        assert sorted(f["subscription"]["type"] for f in second.sent) == ["l2Book", "trades"]
        assert all(f["method"] == "subscribe" for f in second.sent)
        assert manager.state is ConnectionState.RESUBSCRIBING

        second.book("BTC", 2)
        await asyncio.sleep(0.05)
        assert books == []

        second.ack(BTC_BOOK)
        second.ack(ETH_TRADES)
        await wait_for(lambda: books)
        assert manager.state is ConnectionState.CONNECTED
        assert books[0].data["time"] == 2

    @pytest.mark.asyncio
    async def test_delivers_in_order_and_drops_unknown_topics(self, stream):
        transport, manager = stream
        books = []
        await manager.subscribe(BTC_BOOK, books.append)
        conn = await _connected(transport, manager, BTC_BOOK)

        conn.push("allMids", {"mids": {"BTC": "1"}})
        conn.book("ETH", 99)
        for t in (1, 2, 3):
            conn.book("BTC", t)
        await wait_for(lambda: len(books) == 3)

        assert [m.data["time"] for m in books] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_shared_topic_sends_frames_once(self, stream):
        transport, manager = stream
        first = await manager.subscribe(BTC_BOOK, lambda m: None)
        second = await manager.subscribe(BTC_BOOK, lambda m: None)
        conn = await _connected(transport, manager, BTC_BOOK)
        assert conn.sent == [subscribe_frame(BTC_BOOK)]

        assert await manager.unsubscribe(first)
        assert conn.sent == [subscribe_frame(BTC_BOOK)]

        assert await manager.unsubscribe(second)
        assert conn.sent[-1] == unsubscribe_frame(BTC_BOOK)
        assert manager.topics == []

        assert not await manager.unsubscribe(second)

    @pytest.mark.asyncio
    async def test_unsubscribed_topic_not_replayed(self, stream):
        transport, manager = stream
        handle = await manager.subscribe(BTC_BOOK, lambda m: None)
        await manager.subscribe(ETH_TRADES, lambda m: None)
        conn = await _connected(transport, manager, BTC_BOOK, ETH_TRADES)

        await manager.unsubscribe(handle)
        conn.drop()
        await wait_for(lambda: len(transport.connections) == 2 and transport.connections[1].sent)

        assert transport.connections[1].sent == [subscribe_frame(ETH_TRADES)]

    @pytest.mark.asyncio
    async def test_consumer_failure_does_not_stop_delivery(self, stream, caplog):
        transport, manager = stream
        received = []

        def broken(message):
            raise RuntimeError("consumer bug")

        await manager.subscribe(BTC_BOOK, broken)
        await manager.subscribe(BTC_BOOK, received.append)
        conn = await _connected(transport, manager, BTC_BOOK)

        with caplog.at_level(logging.ERROR):
            conn.book("BTC", 1)
            conn.book("BTC", 2)
            await wait_for(lambda: len(received) == 2)
        assert "consumer for l2Book:btc failed" in caplog.text

    @pytest.mark.asyncio
    async def test_async_consumer(self, stream):
        transport, manager = stream
        received = []

        async def consumer(message):
            await asyncio.sleep(0)
            received.append(message.data["time"])

        await manager.subscribe(BTC_BOOK, consumer)
        conn = await _connected(transport, manager, BTC_BOOK)
        conn.book("BTC", 5)
        await wait_for(lambda: received == [5])

    @pytest.mark.asyncio
    async def test_messages_iterator(self, stream):
        transport, manager = stream

        async def take_two():
            out = []
            async with contextlib.aclosing(manager.messages(BTC_BOOK)) as messages:
                async for message in messages:
                    out.append(message.data["time"])
                    if len(out) == 2:
                        break
            return out

        task = asyncio.create_task(take_two())
        conn = await _connected(transport, manager, BTC_BOOK)
        conn.book("BTC", 1)
        conn.book("BTC", 2)

        assert await asyncio.wait_for(task, 2.0) == [1, 2]
        assert conn.sent[-1] == unsubscribe_frame(BTC_BOOK)

    @pytest.mark.asyncio
    async def test_state_listener_sees_transitions(self, stream):
        transport, manager = stream
        states = []
        manager.add_state_listener(states.append)
        await manager.subscribe(BTC_BOOK, lambda m: None)
        await _connected(transport, manager, BTC_BOOK)

        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.RESUBSCRIBING,
            ConnectionState.CONNECTED,
        ]

    @pytest.mark.asyncio
    async def test_missing_ack_forces_reconnect(self):
        transport = FakeStreamTransport()
        manager = SubscriptionManager(transport, backoff=_fast_backoff(), ack_timeout=0.05)
        try:
            await manager.subscribe(BTC_BOOK, lambda m: None)
            await wait_for(lambda: len(transport.connections) >= 2)
            assert transport.connections[0].closed
        finally:
            await manager.close()

    @pytest.mark.asyncio
    async def test_without_ack_requirement_delivers_immediately(self):
        transport = FakeStreamTransport()
        manager = SubscriptionManager(transport, backoff=_fast_backoff(), require_ack=False)
        books = []
        try:
            await manager.subscribe(BTC_BOOK, books.append)
            await wait_for(lambda: manager.state is ConnectionState.CONNECTED)
            transport.connections[0].book("BTC", 1)
            await wait_for(lambda: books)
        finally:
            await manager.close()

    @pytest.mark.asyncio
    async def test_sends_keepalive_ping(self):
        transport = FakeStreamTransport()
        manager = SubscriptionManager(
            transport, backoff=_fast_backoff(), require_ack=False, ping_interval=0.02
        )
        try:
            await manager.subscribe(BTC_BOOK, lambda m: None)
            await wait_for(lambda: transport.connections and PING_FRAME in transport.connections[0].sent)
        finally:
            await manager.close()

    @pytest.mark.asyncio
    async def test_silent_connection_is_replaced(self):
        transport = FakeStreamTransport()
        manager = SubscriptionManager(
            transport,
            backoff=_fast_backoff(),
            require_ack=False,
            ping_interval=0.01,
            pong_timeout=0.05,
        )
        try:
            await manager.subscribe(BTC_BOOK, lambda m: None)
            await wait_for(lambda: len(transport.connections) >= 2)
        finally:
            await manager.close()

    @pytest.mark.asyncio
    async def test_gives_up_after_ceiling(self):
        transport = FakeStreamTransport(failures=100)
        manager = SubscriptionManager(transport, backoff=_fast_backoff(max_attempts=2))
        states = []
        manager.add_state_listener(states.append)
        try:
            await manager.subscribe(BTC_BOOK, lambda m: None)
            with pytest.raises(StreamFatal):
                await asyncio.wait_for(manager.wait_closed(), 2.0)

            assert transport.attempts == 3
            assert manager.state is ConnectionState.DISCONNECTED
            assert states[-1] is ConnectionState.DISCONNECTED
            with pytest.raises(StreamFatal):
                await manager.subscribe(ETH_TRADES, lambda m: None)
        finally:
            await manager.close()

    @pytest.mark.asyncio
    async def test_fatal_error_reaches_iterators(self):
        transport = FakeStreamTransport(failures=100)
        manager = SubscriptionManager(transport, backoff=_fast_backoff(max_attempts=1))
        try:
            with pytest.raises(StreamFatal):
                async with contextlib.aclosing(manager.messages(BTC_BOOK)) as messages:
                    async for _ in messages:
                        pass
        finally:
            await manager.close()

    @pytest.mark.asyncio
    async def test_close_ends_iterators_and_transport(self, stream):
        transport, manager = stream

        async def drain():
            return [m async for m in manager.messages(BTC_BOOK)]

        task = asyncio.create_task(drain())
        await _connected(transport, manager, BTC_BOOK)
        await manager.close()

        assert await asyncio.wait_for(task, 2.0) == []
        assert transport.closed
        assert transport.connections[0].closed
        assert manager.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_second_account_on_shared_channel_is_refused(self, stream):
        transport, manager = stream
        alice = Topic.user_events("0x" + "aa" * 20)
        bob = Topic.user_events("0x" + "bb" * 20)
        await manager.subscribe(alice, lambda m: None)
        conn = await _connected(transport, manager, alice)

        with pytest.raises(StreamError, match="already subscribed"):
            await manager.subscribe(bob, lambda m: None)

        assert conn.sent == [subscribe_frame(alice)]
        assert manager.topics == [alice]
        await manager.subscribe(Topic.user_events("0x" + "AA" * 20), lambda m: None)

    @pytest.mark.asyncio
    async def test_unexpected_connection_error_reconnects(self, stream):
        transport, manager = stream
        books = []
        await manager.subscribe(BTC_BOOK, books.append)
        first = await _connected(transport, manager, BTC_BOOK)

        first.inbox.put_nowait(UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"))
        await wait_for(lambda: len(transport.connections) == 2 and transport.connections[1].sent)
        second = await _connected(transport, manager, BTC_BOOK)
        second.book("BTC", 7)
        await wait_for(lambda: books)

        assert manager.fatal_error is None
        assert books[0].data["time"] == 7

    @pytest.mark.asyncio
    async def test_slow_consumer_does_not_block_other_topics(self, stream):
        transport, manager = stream
        release = asyncio.Event()
        books, trades = [], []

        async def slow_books(message):
            await release.wait()
            books.append(message.data["time"])

        await manager.subscribe(BTC_BOOK, slow_books)
        await manager.subscribe(ETH_TRADES, trades.append)
        conn = await _connected(transport, manager, BTC_BOOK, ETH_TRADES)

        conn.book("BTC", 1)
        conn.book("BTC", 2)
        conn.push("trades", [{"coin": "ETH", "px": "3000", "sz": "1", "time": 5}])
        await wait_for(lambda: trades)
        assert books == []

        release.set()
        await wait_for(lambda: len(books) == 2)
        assert books == [1, 2]

    @pytest.mark.asyncio
    async def test_consumer_may_unsubscribe_itself(self, stream):
        transport, manager = stream
        received = []
        handle = None

        async def once(message):
            received.append(message.data["time"])
            await manager.unsubscribe(handle)

        handle = await manager.subscribe(BTC_BOOK, once)
        conn = await _connected(transport, manager, BTC_BOOK)
        conn.book("BTC", 1)
        await wait_for(lambda: conn.sent[-1] == unsubscribe_frame(BTC_BOOK))
        conn.book("BTC", 2)
        await asyncio.sleep(0.05)

        assert received == [1]
        assert manager.topics == []
