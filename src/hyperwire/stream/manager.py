"""Subscription manager: one multiplexed stream, many consumers."""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable

from ..errors import ConnectionLost, ProtocolError, StreamError, StreamFatal
from .backoff import Backoff
from .messages import Channel, StreamMessage, parse_message
from .topics import PING_FRAME, Topic, subscribe_frame, unsubscribe_frame
from .transport import StreamConnection, StreamTransport

logger = logging.getLogger(__name__)

Consumer = Callable[[StreamMessage], Awaitable[None] | None]
StateListener = Callable[["ConnectionState"], None]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RESUBSCRIBING = "resubscribing"


@dataclass(frozen=True, slots=True)
class SubscriptionHandle:
    id: int
    topic: Topic


@dataclass(frozen=True, slots=True)
class _Subscriber:
    handle: SubscriptionHandle
    consumer: Consumer


_CLOSED = object()


class SubscriptionManager:
    """Owns the stream connection and fans inbound messages out by topic.

    After every (re)connect all tracked topics are sent again before any data
    is delivered; data arriving while acknowledgements are outstanding is
    held and released in arrival order once every topic is confirmed.
    Each topic key is delivered by its own task, so a slow consumer only
    delays its own topic. Connection state is only changed by the background
    task.
    """

    def __init__(
        self,
        transport: StreamTransport,
        *,
        backoff: Backoff | None = None,
        ping_interval: float = 50.0,
        pong_timeout: float = 60.0,
        ack_timeout: float = 10.0,
        require_ack: bool = True,
    ):
        self.transport = transport
        self.backoff = backoff or Backoff()
        self.ping_interval = ping_interval
        self.pong_timeout = pong_timeout
        self.ack_timeout = ack_timeout
        self.require_ack = require_ack

        self._subscribers: dict[str, list[_Subscriber]] = {}
        self._topics: dict[str, Topic] = {}
        self._handles: dict[int, str] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

        self._state = ConnectionState.DISCONNECTED
        self._listeners: list[StateListener] = []
        self._conn: StreamConnection | None = None
        self._task: asyncio.Task | None = None
        self._closed = False
        self._fatal: StreamFatal | None = None
        self._pending_acks: set[str] = set()
        self._held: list[StreamMessage] = []
        self._queues: set[asyncio.Queue] = set()
        self._deliveries: dict[str, tuple[asyncio.Queue, asyncio.Task]] = {}

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def fatal_error(self) -> StreamFatal | None:
        return self._fatal

    @property
    def topics(self) -> list[Topic]:
        return list(self._topics.values())

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    # -- public API -----------------------------------------------------------

    async def start(self) -> None:
        if self._closed:
            raise StreamError("subscription manager is closed")
        if self._task is None or self._task.done():
            self._fatal = None
            self.backoff.reset()
            self._task = asyncio.create_task(self._run(), name="hyperwire-stream")

    async def subscribe(self, topic: Topic, consumer: Consumer) -> SubscriptionHandle:
        """Register ``consumer`` for ``topic`` and start streaming if needed.

        Only the first consumer of a topic causes a subscribe frame.
        """
        if self._fatal is not None:
            raise self._fatal
        if self._closed:
            raise StreamError("subscription manager is closed")

        async with self._lock:
            key = topic.key
            tracked = self._topics.get(key)
            if tracked is not None and tracked.conflicts_with(topic):
                raise StreamError(
                    f"{topic.type} is already subscribed for {tracked.user}; "
                    "only one account per connection"
                )
            handle = SubscriptionHandle(next(self._ids), topic)
            first = key not in self._subscribers
            self._subscribers.setdefault(key, []).append(_Subscriber(handle, consumer))
            self._topics.setdefault(key, topic)
            self._handles[handle.id] = key
            if first:
                logger.info("subscribing to %s", key)
                await self._send_if_live(subscribe_frame(topic))

        await self.start()
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """Drop one consumer. Returns ``False`` for an unknown handle."""
        async with self._lock:
            key = self._handles.pop(handle.id, None)
            if key is None:
                logger.debug("unsubscribe for unknown handle %s", handle.id)
                return False
            remaining = [s for s in self._subscribers[key] if s.handle.id != handle.id]
            if remaining:
                self._subscribers[key] = remaining
                return True
            del self._subscribers[key]
            topic = self._topics.pop(key)
            self._pending_acks.discard(key)
            self._stop_delivery(key)
            logger.info("unsubscribing from %s", key)
            await self._send_if_live(unsubscribe_frame(topic))
            return True

    async def messages(self, topic: Topic) -> AsyncIterator[StreamMessage]:
        """Iterate over messages for ``topic`` until the manager closes.

        Raises ``StreamFatal`` if reconnection gives up.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()
        handle = await self.subscribe(topic, queue.put)
        self._queues.add(queue)
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                if isinstance(item, StreamFatal):
                    raise item
                yield item
        finally:
            self._queues.discard(queue)
            if not self._closed:
                await self.unsubscribe(handle)

    async def wait_closed(self) -> None:
        """Wait for the background task; re-raises a fatal stream error."""
        if self._task is not None:
            await asyncio.shield(self._task)
        if self._fatal is not None:
            raise self._fatal

    async def close(self) -> None:
        self._closed = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
        workers = [t for t in map(self._stop_delivery, list(self._deliveries)) if t is not None]
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
        self._set_state(ConnectionState.DISCONNECTED)
        self._wake_iterators(_CLOSED)
        await self.transport.close()
        logger.info("subscription manager closed")

    # -- background task ----------------------------------------------------------

    async def _run(self) -> None:
        while not self._closed:
            try:
                await self._connect_and_stream()
            except ConnectionLost as exc:
                logger.warning("stream connection lost: %s", exc)
            except Exception:
                logger.exception("stream connection failed")
            if self._closed:
                return

            self._set_state(ConnectionState.DISCONNECTED)
            try:
                delay = self.backoff.next_delay()
            except StreamFatal as exc:
                self._fail(exc)
                return
            logger.info("reconnecting in %.2fs (attempt %d)", delay, self.backoff.attempts)
            await asyncio.sleep(delay)

    async def _connect_and_stream(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        conn = await self.transport.connect()
        self._conn = conn
        try:
            await self._resubscribe(conn)
            await self._read_loop(conn)
        finally:
            self._conn = None
            await conn.close()

    async def _resubscribe(self, conn: StreamConnection) -> None:
        async with self._lock:
            self._set_state(ConnectionState.RESUBSCRIBING)
            topics = list(self._topics.items())
            self._held = []
            self._pending_acks = {key for key, _ in topics} if self.require_ack else set()
            for _, topic in topics:
                await conn.send(subscribe_frame(topic))
        logger.info("sent %d subscriptions on new connection", len(topics))

    async def _read_loop(self, conn: StreamConnection) -> None:
        loop = asyncio.get_running_loop()
        start = loop.time()
        last_recv = start
        last_ping = start
        ack_deadline = start + self.ack_timeout

        while not self._closed:
            if self._state is ConnectionState.RESUBSCRIBING:
                if not self._pending_acks:
                    await self._mark_connected()
                elif loop.time() >= ack_deadline:
                    raise ConnectionLost(
                        f"{len(self._pending_acks)} subscriptions not acknowledged "
                        f"within {self.ack_timeout}s"
                    )

            now = loop.time()
            if now - last_ping >= self.ping_interval:
                await conn.send(PING_FRAME)
                last_ping = now

            deadline = min(last_recv + self.pong_timeout, last_ping + self.ping_interval)
            if self._state is ConnectionState.RESUBSCRIBING:
                deadline = min(deadline, ack_deadline)

            try:
                async with asyncio.timeout(max(deadline - now, 0)):
                    text = await conn.receive()
            except TimeoutError:
                if loop.time() - last_recv >= self.pong_timeout:
                    raise ConnectionLost(f"no traffic for {self.pong_timeout}s") from None
                continue

            last_recv = loop.time()
            await self._handle_text(text)

    async def _mark_connected(self) -> None:
        self._set_state(ConnectionState.CONNECTED)
        self.backoff.reset()
        held, self._held = self._held, []
        for message in held:
            self._dispatch(message)

    async def _handle_text(self, text: str) -> None:
        if not text:
            return
        try:
            message = parse_message(text)
        except ProtocolError as exc:
            logger.warning("dropping frame: %s", exc)
            return
        if message is None:
            return

        if message.channel is Channel.SUBSCRIPTION_RESPONSE:
            self._handle_ack(message.data)
        elif message.channel is Channel.PONG:
            pass
        elif message.channel is Channel.ERROR:
            logger.error("stream error from exchange: %s", message.data)
        elif self._state is ConnectionState.RESUBSCRIBING:
            self._held.append(message)
        else:
            self._dispatch(message)

    def _handle_ack(self, data: Any) -> None:
        if not isinstance(data, dict) or data.get("method") != "subscribe":
            return
        try:
            key = Topic.from_wire(data.get("subscription") or {}).key
        except (ValueError, TypeError, AttributeError):
            logger.debug("ack for unrecognised subscription: %s", data)
            return
        self._pending_acks.discard(key)

    def _dispatch(self, message: StreamMessage) -> None:
        key = message.topic_key
        if not key or not self._subscribers.get(key):
            logger.debug("no subscriber for %s; dropped", key or message.channel.value)
            return
        delivery = self._deliveries.get(key)
        if delivery is None:
            inbox: asyncio.Queue[StreamMessage] = asyncio.Queue()
            task = asyncio.create_task(self._deliver(key, inbox), name=f"hyperwire-deliver-{key}")
            delivery = self._deliveries[key] = (inbox, task)
        delivery[0].put_nowait(message)

    async def _deliver(self, key: str, inbox: asyncio.Queue[StreamMessage]) -> None:
        # messages for one key arrive here in order
        while self._deliveries.get(key, (None,))[0] is inbox:
            message = await inbox.get()
            for subscriber in list(self._subscribers.get(key, ())):
                try:
                    result = subscriber.consumer(message)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception("consumer for %s failed", key)

    def _stop_delivery(self, key: str) -> asyncio.Task | None:
        delivery = self._deliveries.pop(key, None)
        if delivery is None:
            return None
        task = delivery[1]
        if task is asyncio.current_task():
            # a consumer unsubscribed itself; the loop exits after this message
            return None
        task.cancel()
        return task

    async def _send_if_live(self, frame: dict[str, Any]) -> None:
        # caller holds the lock; a failed send surfaces in the read loop
        conn = self._conn
        if conn is None or self._state not in (ConnectionState.CONNECTED, ConnectionState.RESUBSCRIBING):
            return
        try:
            await conn.send(frame)
        except ConnectionLost as exc:
            logger.warning("%s %s not sent: %s", frame["method"], frame.get("subscription"), exc)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.info("stream state %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("state listener failed")

    def _fail(self, exc: StreamFatal) -> None:
        logger.error("stream gave up: %s", exc)
        self._fatal = exc
        self._set_state(ConnectionState.DISCONNECTED)
        self._wake_iterators(exc)

    def _wake_iterators(self, item: Any) -> None:
        for queue in list(self._queues):
            queue.put_nowait(item)
