"""Tests for the visitor ChatClient state machine on virtual time."""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest

from storefront_chat.client.message_log import LogEntry
from storefront_chat.client.reconnector import (
    ChatClient,
    ClientState,
    ReconnectPolicy,
)


class FakeSocket:
    """Scripted server side: confirms joins and echoes chat messages."""

    def __init__(self, drop_after_join: bool) -> None:
        self.sent: list[dict] = []
        self._inbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._drop_after_join = drop_after_join

    async def send(self, raw: str) -> None:
        frame = json.loads(raw)
        self.sent.append(frame)
        if frame["type"] == "join_session":
            self.push({"type": "session_joined", "sessionId": frame["sessionId"]})
            if self._drop_after_join:
                self._inbox.put_nowait(None)

    def push(self, frame: dict) -> None:
        self._inbox.put_nowait(json.dumps(frame))

    async def close(self) -> None:
        self._inbox.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[str]:
        return self._frames()

    async def _frames(self) -> AsyncIterator[str]:
        while (raw := await self._inbox.get()) is not None:
            yield raw


class FakeServer:
    """Hands out sockets; the first ``drops`` of them disconnect after joining."""

    def __init__(self, drops: int = 0) -> None:
        self.sockets: list[FakeSocket] = []
        self.urls: list[str] = []
        self._drops = drops

    @asynccontextmanager
    async def connect(self, url: str) -> AsyncIterator[FakeSocket]:
        self.urls.append(url)
        socket = FakeSocket(drop_after_join=len(self.sockets) < self._drops)
        self.sockets.append(socket)
        yield socket


class VirtualClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


async def _wait_for(predicate, attempts: int = 200) -> None:  # type: ignore[no-untyped-def]
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


def _client(server: FakeServer, clock: VirtualClock, **kwargs) -> ChatClient:  # type: ignore[no-untyped-def]
    return ChatClient(
        "http://shop.test",
        connector=server.connect,
        sleep=clock.sleep,
        **kwargs,
    )


class TestReconnectPolicy:
    def test_default_is_fixed_three_seconds(self) -> None:
        policy = ReconnectPolicy()
        assert [policy.delay(n) for n in range(4)] == [3.0, 3.0, 3.0, 3.0]

    def test_backoff_capped(self) -> None:
        policy = ReconnectPolicy(interval=1.0, backoff_factor=2.0, max_interval=5.0)
        assert [policy.delay(n) for n in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_jitter_added(self) -> None:
        policy = ReconnectPolicy(interval=3.0, jitter=1.0)
        assert policy.delay(0, rng=lambda: 0.5) == 3.5

    def test_ws_url_derived_from_base(self) -> None:
        client = ChatClient("https://shop.test/", connector=FakeServer().connect)
        assert client.ws_url == "wss://shop.test/ws"


class TestReconnect:
    """A dropped socket is replaced and re-bound to the same session."""

    async def test_rejoins_same_session_after_drop(self, clock: VirtualClock) -> None:
        server = FakeServer(drops=1)
        client = _client(server, clock)
        client.resume("s1", username="alice")

        task = asyncio.create_task(client.run())
        await _wait_for(lambda: len(server.sockets) == 2)
        await _wait_for(lambda: client.state is ClientState.JOINED)

        assert clock.sleeps == [3.0]
        assert server.sockets[1].sent[0] == {"type": "join_session", "sessionId": "s1"}
        assert client.session_id == "s1"

        await client.reset()
        await asyncio.wait_for(task, timeout=1)
        assert client.state is ClientState.CLOSED

    async def test_join_sent_before_anything_else(self, clock: VirtualClock) -> None:
        server = FakeServer()
        client = _client(server, clock)
        client.resume("s1")

        task = asyncio.create_task(client.run())
        await _wait_for(lambda: client.state is ClientState.JOINED)

        assert server.sockets[0].sent == [{"type": "join_session", "sessionId": "s1"}]
        await client.reset()
        await asyncio.wait_for(task, timeout=1)

    async def test_failed_connect_retries_on_policy(self, clock: VirtualClock) -> None:
        attempts = 0
        server = FakeServer()

        @asynccontextmanager
        async def flaky(url: str) -> AsyncIterator[FakeSocket]:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ConnectionRefusedError("down")
            async with server.connect(url) as socket:
                yield socket

        client = ChatClient(
            "http://shop.test",
            connector=flaky,
            sleep=clock.sleep,
            policy=ReconnectPolicy(interval=1.0, backoff_factor=2.0),
        )
        client.resume("s1")

        task = asyncio.create_task(client.run())
        await _wait_for(lambda: client.state is ClientState.JOINED)

        assert clock.sleeps == [1.0, 2.0]
        await client.reset()
        await asyncio.wait_for(task, timeout=1)

    async def test_run_without_session(self, clock: VirtualClock) -> None:
        client = _client(FakeServer(), clock)
        with pytest.raises(RuntimeError):
            await client.run()


class TestMessages:
    async def test_echo_of_own_message_suppressed(self, clock: VirtualClock) -> None:
        server = FakeServer()
        received = []
        client = _client(server, clock, on_message=received.append)
        client.resume("s1", username="alice")

        task = asyncio.create_task(client.run())
        await _wait_for(lambda: client.state is ClientState.JOINED)

        entry = await client.send_message("hi")
        sent = server.sockets[0].sent[-1]
        assert sent["type"] == "chat_message"
        assert sent["payload"]["sessionId"] == "s1"
        assert sent["payload"]["message"] == "hi"

        server.sockets[0].push(
            {
                "type": "new_message",
                "payload": {
                    "id": 1,
                    "sessionId": "s1",
                    "userId": None,
                    "username": "alice",
                    "message": "hi",
                    "isAdmin": False,
                    "createdAt": entry.created_at.isoformat(),
                },
            }
        )
        server.sockets[0].push(
            {
                "type": "new_message",
                "payload": {
                    "id": 2,
                    "sessionId": "s1",
                    "userId": 99,
                    "username": "Support",
                    "message": "Hello!",
                    "isAdmin": True,
                    "createdAt": entry.created_at.isoformat(),
                },
            }
        )
        await _wait_for(lambda: len(client.log) == 2)

        assert [e.message for e in client.log] == ["hi", "Hello!"]
        assert [m.id for m in received] == [2]

        await client.reset()
        await asyncio.wait_for(task, timeout=1)

    async def test_error_event_recorded(self, clock: VirtualClock) -> None:
        server = FakeServer()
        client = _client(server, clock)
        client.resume("s1")

        task = asyncio.create_task(client.run())
        await _wait_for(lambda: client.state is ClientState.JOINED)
        server.sockets[0].push(
            {"type": "error", "code": "VALIDATION_ERROR", "message": "bad"}
        )
        await _wait_for(lambda: client.last_error is not None)

        assert client.last_error.code == "VALIDATION_ERROR"
        await client.reset()
        await asyncio.wait_for(task, timeout=1)


class TestReset:
    async def test_reset_discards_session_and_history(
        self, clock: VirtualClock
    ) -> None:
        client = _client(FakeServer(), clock)
        client.resume("s1")
        client.log.add(LogEntry(username="Guest", message="x"))

        await client.reset()

        assert client.state is ClientState.CLOSED
        assert client.session_id is None
        assert len(client.log) == 0
        with pytest.raises(RuntimeError):
            await client.send_message("hello?")

    async def test_resume_after_reset(self, clock: VirtualClock) -> None:
        client = _client(FakeServer(), clock)
        await client.reset()
        client.resume("s2")
        assert client.state is ClientState.DISCONNECTED
