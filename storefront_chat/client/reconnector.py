"""Visitor chat client that keeps one logical connection across socket drops.

States::

    DISCONNECTED -> CONNECTING -> JOINED -> DISCONNECTED (retry)
    any state    -> CLOSED          (reset(), start a new chat)

The session id is held by the client and re-sent in ``join_session`` on
every new socket; the server never renegotiates it.
"""

import asyncio
import json
import random
import uuid
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError
from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from storefront_chat.client.message_log import LogEntry, MessageLog
from storefront_chat.schemas.chat_schema import (
    DEFAULT_USERNAME,
    ChatMessagePayload,
    ChatMessageResponse,
    ChatSessionResponse,
)
from storefront_chat.schemas.ws_schema import (
    ErrorEvent,
    NewMessageEvent,
    SessionDeletedEvent,
    SessionJoinedEvent,
    outbound_event_adapter,
)

logger = structlog.get_logger()

API_PREFIX = "/api/v1/chat"

Connector = Callable[[str], Any]
Sleep = Callable[[float], Awaitable[None]]


class ClientState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    JOINED = "joined"
    CLOSED = "closed"


class ReconnectPolicy(BaseModel, frozen=True):
    """Delay before each reconnect attempt.

    The default is a fixed 3 second interval. ``backoff_factor`` above 1
    grows the delay per consecutive failure up to ``max_interval``;
    ``jitter`` adds up to that many random seconds.
    """

    interval: float = Field(default=3.0, gt=0)
    backoff_factor: float = Field(default=1.0, ge=1.0)
    max_interval: float | None = Field(default=None, gt=0)
    jitter: float = Field(default=0.0, ge=0)

    def delay(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        delay = self.interval * self.backoff_factor**attempt
        if self.max_interval is not None:
            delay = min(delay, self.max_interval)
        if self.jitter:
            delay += rng() * self.jitter
        return delay


def _ws_url_for(base_url: str) -> str:
    scheme, sep, rest = base_url.rstrip("/").partition("://")
    ws_scheme = {"https": "wss", "http": "ws"}.get(scheme, scheme)
    return f"{ws_scheme}{sep}{rest}/ws"


class ChatClient:
    """Visitor side of the support chat.

    ``connector`` opens a socket for a URL and must return an async context
    manager yielding an object with ``send(str)``, ``close()`` and async
    iteration over incoming text frames; the default is
    ``websockets.asyncio.client.connect``. ``sleep`` is injectable so
    reconnect timing can run on virtual time.
    """

    def __init__(
        self,
        base_url: str,
        ws_url: str | None = None,
        policy: ReconnectPolicy | None = None,
        connector: Connector = connect,
        sleep: Sleep = asyncio.sleep,
        http_client: httpx.AsyncClient | None = None,
        on_message: Callable[[ChatMessageResponse], None] | None = None,
    ) -> None:
        self.ws_url = ws_url or _ws_url_for(base_url)
        self.policy = policy or ReconnectPolicy()
        self.state = ClientState.DISCONNECTED
        self.session_id: str | None = None
        self.username = DEFAULT_USERNAME
        self.log = MessageLog()
        self.last_error: ErrorEvent | None = None
        self._connector = connector
        self._sleep = sleep
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=base_url)
        self._on_message = on_message
        self._socket: Any = None

    # --- Session bootstrap (HTTP) ---

    async def start_session(self, username: str = DEFAULT_USERNAME) -> ChatSessionResponse:
        """Create a fresh session under a new client-generated id."""
        response = await self._http.post(
            f"{API_PREFIX}/sessions",
            json={"id": uuid.uuid4().hex, "username": username, "isActive": True},
        )
        response.raise_for_status()
        session = ChatSessionResponse.model_validate(response.json()["data"])
        self.resume(session.id, username=session.username)
        logger.info("Chat session started", session_id=session.id)
        return session

    def resume(self, session_id: str, username: str = DEFAULT_USERNAME) -> None:
        """Adopt a session id kept from an earlier page load."""
        self.session_id = session_id
        self.username = username
        if self.state is ClientState.CLOSED:
            self.state = ClientState.DISCONNECTED

    async def load_history(self, limit: int | None = None) -> list[LogEntry]:
        """Merge server history into the local log."""
        session_id = self._require_session()
        params = {"limit": limit} if limit else None
        response = await self._http.get(
            f"{API_PREFIX}/sessions/{session_id}/messages", params=params
        )
        response.raise_for_status()
        for item in response.json()["data"]:
            self.log.add(LogEntry.from_response(ChatMessageResponse.model_validate(item)))
        return self.log.entries

    # --- Socket loop ---

    async def run(self) -> None:
        """Connect, join, and keep reconnecting until :meth:`reset`."""
        self._require_session()
        attempt = 0
        while self.state is not ClientState.CLOSED:
            self.state = ClientState.CONNECTING
            try:
                async with self._connector(self.ws_url) as socket:
                    self._socket = socket
                    await self._send_join(socket)
                    async for raw in socket:
                        self._handle_frame(raw)
                        if self.state is ClientState.JOINED:
                            attempt = 0
                        if self.state is ClientState.CLOSED:
                            break
            except (OSError, WebSocketException) as exc:
                logger.info("Chat socket dropped", error=str(exc))
            finally:
                self._socket = None

            if self.state is ClientState.CLOSED:
                break
            self.state = ClientState.DISCONNECTED
            delay = self.policy.delay(attempt)
            attempt += 1
            logger.debug("Reconnecting", delay=delay, attempt=attempt)
            await self._sleep(delay)

    async def send_message(self, text: str) -> LogEntry:
        """Show the message immediately, then send it.

        Falls back to ``POST /messages`` while no socket is open. The server
        echo is suppressed by the log's dedup rule.
        """
        session_id = self._require_session()
        payload = ChatMessagePayload(
            session_id=session_id, username=self.username, message=text
        )
        entry = LogEntry(username=payload.username, message=payload.message)
        self.log.add(entry)

        if self._socket is not None:
            frame = {
                "type": "chat_message",
                "payload": payload.model_dump(mode="json", by_alias=True),
            }
            await self._socket.send(json.dumps(frame))
            return entry

        response = await self._http.post(
            f"{API_PREFIX}/messages",
            json={"payload": payload.model_dump(mode="json", by_alias=True)},
        )
        response.raise_for_status()
        self._accept(ChatMessageResponse.model_validate(response.json()["data"]))
        return entry

    async def reset(self) -> None:
        """Start-new-chat: forget the session and history and stop retrying."""
        self.state = ClientState.CLOSED
        self.session_id = None
        self.log.clear()
        self.last_error = None
        if self._socket is not None:
            await self._socket.close()

    async def aclose(self) -> None:
        await self.reset()
        if self._owns_http:
            await self._http.aclose()

    def _require_session(self) -> str:
        if self.session_id is None:
            raise RuntimeError("No chat session; call start_session() first")
        return self.session_id

    async def _send_join(self, socket: Any) -> None:
        await socket.send(json.dumps({"type": "join_session", "sessionId": self.session_id}))

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            event = outbound_event_adapter.validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring unreadable frame")
            return

        match event:
            case SessionJoinedEvent(session_id=session_id) if session_id == self.session_id:
                self.state = ClientState.JOINED
                logger.info("Joined chat session", session_id=session_id)
            case NewMessageEvent(payload=message) if message.session_id == self.session_id:
                self._accept(message)
            case SessionDeletedEvent(session_id=session_id) if session_id == self.session_id:
                logger.info("Chat session removed by support", session_id=session_id)
            case ErrorEvent():
                self.last_error = event
                logger.warning("Server rejected frame", code=event.code, reason=event.message)
            case _:
                pass

    def _accept(self, message: ChatMessageResponse) -> None:
        if self.log.add(LogEntry.from_response(message)) and self._on_message:
            self._on_message(message)
