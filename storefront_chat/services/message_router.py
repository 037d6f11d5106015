"""Persist inbound chat messages and fan them out to live sockets."""

import asyncio
from datetime import UTC, datetime

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_chat.core.exceptions import (
    MessageValidationError,
    SessionNotFoundError,
)
from storefront_chat.repositories.chat_repo import ChatRepository
from storefront_chat.schemas.chat_schema import ChatMessagePayload, ChatMessageResponse
from storefront_chat.schemas.ws_schema import NewMessageEvent, OutboundEvent, to_wire
from storefront_chat.services.connection_registry import ConnectionRegistry

logger = structlog.get_logger()


class MessageRouter:
    """Turns one inbound chat message into zero or more delivered events.

    Persistence is the durability boundary: a message is delivered only
    after its transaction commits, and a delivery failure never rolls it
    back. A single lock spans persist-then-enqueue so every recipient sees
    a session's messages in persistence order. The relay shares that lock
    with session deletion.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ConnectionRegistry,
        max_message_length: int = 4000,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._registry = registry
        self._max_message_length = max_message_length
        self._lock = lock if lock is not None else asyncio.Lock()

    async def submit_message(
        self,
        payload: ChatMessagePayload,
        user_id: int | None = None,
        is_admin: bool = False,
    ) -> ChatMessageResponse:
        """Validate, persist and broadcast a message.

        ``user_id`` and ``is_admin`` describe the authenticated sender and
        take precedence over whatever the payload claims.

        Raises:
            MessageValidationError: The message exceeds the length limit.
            SessionNotFoundError: The referenced session does not exist.
        """
        if len(payload.message) > self._max_message_length:
            raise MessageValidationError(
                message=f"Message exceeds {self._max_message_length} characters"
            )

        async with self._lock:
            message = await self._persist(payload, user_id=user_id, is_admin=is_admin)
            delivered = self.broadcast(
                payload.session_id, NewMessageEvent(payload=message)
            )

        logger.info(
            "Chat message accepted",
            session_id=message.session_id,
            message_id=message.id,
            is_admin=message.is_admin,
            recipients=delivered,
        )
        return message

    def broadcast(self, session_id: str, event: OutboundEvent) -> int:
        """Deliver to session members plus admins; returns the delivered count."""
        frame = to_wire(event)
        delivered = 0
        for connection in self._registry.recipients_for_session(session_id):
            try:
                if connection.deliver(frame):
                    delivered += 1
                else:
                    logger.debug(
                        "Skipped closed connection", connection_id=connection.id
                    )
            except Exception:
                logger.exception(
                    "Delivery failed",
                    connection_id=connection.id,
                    session_id=session_id,
                )
        return delivered

    async def _persist(
        self,
        payload: ChatMessagePayload,
        user_id: int | None,
        is_admin: bool,
    ) -> ChatMessageResponse:
        """Append the message and stamp last_message_at in one transaction."""
        now = datetime.now(UTC)
        async with self._session_factory() as session:
            repo = ChatRepository(session)
            try:
                if not await repo.touch_session(payload.session_id, now):
                    raise SessionNotFoundError(payload.session_id)
                record = await repo.create_message(
                    session_id=payload.session_id,
                    user_id=user_id,
                    username=payload.username,
                    message=payload.message,
                    is_admin=is_admin,
                    created_at=now,
                )
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise SessionNotFoundError(payload.session_id) from exc
            return ChatMessageResponse.model_validate(record)
