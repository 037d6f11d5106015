"""Chat session lifecycle: creation, history, listing and deletion."""

import asyncio
from datetime import UTC, datetime

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_chat.core.exceptions import (
    SessionAlreadyExistsError,
    SessionNotFoundError,
)
from storefront_chat.repositories.chat_repo import ChatRepository
from storefront_chat.schemas.chat_schema import (
    DEFAULT_USERNAME,
    ChatMessageResponse,
    ChatSessionResponse,
)
from storefront_chat.schemas.ws_schema import (
    AdminSessionsEvent,
    SessionDeletedEvent,
    to_wire,
)
from storefront_chat.services.connection_registry import Connection, ConnectionRegistry

logger = structlog.get_logger()


class SessionLifecycleManager:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ConnectionRegistry,
        history_limit: int = 50,
        max_history_limit: int = 200,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._registry = registry
        self._history_limit = history_limit
        self._max_history_limit = max_history_limit
        self._lock = lock if lock is not None else asyncio.Lock()

    async def create_session(
        self,
        session_id: str,
        username: str = DEFAULT_USERNAME,
        is_active: bool = True,
    ) -> ChatSessionResponse:
        """Persist a visitor session under its client-generated id.

        Raises:
            SessionAlreadyExistsError: The id is already taken.
        """
        now = datetime.now(UTC)
        async with self._session_factory() as session:
            repo = ChatRepository(session)
            if await repo.find_session_by_id(session_id) is not None:
                raise SessionAlreadyExistsError(session_id)
            try:
                record = await repo.create_session(
                    session_id=session_id,
                    username=username,
                    is_active=is_active,
                    created_at=now,
                )
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise SessionAlreadyExistsError(session_id) from exc
            created = ChatSessionResponse.model_validate(record)

        logger.info("Chat session created", session_id=session_id, username=username)
        return created

    async def load_history(
        self, session_id: str, limit: int | None = None
    ) -> list[ChatMessageResponse]:
        """Most recent messages of a session in ascending time order.

        ``limit`` falls back to the configured default and is capped at the
        configured maximum.
        """
        if limit is None:
            limit = self._history_limit
        limit = max(1, min(limit, self._max_history_limit))

        async with self._session_factory() as session:
            repo = ChatRepository(session)
            if await repo.find_session_by_id(session_id) is None:
                raise SessionNotFoundError(session_id)
            records = await repo.find_recent_messages(session_id, limit)
            return [ChatMessageResponse.model_validate(r) for r in records]

    async def list_sessions(self) -> list[ChatSessionResponse]:
        """Every session, most recently active first."""
        async with self._session_factory() as session:
            repo = ChatRepository(session)
            records = await repo.list_sessions()
            return [ChatSessionResponse.model_validate(r) for r in records]

    async def delete_session(self, session_id: str) -> int:
        """Delete a session and all of its messages, then tell every admin.

        Both deletes share one transaction, so no reader can observe messages
        whose session is gone. The delete and the notification run under the
        message lock, so no ``new_message`` for the session can follow its
        ``session_deleted``. Returns the number of messages removed.

        Raises:
            SessionNotFoundError: No session has this id.
        """
        async with self._lock:
            async with self._session_factory.begin() as session:
                repo = ChatRepository(session)
                removed = await repo.delete_messages_by_session_id(session_id)
                if not await repo.delete_session(session_id):
                    raise SessionNotFoundError(session_id)

            frame = to_wire(SessionDeletedEvent(session_id=session_id))
            notified = sum(
                1
                for admin in self._registry.all_admin_connections()
                if admin.deliver(frame)
            )
        logger.info(
            "Chat session deleted",
            session_id=session_id,
            messages_removed=removed,
            admins_notified=notified,
        )
        return removed

    async def admin_join(self, connection: Connection) -> list[ChatSessionResponse]:
        """Promote a socket to admin and send it the current session list.

        The role switch happens before the snapshot is read so that no
        message persisted in between is missed.
        """
        self._registry.mark_admin(connection)
        sessions = await self.list_sessions()
        connection.deliver(to_wire(AdminSessionsEvent(payload=sessions)))
        logger.info(
            "Admin console joined",
            connection_id=connection.id,
            sessions=len(sessions),
        )
        return sessions

    async def session_exists(self, session_id: str) -> bool:
        async with self._session_factory() as session:
            repo = ChatRepository(session)
            return await repo.find_session_by_id(session_id) is not None
