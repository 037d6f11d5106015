"""Chat repository for session and message database operations."""

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront_chat.models.chat_message import ChatMessage
from storefront_chat.models.chat_session import ChatSession


class ChatRepository:
    """Encapsulates chat session and message database queries.

    The repository never commits; callers own the transaction boundary.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- Sessions ---

    async def find_session_by_id(self, session_id: str) -> ChatSession | None:
        """Find a chat session by its client-generated id."""
        result = await self._session.execute(
            select(ChatSession).where(ChatSession.id == session_id)
        )
        return result.scalar_one_or_none()

    async def create_session(
        self,
        session_id: str,
        username: str,
        created_at: datetime,
        is_active: bool = True,
    ) -> ChatSession:
        """Create a new chat session whose activity clock starts at creation."""
        session = ChatSession(
            id=session_id,
            username=username,
            is_active=is_active,
            created_at=created_at,
            last_message_at=created_at,
        )
        self._session.add(session)
        await self._session.flush()
        await self._session.refresh(session)
        return session

    async def list_sessions(self) -> list[ChatSession]:
        """All sessions, most recently active first."""
        result = await self._session.execute(
            select(ChatSession).order_by(
                ChatSession.last_message_at.desc(),
                ChatSession.created_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def touch_session(self, session_id: str, at: datetime) -> bool:
        """Stamp last_message_at; False when no such session exists."""
        result = await self._session.execute(
            update(ChatSession)
            .where(ChatSession.id == session_id)
            .values(last_message_at=at)
        )
        return bool(result.rowcount)

    async def delete_session(self, session_id: str) -> bool:
        """Hard-delete a session row; False when it did not exist."""
        result = await self._session.execute(
            delete(ChatSession).where(ChatSession.id == session_id)
        )
        return bool(result.rowcount)

    # --- Messages ---

    async def create_message(
        self,
        session_id: str,
        username: str,
        message: str,
        created_at: datetime,
        user_id: int | None = None,
        is_admin: bool = False,
    ) -> ChatMessage:
        """Append a single chat message."""
        record = ChatMessage(
            session_id=session_id,
            user_id=user_id,
            username=username,
            message=message,
            is_admin=is_admin,
            created_at=created_at,
        )
        self._session.add(record)
        await self._session.flush()
        await self._session.refresh(record)
        return record

    async def find_recent_messages(
        self, session_id: str, limit: int
    ) -> list[ChatMessage]:
        """The newest ``limit`` messages of a session, returned oldest first."""
        result = await self._session.execute(
            select(ChatMessage)
            .where(ChatMessage.session_id == session_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(limit)
        )
        messages = list(result.scalars().all())
        messages.reverse()
        return messages

    async def delete_messages_by_session_id(self, session_id: str) -> int:
        """Hard-delete every message of a session; returns the row count."""
        result = await self._session.execute(
            delete(ChatMessage).where(ChatMessage.session_id == session_id)
        )
        return int(result.rowcount or 0)
