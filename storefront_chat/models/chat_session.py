"""Chat session database model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from storefront_chat.core.database import Base

SESSION_ID_MAX_LENGTH = 64


class ChatSession(Base):
    """One visitor's support conversation, keyed by a client-generated id."""

    __tablename__ = "chat_sessions"
    __table_args__ = (
        Index("ix_chat_sessions_last_message_at", "last_message_at"),
    )

    id: Mapped[str] = mapped_column(String(SESSION_ID_MAX_LENGTH), primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
