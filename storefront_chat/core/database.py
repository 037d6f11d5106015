"""Async database engine and session configuration."""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from storefront_chat.core.config import settings


def _engine_options() -> dict[str, Any]:
    """Pool options for server databases; SQLite picks its own pool."""
    options: dict[str, Any] = {"echo": settings.app.is_development}
    if not settings.database.async_url.startswith("sqlite"):
        options.update(
            pool_size=10,
            max_overflow=20,
            pool_recycle=3600,
            pool_pre_ping=True,
        )
    return options


engine = create_async_engine(settings.database.async_url, **_engine_options())

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for services that own their transactions."""
    return async_session_factory
