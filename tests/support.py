"""Shared test helpers: test database, tokens and relay config."""

import fakeredis.aioredis
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from storefront_chat.core.settings import ChatConfig
from storefront_chat.services.connection_registry import Connection
from storefront_chat.services.token_service import TokenService

# --- Test DB (SQLite in-memory) ---

test_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


# --- Token helpers ---


def make_token(
    fake_redis: fakeredis.aioredis.FakeRedis,
    user_id: int = 1,
    email: str = "test@test.com",
    role: str = "user",
) -> str:
    """Sign a valid access token."""
    return TokenService(fake_redis).create_access_token(
        user_id=user_id, email=email, role=role
    )


def make_auth_headers(
    fake_redis: fakeredis.aioredis.FakeRedis,
    user_id: int = 1,
    email: str = "test@test.com",
    role: str = "user",
) -> dict[str, str]:
    """Generate Authorization headers with a valid access token."""
    token = make_token(fake_redis, user_id=user_id, email=email, role=role)
    return {"Authorization": f"Bearer {token}"}


# --- Relay helpers ---


def make_chat_config(**overrides: object) -> ChatConfig:
    values: dict[str, object] = {
        "history_limit": 50,
        "max_history_limit": 200,
        "max_message_length": 4000,
        "require_admin_auth": True,
        "rate_limit_enabled": False,
        "message_rate_limit": "30/minute",
    }
    values.update(overrides)
    return ChatConfig(**values)  # type: ignore[arg-type]


def drain_types(connection: Connection) -> list[str]:
    """Event types queued on a connection, consuming them."""
    return [frame["type"] for frame in connection.drain()]
