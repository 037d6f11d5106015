"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CHAT_RATE_LIMIT_ENABLED", "false")

from collections.abc import AsyncGenerator  # noqa: E402

import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from storefront_chat.core.database import Base  # noqa: E402
from storefront_chat.core.settings import ChatConfig  # noqa: E402
from storefront_chat.models.chat_message import ChatMessage  # noqa: E402, F401
from storefront_chat.models.chat_session import ChatSession  # noqa: E402, F401
from storefront_chat.services.chat_relay import ChatRelay  # noqa: E402
from storefront_chat.services.token_service import TokenService  # noqa: E402
from tests.support import (  # noqa: E402
    make_auth_headers,
    make_chat_config,
    test_engine,
    test_session_factory,
)

# --- Test DB (SQLite in-memory) ---


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# --- Test Redis (fakeredis) ---


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Create a fresh fake Redis client."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def patch_redis(
    fake_redis: fakeredis.aioredis.FakeRedis, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Patch the global redis_client read by the middleware and socket auth."""
    monkeypatch.setattr("storefront_chat.core.redis.redis_client", fake_redis)


# --- Token helpers ---


@pytest.fixture
def token_service(fake_redis: fakeredis.aioredis.FakeRedis) -> TokenService:
    """Create a TokenService backed by fake Redis."""
    return TokenService(fake_redis)


# --- Relay fixtures ---


@pytest.fixture
def chat_config() -> ChatConfig:
    return make_chat_config()


@pytest.fixture
def relay(chat_config: ChatConfig) -> ChatRelay:
    """A relay over the test database with an empty registry."""
    return ChatRelay(test_session_factory, chat_config)


# --- App override & client fixtures ---


def _get_app(relay: ChatRelay):  # type: ignore[no-untyped-def]
    """Import app lazily and apply overrides."""
    from storefront_chat.dependencies import get_chat_relay
    from storefront_chat.main import app

    app.dependency_overrides[get_chat_relay] = lambda: relay
    return app


@pytest.fixture
async def async_client(relay: ChatRelay) -> AsyncGenerator[AsyncClient, None]:
    """Create an anonymous (visitor) async test client."""
    application = _get_app(relay)
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    application.dependency_overrides.clear()


@pytest.fixture
async def authed_client(
    relay: ChatRelay,
    fake_redis: fakeredis.aioredis.FakeRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with user auth headers."""
    application = _get_app(relay)
    headers = make_auth_headers(fake_redis)
    transport = ASGITransport(app=application)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=headers
    ) as ac:
        yield ac
    application.dependency_overrides.clear()


@pytest.fixture
async def admin_client(
    relay: ChatRelay,
    fake_redis: fakeredis.aioredis.FakeRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with admin auth headers."""
    application = _get_app(relay)
    headers = make_auth_headers(fake_redis, user_id=99, role="admin")
    transport = ASGITransport(app=application)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=headers
    ) as ac:
        yield ac
    application.dependency_overrides.clear()


# --- DB session for tests ---


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a raw async session for repository tests."""
    async with test_session_factory() as session:
        yield session
