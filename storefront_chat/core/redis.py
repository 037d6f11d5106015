"""Redis client lifecycle and token-revocation lookups.

The storefront auth service writes ``token_blacklist:<jti>`` keys when a
token is revoked; the relay only reads them.
"""

import redis.asyncio as redis
import structlog

from storefront_chat.core.config import settings

logger = structlog.get_logger()

BLACKLIST_PREFIX = "token_blacklist:"

redis_client: redis.Redis | None = None  # type: ignore[type-arg]


async def init_redis() -> redis.Redis:  # type: ignore[type-arg]
    """Initialize the Redis connection."""
    global redis_client  # noqa: PLW0603
    redis_client = redis.from_url(settings.redis.url, decode_responses=True)
    await redis_client.ping()
    logger.info("Redis connected", url=settings.redis.url)
    return redis_client


async def close_redis() -> None:
    """Close the Redis connection."""
    global redis_client  # noqa: PLW0603
    if redis_client:
        await redis_client.aclose()
        redis_client = None


async def is_token_revoked(client: redis.Redis | None, jti: str) -> bool:  # type: ignore[type-arg]
    """Check the blacklist; a missing client means nothing can be revoked."""
    if client is None:
        return False
    return await client.get(f"{BLACKLIST_PREFIX}{jti}") is not None
