"""JWT access-token verification against the shared signing secret."""

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import redis.asyncio as redis

from storefront_chat.core.config import settings
from storefront_chat.core.exceptions import (
    InvalidTokenError,
    TokenBlacklistedError,
    TokenExpiredError,
)
from storefront_chat.core.redis import is_token_revoked
from storefront_chat.schemas.auth_schema import TokenPayload


class TokenService:
    """Verify storefront access tokens and mint operator tokens."""

    def __init__(self, redis_client: redis.Redis | None) -> None:  # type: ignore[type-arg]
        self._redis = redis_client
        self._secret = settings.auth.secret_key.get_secret_value()
        self._algorithm = settings.auth.algorithm

    def create_access_token(
        self,
        user_id: int,
        email: str,
        role: str,
        expires_in: timedelta | None = None,
    ) -> str:
        """Create a signed JWT access token."""
        now = datetime.now(UTC)
        lifetime = expires_in or timedelta(
            minutes=settings.auth.access_token_expire_minutes
        )
        payload = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "type": "access",
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate a JWT token."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError from e

        try:
            return TokenPayload(
                sub=payload["sub"],
                email=payload["email"],
                role=payload["role"],
                type=payload["type"],
                jti=payload["jti"],
                exp=payload["exp"],
            )
        except KeyError as e:
            raise InvalidTokenError(message=f"Missing claim: {e.args[0]}") from e

    async def verify_access_token(self, token: str) -> TokenPayload:
        """Decode an access token and reject refresh tokens or revoked ones."""
        payload = self.decode_token(token)
        if payload.type != "access":
            raise InvalidTokenError(message="Invalid token type")
        if await is_token_revoked(self._redis, payload.jti):
            raise TokenBlacklistedError
        return payload
