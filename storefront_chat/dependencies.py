"""Global dependencies for the application."""

from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends, Request

from storefront_chat.core import redis as redis_state
from storefront_chat.core.config import settings
from storefront_chat.core.database import get_session_factory
from storefront_chat.core.exceptions import AuthenticationError, AuthorizationError
from storefront_chat.schemas.auth_schema import CurrentUser
from storefront_chat.services.chat_relay import ChatRelay
from storefront_chat.services.message_router import MessageRouter
from storefront_chat.services.session_lifecycle import SessionLifecycleManager
from storefront_chat.services.token_service import TokenService

# --- Relay ---


@lru_cache
def get_chat_relay() -> ChatRelay:
    """Process-wide relay; every socket and route shares one registry."""
    return ChatRelay(get_session_factory(), settings.chat)


def get_session_lifecycle(
    relay: ChatRelay = Depends(get_chat_relay),
) -> SessionLifecycleManager:
    return relay.lifecycle


def get_message_router(relay: ChatRelay = Depends(get_chat_relay)) -> MessageRouter:
    return relay.router


# --- Auth dependencies ---


def get_token_service() -> TokenService:
    """Get TokenService backed by the active Redis client, if any."""
    return TokenService(redis_state.redis_client)


def get_optional_user(request: Request) -> CurrentUser | None:
    """The principal populated by AuthMiddleware, or None for visitors."""
    state = getattr(request, "state", None)
    user_id = getattr(state, "user_id", None) if state else None
    if user_id is None:
        return None
    return CurrentUser(
        id=state.user_id,
        email=state.email,
        role=state.role,
    )


def get_current_user(
    user: CurrentUser | None = Depends(get_optional_user),
) -> CurrentUser:
    """Extract the authenticated user from middleware-populated state."""
    if user is None:
        raise AuthenticationError(message="Not authenticated")
    return user


def require_role(*allowed_roles: str) -> Callable[..., CurrentUser]:
    """Dependency factory that enforces role-based access control."""

    def _check(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                message=f"Role '{current_user.role}' is not permitted"
            )
        return current_user

    return _check


require_admin = require_role("admin")
