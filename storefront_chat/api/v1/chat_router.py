"""Support-chat HTTP API: sessions, history and message submission."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from storefront_chat.core.config import settings
from storefront_chat.core.limiter import limiter
from storefront_chat.dependencies import (
    get_message_router,
    get_optional_user,
    get_session_lifecycle,
    require_admin,
)
from storefront_chat.schemas.auth_schema import CurrentUser
from storefront_chat.schemas.chat_schema import (
    ChatMessageResponse,
    ChatSessionResponse,
    CreateSessionRequest,
    DeleteSessionResponse,
    SubmitMessageRequest,
)
from storefront_chat.schemas.response_schema import (
    ApiResponse,
    error_responses,
    success_response,
)
from storefront_chat.services.message_router import MessageRouter
from storefront_chat.services.session_lifecycle import SessionLifecycleManager

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])

LifecycleDep = Annotated[SessionLifecycleManager, Depends(get_session_lifecycle)]
RouterDep = Annotated[MessageRouter, Depends(get_message_router)]
OptionalUserDep = Annotated[CurrentUser | None, Depends(get_optional_user)]
AdminDep = Annotated[CurrentUser, Depends(require_admin)]


@router.post(
    "/sessions",
    response_model=ApiResponse[ChatSessionResponse],
    status_code=status.HTTP_201_CREATED,
    responses=error_responses(409, 422),
)
async def create_session(
    body: CreateSessionRequest,
    lifecycle: LifecycleDep,
) -> dict:
    """Open a visitor session under a client-generated id."""
    session = await lifecycle.create_session(
        session_id=body.id,
        username=body.username,
        is_active=body.is_active,
    )
    return success_response(session, status=201, message="Created")


@router.get(
    "/sessions",
    response_model=ApiResponse[list[ChatSessionResponse]],
    responses=error_responses(401, 403),
)
async def list_sessions(lifecycle: LifecycleDep, _admin: AdminDep) -> dict:
    """Every session, most recently active first (admin only)."""
    return success_response(await lifecycle.list_sessions())


@router.get(
    "/sessions/{session_id}/messages",
    response_model=ApiResponse[list[ChatMessageResponse]],
    responses=error_responses(404),
)
async def get_history(
    session_id: str,
    lifecycle: LifecycleDep,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> dict:
    """Most recent messages of a session, oldest first."""
    return success_response(await lifecycle.load_history(session_id, limit))


@router.post(
    "/messages",
    response_model=ApiResponse[ChatMessageResponse],
    status_code=status.HTTP_201_CREATED,
    responses=error_responses(404, 422, 429),
)
@limiter.limit(settings.chat.message_rate_limit)
async def submit_message(
    request: Request,
    body: SubmitMessageRequest,
    message_router: RouterDep,
    user: OptionalUserDep,
) -> dict:
    """Persist a message and relay it to the session's sockets and admins."""
    message = await message_router.submit_message(
        body.payload,
        user_id=user.id if user else None,
        is_admin=user.is_admin if user else False,
    )
    return success_response(message, status=201, message="Created")


@router.delete(
    "/sessions/{session_id}",
    response_model=ApiResponse[DeleteSessionResponse],
    responses=error_responses(401, 403, 404),
)
async def delete_session(
    session_id: str,
    lifecycle: LifecycleDep,
    _admin: AdminDep,
) -> dict:
    """Hard-delete a session with its messages and notify admin consoles."""
    removed = await lifecycle.delete_session(session_id)
    return success_response(
        DeleteSessionResponse(session_id=session_id, messages_deleted=removed)
    )
