"""Support-chat WebSocket endpoint.

Visitors connect anonymously; admin consoles pass their access token as
``?token=`` because browsers cannot set headers on the handshake.
"""

import asyncio
import contextlib

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from storefront_chat.core.exceptions import AppException
from storefront_chat.dependencies import get_chat_relay, get_token_service
from storefront_chat.schemas.auth_schema import CurrentUser
from storefront_chat.services.chat_relay import ChatRelay
from storefront_chat.services.connection_registry import Connection
from storefront_chat.services.token_service import TokenService

logger = structlog.get_logger()

router = APIRouter(tags=["chat"])


async def _authenticate(
    token: str | None, token_service: TokenService
) -> CurrentUser | None:
    if not token:
        return None
    payload = await token_service.verify_access_token(token)
    return CurrentUser.from_token(payload)


async def _pump(websocket: WebSocket, connection: Connection) -> None:
    """Write queued frames to the socket in order until the outbox closes."""
    try:
        while (frame := await connection.next_frame()) is not None:
            await websocket.send_json(frame)
    except (WebSocketDisconnect, RuntimeError, OSError):
        # Peer went away mid-send; the receive loop handles cleanup.
        logger.debug("Writer stopped on disconnect", connection_id=connection.id)


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    relay: ChatRelay = Depends(get_chat_relay),
    token_service: TokenService = Depends(get_token_service),
    token: str | None = Query(default=None),
) -> None:
    try:
        principal = await _authenticate(token, token_service)
    except (AppException, ValueError) as exc:
        logger.info("Rejected socket token", reason=str(exc))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = relay.open_connection(principal)
    writer = asyncio.create_task(_pump(websocket, connection))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await relay.handle_frame(connection, raw)
    except WebSocketDisconnect:
        logger.debug("Client disconnected", connection_id=connection.id)
    except Exception:
        logger.exception("Chat socket failed", connection_id=connection.id)
        raise
    finally:
        relay.close_connection(connection)
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer
