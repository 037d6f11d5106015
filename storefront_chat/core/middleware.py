"""ASGI authentication middleware."""

import json

import structlog
from starlette.types import ASGIApp, Receive, Scope, Send

from storefront_chat.core import redis as redis_state
from storefront_chat.core.exceptions import AppException
from storefront_chat.services.token_service import TokenService

logger = structlog.get_logger()


class AuthMiddleware:
    """Pure ASGI middleware for optional JWT validation.

    Visitors chat anonymously, so a request without an Authorization header
    passes through with no principal; routes that need one enforce it with
    ``require_role``. A header that is present but invalid, expired or
    revoked is rejected here. WebSocket scopes authenticate at handshake.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        if method == "OPTIONS":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        auth_header = headers.get(b"authorization", b"").decode()

        if not auth_header:
            await self.app(scope, receive, send)
            return

        if not auth_header.startswith("Bearer "):
            await self._send_error(
                send, 401, "INVALID_TOKEN", "Bearer token required"
            )
            return

        token_service = TokenService(redis_state.redis_client)
        try:
            payload = await token_service.verify_access_token(auth_header[7:])
            user_id = int(payload.sub)
        except AppException as exc:
            await self._send_error(send, exc.status_code, exc.code, exc.message)
            return
        except ValueError:
            await self._send_error(send, 401, "INVALID_TOKEN", "Invalid subject")
            return

        scope.setdefault("state", {})
        scope["state"]["user_id"] = user_id
        scope["state"]["email"] = payload.email
        scope["state"]["role"] = payload.role
        scope["state"]["jti"] = payload.jti

        await self.app(scope, receive, send)

    @staticmethod
    async def _send_error(send: Send, status: int, code: str, message: str) -> None:
        """Send a JSON error response directly."""
        logger.info("Rejected request token", code=code)
        body = json.dumps({"status": status, "message": message, "code": code}).encode()

        await send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
