"""Per-process relay wiring socket frames to the chat services."""

import asyncio

import structlog
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_chat.core.exceptions import (
    AppException,
    AuthorizationError,
    MalformedEventError,
    MessageValidationError,
    SessionNotFoundError,
    StoreUnavailableError,
    error_body,
)
from storefront_chat.core.settings import ChatConfig
from storefront_chat.schemas.auth_schema import CurrentUser
from storefront_chat.schemas.ws_schema import (
    AdminJoinEvent,
    ChatMessageEvent,
    ErrorEvent,
    InboundEvent,
    JoinSessionEvent,
    SessionJoinedEvent,
    inbound_event_adapter,
    to_wire,
)
from storefront_chat.services.connection_registry import (
    AdminRole,
    Connection,
    ConnectionRegistry,
)
from storefront_chat.services.message_router import MessageRouter
from storefront_chat.services.session_lifecycle import SessionLifecycleManager

logger = structlog.get_logger()

# Pydantic error types that mean the frame is not an envelope at all.
_ENVELOPE_ERRORS = frozenset(
    {
        "json_invalid",
        "json_type",
        "dict_type",
        "model_type",
        "model_attributes_type",
        "union_tag_invalid",
        "union_tag_not_found",
    }
)


def parse_frame(raw: str | bytes) -> InboundEvent:
    """Decode one text frame into an inbound event.

    Raises:
        MalformedEventError: Not JSON, or no recognised ``type``.
        MessageValidationError: Known ``type`` with invalid fields.
    """
    try:
        return inbound_event_adapter.validate_json(raw)
    except ValidationError as exc:
        errors = exc.errors()
        first = errors[0] if errors else {}
        if first.get("type") in _ENVELOPE_ERRORS:
            raise MalformedEventError() from exc
        raise MessageValidationError(first.get("msg", "Invalid event")) from exc


class ChatRelay:
    """Owns the connection registry and the services that act on it.

    One instance exists per process; the HTTP and WebSocket routes reach it
    through a cached dependency.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: ChatConfig,
    ) -> None:
        self.config = config
        self.registry = ConnectionRegistry()
        # Orders message fan-out against session deletion.
        self._lock = asyncio.Lock()
        self.router = MessageRouter(
            session_factory,
            self.registry,
            max_message_length=config.max_message_length,
            lock=self._lock,
        )
        self.lifecycle = SessionLifecycleManager(
            session_factory,
            self.registry,
            history_limit=config.history_limit,
            max_history_limit=config.max_history_limit,
            lock=self._lock,
        )

    def open_connection(self, principal: CurrentUser | None = None) -> Connection:
        connection = Connection(principal=principal)
        self.registry.register(connection)
        logger.info(
            "Chat socket opened",
            connection_id=connection.id,
            user_id=principal.id if principal else None,
            connections=len(self.registry),
        )
        return connection

    def close_connection(self, connection: Connection) -> None:
        """Unregister, discard unsent frames and stop the writer."""
        self.registry.unregister(connection)
        dropped = connection.drain()
        connection.close()
        logger.info(
            "Chat socket closed",
            connection_id=connection.id,
            dropped_frames=len(dropped),
            connections=len(self.registry),
        )

    def shutdown(self) -> None:
        self.registry.close_all()

    async def handle_frame(self, connection: Connection, raw: str | bytes) -> None:
        """Dispatch one inbound frame; rejected frames earn an ``error`` event."""
        try:
            event = parse_frame(raw)
            await self.dispatch(connection, event)
        except AppException as exc:
            logger.warning(
                "Chat frame rejected",
                connection_id=connection.id,
                code=exc.code,
                reason=exc.message,
            )
            self._report(connection, exc)
        except SQLAlchemyError:
            logger.exception("Chat store failed", connection_id=connection.id)
            self._report(connection, StoreUnavailableError())

    def _report(self, connection: Connection, exc: AppException) -> None:
        connection.deliver(to_wire(ErrorEvent.model_validate(error_body(exc))))

    async def dispatch(self, connection: Connection, event: InboundEvent) -> None:
        match event:
            case JoinSessionEvent(session_id=session_id):
                await self._join_session(connection, session_id)
            case ChatMessageEvent(payload=payload):
                principal = connection.principal
                await self.router.submit_message(
                    payload,
                    user_id=principal.id if principal else None,
                    is_admin=isinstance(self.registry.role_of(connection), AdminRole),
                )
            case AdminJoinEvent():
                self._authorize_admin(connection)
                await self.lifecycle.admin_join(connection)

    async def _join_session(self, connection: Connection, session_id: str) -> None:
        if not await self.lifecycle.session_exists(session_id):
            raise SessionNotFoundError(session_id)
        self.registry.bind_to_session(connection, session_id)
        connection.deliver(to_wire(SessionJoinedEvent(session_id=session_id)))
        logger.info(
            "Visitor joined session",
            connection_id=connection.id,
            session_id=session_id,
        )

    def _authorize_admin(self, connection: Connection) -> None:
        if not self.config.require_admin_auth:
            return
        principal = connection.principal
        if principal is None or not principal.is_admin:
            raise AuthorizationError("Admin privileges required")
