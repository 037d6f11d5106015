"""WebSocket envelope models.

Every frame is a JSON object ``{"type": ..., ...}``. Inbound frames are
parsed through a discriminated union; outbound frames are serialized once
with :func:`to_wire` and the resulting dict is shared by every recipient.
"""

from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter

from storefront_chat.schemas.chat_schema import (
    CamelModel,
    ChatMessagePayload,
    ChatMessageResponse,
    ChatSessionResponse,
)

# --- Inbound (client -> server) ---


class JoinSessionEvent(CamelModel):
    """Bind this socket to a visitor session."""

    type: Literal["join_session"]
    session_id: str = Field(..., min_length=1, max_length=64)


class ChatMessageEvent(CamelModel):
    """Submit a chat message."""

    type: Literal["chat_message"]
    payload: ChatMessagePayload


class AdminJoinEvent(CamelModel):
    """Declare this socket as a support-staff console."""

    type: Literal["admin_join"]


InboundEvent = Annotated[
    JoinSessionEvent | ChatMessageEvent | AdminJoinEvent,
    Field(discriminator="type"),
]

inbound_event_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


# --- Outbound (server -> client) ---


class SessionJoinedEvent(CamelModel):
    type: Literal["session_joined"] = "session_joined"
    session_id: str


class NewMessageEvent(CamelModel):
    type: Literal["new_message"] = "new_message"
    payload: ChatMessageResponse


class AdminSessionsEvent(CamelModel):
    type: Literal["admin_sessions"] = "admin_sessions"
    payload: list[ChatSessionResponse]


class SessionDeletedEvent(CamelModel):
    type: Literal["session_deleted"] = "session_deleted"
    session_id: str


class ErrorEvent(CamelModel):
    """Sent only to the socket whose frame was rejected."""

    type: Literal["error"] = "error"
    code: str
    message: str


OutboundEvent = (
    SessionJoinedEvent
    | NewMessageEvent
    | AdminSessionsEvent
    | SessionDeletedEvent
    | ErrorEvent
)

outbound_event_adapter: TypeAdapter[OutboundEvent] = TypeAdapter(
    Annotated[OutboundEvent, Field(discriminator="type")]
)


def to_wire(event: OutboundEvent) -> dict[str, Any]:
    """JSON-ready dict with camelCase keys."""
    return event.model_dump(mode="json", by_alias=True)
