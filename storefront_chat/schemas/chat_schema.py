"""Chat session and message request/response schemas.

Field names are camelCase on the wire (``sessionId``, ``isAdmin``...) and
snake_case in Python.
"""

from datetime import UTC, datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_USERNAME = "Guest"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _as_utc(value: datetime) -> datetime:
    """Stores without timezone support hand back naive UTC timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CreateSessionRequest(CamelModel):
    """Request to open a support conversation under a client-generated id."""

    id: str = Field(..., min_length=1, max_length=64)
    username: str = Field(default=DEFAULT_USERNAME, max_length=100)
    is_active: bool = True

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("username")
    @classmethod
    def username_or_guest(cls, v: str) -> str:
        return v.strip() or DEFAULT_USERNAME


class ChatSessionResponse(CamelModel):
    """Public representation of a chat session."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    username: str
    is_active: bool
    last_message_at: UtcDatetime
    created_at: UtcDatetime


class ChatMessagePayload(CamelModel):
    """Inbound chat message shape, shared by HTTP and WebSocket."""

    session_id: str = Field(..., min_length=1, max_length=64)
    user_id: int | None = None
    username: str = Field(default=DEFAULT_USERNAME, max_length=100)
    message: str
    is_admin: bool = False

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message must not be empty")
        return v

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        return v.strip() or DEFAULT_USERNAME


class SubmitMessageRequest(CamelModel):
    """Body of POST /messages."""

    payload: ChatMessagePayload


class ChatMessageResponse(CamelModel):
    """A persisted chat message as delivered to clients."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    session_id: str
    user_id: int | None = None
    username: str
    message: str
    is_admin: bool
    created_at: UtcDatetime


class DeleteSessionResponse(CamelModel):
    """Outcome of an admin session deletion."""

    session_id: str
    messages_deleted: int
