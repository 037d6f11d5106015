"""Support-chat relay configuration."""

from pydantic import BaseModel


class ChatConfig(BaseModel, frozen=True):
    """Chat relay settings."""

    history_limit: int
    max_history_limit: int
    max_message_length: int
    require_admin_auth: bool
    rate_limit_enabled: bool
    message_rate_limit: str
