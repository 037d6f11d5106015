"""Domain-specific configuration models."""

from storefront_chat.core.settings.app_config import AppConfig
from storefront_chat.core.settings.auth_config import AuthConfig
from storefront_chat.core.settings.chat_config import ChatConfig
from storefront_chat.core.settings.database_config import DatabaseConfig
from storefront_chat.core.settings.redis_config import RedisConfig
from storefront_chat.core.settings.server_config import ServerConfig

__all__ = [
    "AppConfig",
    "AuthConfig",
    "ChatConfig",
    "DatabaseConfig",
    "RedisConfig",
    "ServerConfig",
]
