"""Application configuration using Pydantic Settings V2."""

from functools import cached_property
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront_chat.core.settings import (
    AppConfig,
    AuthConfig,
    ChatConfig,
    DatabaseConfig,
    RedisConfig,
    ServerConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Flat fields are loaded directly from environment variables.
    Domain properties provide grouped access (e.g. settings.chat.history_limit).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = Field(
        default="storefront-chat",
        description="Application name",
    )
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Debug mode",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=8004,
        ge=1,
        le=65535,
        description="Server port",
    )

    # JWT verification (tokens are issued by the storefront auth service)
    jwt_secret_key: SecretStr = Field(
        description="JWT secret key shared with the token issuer",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm",
    )
    jwt_access_token_expire_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Access token lifetime used by the token script",
    )

    # Database
    database_url: SecretStr = Field(
        description="Async database URL (mysql+aiomysql://...)",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Chat relay
    chat_history_limit: int = Field(
        default=50,
        ge=1,
        description="Default number of messages returned by history queries",
    )
    chat_max_history_limit: int = Field(
        default=200,
        ge=1,
        description="Upper bound accepted for the history limit parameter",
    )
    chat_max_message_length: int = Field(
        default=4000,
        ge=1,
        le=20000,
        description="Maximum length of a single chat message",
    )
    chat_require_admin_auth: bool = Field(
        default=True,
        description="Require an admin JWT before a socket may send admin_join",
    )
    chat_rate_limit_enabled: bool = Field(
        default=True,
        description="Enable rate limiting on HTTP message submission",
    )
    chat_message_rate_limit: str = Field(
        default="30/minute",
        description="Rate limit for POST /messages",
    )

    # --- Domain properties ---

    @cached_property
    def app(self) -> AppConfig:
        """Application environment configuration."""
        return AppConfig(
            name=self.app_name,
            env=self.app_env,
            debug=self.debug,
        )

    @cached_property
    def server(self) -> ServerConfig:
        """Server configuration."""
        return ServerConfig(
            host=self.host,
            port=self.port,
        )

    @cached_property
    def auth(self) -> AuthConfig:
        """JWT verification configuration."""
        return AuthConfig(
            secret_key=self.jwt_secret_key,
            algorithm=self.jwt_algorithm,
            access_token_expire_minutes=self.jwt_access_token_expire_minutes,
        )

    @cached_property
    def database(self) -> DatabaseConfig:
        """Database connection configuration."""
        return DatabaseConfig(url=self.database_url)

    @cached_property
    def redis(self) -> RedisConfig:
        """Redis connection configuration."""
        return RedisConfig(url=self.redis_url)

    @cached_property
    def chat(self) -> ChatConfig:
        """Chat relay configuration."""
        return ChatConfig(
            history_limit=self.chat_history_limit,
            max_history_limit=self.chat_max_history_limit,
            max_message_length=self.chat_max_message_length,
            require_admin_auth=self.chat_require_admin_auth,
            rate_limit_enabled=self.chat_rate_limit_enabled,
            message_rate_limit=self.chat_message_rate_limit,
        )

    # --- Convenience properties (delegate to domain configs) ---

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app.is_development


# Global settings instance
settings = Settings()
