"""Tests for auth and redis domain config classes."""

import pytest
from pydantic import SecretStr, ValidationError

from storefront_chat.core.settings.auth_config import AuthConfig
from storefront_chat.core.settings.redis_config import RedisConfig


class TestAuthConfig:
    """Tests for AuthConfig frozen model."""

    def test_create_auth_config(self) -> None:
        config = AuthConfig(
            secret_key=SecretStr("secret"),
            algorithm="HS256",
            access_token_expire_minutes=30,
        )
        assert config.algorithm == "HS256"
        assert config.access_token_expire_minutes == 30
        assert config.secret_key.get_secret_value() == "secret"
        assert "secret" not in repr(config)

    def test_auth_config_is_frozen(self) -> None:
        config = AuthConfig(
            secret_key=SecretStr("secret"),
            algorithm="HS256",
            access_token_expire_minutes=30,
        )
        with pytest.raises(ValidationError):
            config.algorithm = "RS256"  # type: ignore[misc]


class TestRedisConfig:
    """Tests for RedisConfig."""

    def test_create_redis_config(self) -> None:
        config = RedisConfig(url="redis://localhost:6379/0")
        assert config.url == "redis://localhost:6379/0"

    def test_redis_config_is_frozen(self) -> None:
        config = RedisConfig(url="redis://localhost:6379/0")
        with pytest.raises(ValidationError):
            config.url = "other"  # type: ignore[misc]
