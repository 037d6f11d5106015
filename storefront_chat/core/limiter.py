"""Request rate limiting shared by the app and routers."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from storefront_chat.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.chat.rate_limit_enabled,
)
