"""Shared slowapi limiter used by the application and the v1 routers."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from garment_orders.core.config import get_settings

settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)
