from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.settings import settings

# Client address is already resolved from X-Forwarded-For by RequestContextMiddleware
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.rate_limit_storage_uri or settings.redis_url,
    in_memory_fallback_enabled=True,
)

__all__ = ["limiter"]
