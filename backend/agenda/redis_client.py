# backend/agenda/redis_client.py
"""
Shared Redis client.

None when REDIS_URL is not configured: the virtual-slot cache is then
skipped and every request generates on the fly.
"""

from redis import Redis

from .config import settings

redis_client: Redis | None = (
    Redis.from_url(settings.redis_url, socket_timeout=2.0)
    if settings.redis_url
    else None
)


# Dependency for FastAPI
def get_redis() -> Redis | None:
    return redis_client
