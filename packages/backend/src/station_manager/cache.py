"""Redis connection pool shared by rate limiting and login lockout.

Learn: Redis is optional. With ``STATION_MANAGER_REDIS_URL`` unset (or the
server unreachable at startup) the pool stays uninitialized and callers
that use ``redis_or_none`` simply skip their Redis-backed checks.
"""

from typing import Optional

import redis.asyncio as aioredis

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis(url: str) -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def redis_or_none() -> Optional[aioredis.Redis]:
    """The shared connection, or None when Redis is disabled/unavailable."""
    return _redis
