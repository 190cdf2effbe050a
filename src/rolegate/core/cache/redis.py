"""Redis client configuration and connection management.

Provides an async Redis client with connection pooling, used to carry
role change notifications between engine processes.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool


class RedisPoolHolder:
    """Holder for the Redis connection pool.

    Uses a class attribute to manage module-level state without
    global statements.
    """

    pool: "ConnectionPool | None" = None
    url: str | None = None


def configure_redis(url: str) -> None:
    """Set the URL used when the pool is first created.

    Args:
        url: Redis connection URL (e.g., "redis://localhost:6379")
    """
    RedisPoolHolder.url = url


def _get_pool() -> ConnectionPool:
    """Get or create the Redis connection pool.

    Raises:
        RuntimeError: If configure_redis() was never called
    """
    if RedisPoolHolder.pool is None:
        if RedisPoolHolder.url is None:
            raise RuntimeError("Redis not configured. Call configure_redis() first.")
        RedisPoolHolder.pool = ConnectionPool.from_url(
            RedisPoolHolder.url,
            max_connections=50,
            decode_responses=True,
        )
    return RedisPoolHolder.pool


@asynccontextmanager
async def redis_client() -> AsyncGenerator[redis.Redis, None]:  # type: ignore[type-arg]
    """Context manager for Redis client.

    Usage:
        async with redis_client() as client:
            await client.publish("channel", "payload")
    """
    client = redis.Redis(connection_pool=_get_pool())
    try:
        yield client
    finally:
        await client.aclose()


async def close_redis_pool() -> None:
    """Close the Redis connection pool.

    Call this during process shutdown.
    """
    if RedisPoolHolder.pool is not None:
        await RedisPoolHolder.pool.disconnect()
        RedisPoolHolder.pool = None
