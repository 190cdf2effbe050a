"""Redis connectivity."""

from rolegate.core.cache.redis import close_redis_pool, configure_redis, redis_client


__all__ = [
    "close_redis_pool",
    "configure_redis",
    "redis_client",
]
