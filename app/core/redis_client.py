"""Redis connection and the JSON cache used for profile reads."""

import json
from typing import Any, cast

import redis
import structlog

from app.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Shared Redis client, created lazily; no connection is made until first use."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis.from_url(
            settings.redis_url,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=settings.redis_socket_timeout,
            socket_timeout=settings.redis_socket_timeout,
            health_check_interval=30,
        )
        logger.info("redis_client_created", host=settings.redis_host, port=settings.redis_port)

    return _redis_client


async def check_redis_connection() -> bool:
    """Ping Redis; False when it is unreachable."""
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError as e:
        logger.warning("redis_ping_failed", error=str(e))
        return False


def close_redis_connection() -> None:
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class CacheManager:
    """Redis-backed JSON cache.

    Every operation fails open: a Redis outage degrades to cache misses and
    never breaks the request.
    """

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        """Cached value for ``key``, or None on a miss or a Redis error."""
        try:
            value = cast(str | None, self.redis.get(key))
            return json.loads(value) if value else None
        except Exception as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store ``value`` as JSON.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Expiry in seconds; without it the key never expires

        Returns:
            True if Redis accepted the write
        """
        payload = json.dumps(value, default=str)
        try:
            if ttl:
                self.redis.setex(key, ttl, payload)
            else:
                self.redis.set(key, payload)
        except Exception as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            self.redis.delete(key)
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False
        return True
