"""
Redis Key-Value Backend

Provides Redis connection pooling and the Redis implementation of the
card store's key-value collaborator.

Usage:
    from studydeck.db.redis import RedisBackend, get_redis

    backend = RedisBackend()  # uses settings.REDIS_URL
    backend.set("studydeck:deck:python", "[]")
"""

import logging
from typing import Any, Optional

import redis
from redis.exceptions import ResponseError

from studydeck.config import settings, yaml_config
from studydeck.db.base import KeyValueBackend, record_size
from studydeck.errors import StorageCapacityExceeded

logger = logging.getLogger(__name__)


# Get Redis configuration from yaml config
redis_config: dict[str, Any] = yaml_config.get("redis", {})
MAX_CONNECTIONS: int = redis_config.get("max_connections", 10)
SOCKET_TIMEOUT: int = redis_config.get("socket_timeout", 5)


# Connection pool (lazily initialized)
_redis_pool: Optional[redis.ConnectionPool] = None


def get_redis_pool(url: Optional[str] = None) -> redis.ConnectionPool:
    """Get or create the Redis connection pool."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            max_connections=MAX_CONNECTIONS,
            socket_timeout=SOCKET_TIMEOUT,
        )
    return _redis_pool


def get_redis(url: Optional[str] = None) -> redis.Redis:
    """
    Get a Redis connection from the pool.

    Usage:
        r = get_redis()
        r.set("key", "value")
    """
    return redis.Redis(connection_pool=get_redis_pool(url))


def close_redis_pool() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        _redis_pool.disconnect()
        _redis_pool = None


def is_out_of_memory(error: ResponseError) -> bool:
    """True for the "OOM command not allowed" reply of a full server."""
    return str(error).startswith("OOM")


class RedisBackend(KeyValueBackend):
    """
    Key-value backend on a Redis server.

    A server running with ``maxmemory`` and a no-eviction policy answers
    writes with an OOM error once full; that reply becomes
    StorageCapacityExceeded.
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        url: Optional[str] = None,
    ):
        """
        Args:
            client: Redis client to use (default: one from the shared pool)
            url: Redis URL when no client is given (default: REDIS_URL)
        """
        self._client = client if client is not None else get_redis(url)

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(key, value)
        except ResponseError as e:
            if not is_out_of_memory(e):
                raise
            logger.error(f"Redis refused write to {key}: {e}")
            raise StorageCapacityExceeded(
                attempted_bytes=record_size(key, value),
                details={"backend": "redis", "reason": str(e)},
            ) from e

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(self._client.scan_iter(match=f"{prefix}*"))

    def close(self) -> None:
        self._client.close()
