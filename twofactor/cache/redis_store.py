"""
Redis-backed code store.

Used codes are written with ``SET key value EX ttl NX``, so the
existence check and the write happen in one round trip. Redis errors
are raised as StoreUnavailable. There is no in-memory fallback, because
silently forgetting used codes would allow replays.
"""
import math
import os
import time
import logging
from typing import Optional

import redis

from ..exceptions import StoreUnavailable
from ..utils.secrets import get_redis_password
from ..utils.timestamps import Clock

logger = logging.getLogger(__name__)


# ============================================
# Redis Client
# ============================================

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """
    Get Redis client singleton.

    Raises:
        StoreUnavailable: If Redis cannot be reached.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", "6379"))
    password = get_redis_password()
    db = int(os.getenv("REDIS_DB", "0"))

    client = redis.Redis(
        host=host,
        port=port,
        password=password,
        db=db,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    try:
        # Test connection
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}")
        raise StoreUnavailable(f"Redis unavailable at {host}:{port}") from e

    logger.info(f"Redis connected: {host}:{port}")
    _redis_client = client
    return _redis_client


# ============================================
# Code Store
# ============================================

class RedisCodeStore:
    """
    Code store shared across workers.

    Expiry times are absolute; they are turned into a TTL against the
    store's clock, with a one second floor so a mark is never dropped on
    write.
    """

    def __init__(self, redis_client: redis.Redis, clock: Optional[Clock] = None):
        self.redis = redis_client
        self.clock = clock or time.time

    def _ttl(self, expires_at: float) -> int:
        return max(1, math.ceil(expires_at - self.clock()))

    def exists(self, key: str) -> bool:
        try:
            return bool(self.redis.exists(key))
        except redis.RedisError as e:
            logger.warning(f"Redis error checking used code: {e}")
            raise StoreUnavailable("Could not check used codes") from e

    def set(self, key: str, value: str, expires_at: float) -> None:
        try:
            self.redis.set(key, value, ex=self._ttl(expires_at))
        except redis.RedisError as e:
            logger.warning(f"Redis error storing used code: {e}")
            raise StoreUnavailable("Could not store used code") from e

    def add(self, key: str, value: str, expires_at: float) -> bool:
        """Atomically set the key only if it does not exist yet."""
        try:
            return bool(self.redis.set(key, value, ex=self._ttl(expires_at), nx=True))
        except redis.RedisError as e:
            logger.warning(f"Redis error claiming used code: {e}")
            raise StoreUnavailable("Could not claim used code") from e

    def delete(self, key: str) -> None:
        try:
            self.redis.delete(key)
        except redis.RedisError as e:
            logger.warning(f"Redis error deleting used code: {e}")
            raise StoreUnavailable("Could not delete used code") from e
