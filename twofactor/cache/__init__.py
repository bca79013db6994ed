"""
Backing stores for the used-code ledger.

This package provides:
- In-memory store (single process, tests)
- Redis store (shared across workers)
"""
from typing import Optional

from ..config import TwoFactorConfig
from ..utils.timestamps import Clock
from .memory_store import MemoryCodeStore
from .redis_store import RedisCodeStore, get_redis_client


def get_code_store(config: TwoFactorConfig, clock: Optional[Clock] = None):
    """Build the store selected by ``config.cache_store``."""
    if config.cache_store == "redis":
        return RedisCodeStore(get_redis_client(), clock=clock)
    return MemoryCodeStore(clock=clock)


__all__ = ["MemoryCodeStore", "RedisCodeStore", "get_redis_client", "get_code_store"]
