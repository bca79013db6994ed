"""
Pytest configuration and shared fixtures for twofactor tests.

This module provides common test fixtures for:
- A frozen, movable clock
- In-memory and mock Redis code stores
- In-memory SQLite credential database
- A fixed shared secret with known codes
"""
import pytest
from pathlib import Path

# Add repository root to Python path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from twofactor.auth import secret_codec
from twofactor.auth.credential import Credential
from twofactor.cache import MemoryCodeStore
from twofactor.config import TwoFactorConfig, reset_config
from twofactor.utils.timestamps import to_epoch


FIXED_SECRET = "KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3"

# 2020-01-01T20:30:00Z, start of a 30 second period
FIXED_EPOCH = to_epoch("2020-01-01T20:30:00Z")


# ============================================
# Clock Fixtures
# ============================================

class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def set(self, value) -> None:
        self.now = to_epoch(value)

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Clock frozen at 2020-01-01T20:30:00Z."""
    return FrozenClock(FIXED_EPOCH)


# ============================================
# Store Fixtures
# ============================================

@pytest.fixture
def memory_store(clock):
    """In-memory code store sharing the frozen clock."""
    return MemoryCodeStore(clock=clock)


@pytest.fixture
def mock_redis_client():
    """
    Mock Redis client for testing the used-code store.
    Implements get/set (with ex and nx)/delete/exists with an in-memory dict.
    """
    class MockRedisClient:
        def __init__(self):
            self.store = {}
            self.expiry = {}

        def get(self, key):
            return self.store.get(key)

        def set(self, key, value, ex=None, nx=False):
            if nx and key in self.store:
                return None
            self.store[key] = value
            if ex:
                self.expiry[key] = ex
            return True

        def delete(self, key):
            if key in self.store:
                del self.store[key]
            if key in self.expiry:
                del self.expiry[key]
            return 1

        def exists(self, key):
            return 1 if key in self.store else 0

        def ping(self):
            return True

    return MockRedisClient()


# ============================================
# Database Fixtures
# ============================================

@pytest.fixture
def sqlite_engine():
    """
    In-memory SQLite engine shared across sessions.
    StaticPool keeps the single connection alive for the whole test.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


# ============================================
# Credential Fixtures
# ============================================

@pytest.fixture
def fixed_secret():
    """Base32 secret with published test vectors."""
    return FIXED_SECRET


@pytest.fixture
def config():
    """Default configuration with an issuer and safe devices on."""
    return TwoFactorConfig(issuer="quz", safe_devices_enabled=True)


@pytest.fixture
def credential(config):
    """Not yet enabled credential holding the fixed secret."""
    credential = Credential.new("user-1", config, label="quz:test@foo.com")
    credential.shared_secret = secret_codec.decode(FIXED_SECRET)
    return credential


@pytest.fixture(autouse=True)
def clean_config():
    """Drop the config singleton between tests."""
    reset_config()
    yield
    reset_config()
