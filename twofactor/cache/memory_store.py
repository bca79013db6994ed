"""
In-process code store.

Suitable for a single worker and for tests. Entries expire lazily on
access, the same way the rate limiter prunes its in-memory fallback.
"""
import logging
import threading
import time
from typing import Dict, Optional, Tuple

from ..utils.timestamps import Clock

logger = logging.getLogger(__name__)


class MemoryCodeStore:
    """
    Dict-backed store with per-key expiry.

    ``add`` checks and sets under one lock, so two threads racing on the
    same key cannot both succeed.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or time.time
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[str, float]] = {}

    def _alive(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry[1] <= self.clock():
            del self._entries[key]
            return False
        return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._alive(key)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            if not self._alive(key):
                return None
            return self._entries[key][0]

    def set(self, key: str, value: str, expires_at: float) -> None:
        with self._lock:
            self._entries[key] = (value, expires_at)

    def add(self, key: str, value: str, expires_at: float) -> bool:
        """Set the key only if it is absent or expired."""
        with self._lock:
            if self._alive(key):
                return False
            self._entries[key] = (value, expires_at)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def flush(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            for key in list(self._entries):
                self._alive(key)
            return len(self._entries)
