"""
Used-code ledger.

Once a TOTP code is accepted it is stored under
``prefix|credential_id|code`` until the end of the last period in which
the same string could still verify. The store evicts it afterwards.
"""
import logging
import time
from typing import Optional

from ..utils.secrets import mask_secret
from ..utils.timestamps import Clock, TimestampLike, to_epoch

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "2fa.code"


class ReplayGuard:
    """
    Per-credential view over a shared code store.

    The store must offer ``exists(key)`` and an atomic
    ``add(key, value, expires_at) -> bool`` (set-if-absent). Store errors
    propagate as StoreUnavailable.
    """

    def __init__(
        self,
        store,
        credential_id: str,
        prefix: str = DEFAULT_PREFIX,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.credential_id = str(credential_id)
        self.prefix = prefix
        self.clock = clock or time.time

    def cache_key(self, code: str) -> str:
        """Key under which a used code is stored."""
        return "|".join([self.prefix, self.credential_id, code])

    @staticmethod
    def expires_at(timestamp: int, window: int, period_seconds: int) -> int:
        """
        Start of the first period after the acceptance window.

        A code accepted at ``timestamp`` could be presented again until the
        period ``window`` steps later ends.
        """
        return (timestamp // period_seconds + window + 1) * period_seconds

    def has_used(self, code: str) -> bool:
        """Whether the code was already accepted for this credential."""
        return bool(self.store.exists(self.cache_key(code)))

    def mark_used(
        self,
        code: str,
        timestamp: TimestampLike,
        window: int,
        period_seconds: int,
    ) -> bool:
        """
        Claim a code until the end of its acceptance window.

        Returns:
            True if this call stored the mark, False if it already existed.
        """
        ts = to_epoch(timestamp, self.clock)
        expires = self.expires_at(ts, window, period_seconds)
        claimed = bool(self.store.add(self.cache_key(code), "1", expires))
        if claimed:
            logger.debug(f"Marked TOTP code as used for credential {mask_secret(self.credential_id)} until {expires}")
        return claimed
