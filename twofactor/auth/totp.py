"""
TOTP code engine (RFC 6238 on top of RFC 4226 HOTP).

Codes are derived from the shared secret and the number of elapsed
periods. Verification accepts the current period plus ``window``
preceding periods, so a code shown by the authenticator stays usable
for ``window`` extra periods after it was generated. Accepted codes are
claimed in a ReplayGuard so each one works exactly once.
"""
import hashlib
import hmac
import logging
import struct
import time
from dataclasses import dataclass, field
from typing import Optional, Union

from pyotp.utils import strings_equal

from ..exceptions import ConfigurationError
from ..utils.timestamps import Clock, TimestampLike, to_epoch
from . import secret_codec
from .replay_guard import ReplayGuard

logger = logging.getLogger(__name__)

DEFAULT_DIGITS = 6
DEFAULT_PERIOD = 30
DEFAULT_WINDOW = 1
DEFAULT_ALGORITHM = "sha1"

DIGESTS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


def counter_to_bytes(counter: int) -> bytes:
    """8-byte big-endian counter, RFC 4226 section 5.2."""
    if counter < 0:
        raise ValueError("HOTP counter cannot be negative")
    return struct.pack(">Q", counter)


def dynamic_truncate(digest: bytes) -> int:
    """
    RFC 4226 dynamic truncation.

    The low nibble of the last byte picks a 4-byte window, whose top bit
    is cleared to give a 31-bit unsigned integer.
    """
    offset = digest[-1] & 0x0F
    return (
        ((digest[offset] & 0x7F) << 24)
        | ((digest[offset + 1] & 0xFF) << 16)
        | ((digest[offset + 2] & 0xFF) << 8)
        | (digest[offset + 3] & 0xFF)
    )


def hotp(key: bytes, counter: int, digits: int = DEFAULT_DIGITS, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """
    Generate an HOTP code.

    Args:
        key: Raw secret bytes.
        counter: Non-negative moving factor.
        digits: Output length.
        algorithm: "sha1", "sha256" or "sha512".

    Returns:
        Zero-padded numeric code.
    """
    try:
        digestmod = DIGESTS[algorithm]
    except KeyError:
        raise ConfigurationError(f"Unsupported algorithm '{algorithm}'") from None

    digest = hmac.new(key, counter_to_bytes(counter), digestmod).digest()
    code = dynamic_truncate(digest) % (10 ** digits)
    return str(code).zfill(digits)


@dataclass(frozen=True)
class TotpEngine:
    """
    Immutable view of a credential's TOTP parameters.

    Example usage:
        engine = TotpEngine.from_base32("KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3", guard=guard)

        code = engine.generate_code("2020-01-01T20:30:00Z")   # "716347"
        engine.verify_code(code, "2020-01-01T20:30:29Z")      # True
        engine.verify_code(code, "2020-01-01T20:30:29Z")      # False, already used

    Without a guard the engine still verifies codes, but cannot stop
    replays.
    """
    secret: bytes = field(repr=False)
    digits: int = DEFAULT_DIGITS
    period_seconds: int = DEFAULT_PERIOD
    algorithm: str = DEFAULT_ALGORITHM
    window: int = DEFAULT_WINDOW
    guard: Optional[ReplayGuard] = field(default=None, repr=False, compare=False)
    clock: Clock = field(default=time.time, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "algorithm", self.algorithm.lower())

        if not self.secret:
            raise ConfigurationError("Shared secret cannot be empty")
        if self.digits < 1:
            raise ConfigurationError("digits must be positive")
        if self.period_seconds < 1:
            raise ConfigurationError("period_seconds must be positive")
        if self.window < 0:
            raise ConfigurationError("window cannot be negative")
        if self.algorithm not in DIGESTS:
            raise ConfigurationError(f"Unsupported algorithm '{self.algorithm}'")

    @classmethod
    def from_base32(cls, secret: str, **kwargs) -> "TotpEngine":
        """Build an engine from a Base32 secret."""
        return cls(secret=secret_codec.decode(secret), **kwargs)

    def period_for(self, timestamp: TimestampLike = "now", offset: int = 0) -> int:
        """Number of elapsed periods at ``timestamp``, shifted by ``offset``."""
        return to_epoch(timestamp, self.clock) // self.period_seconds + offset

    def period_start(self, timestamp: TimestampLike = "now", offset: int = 0) -> int:
        """Unix time at which the (offset) period containing ``timestamp`` starts."""
        return self.period_for(timestamp, offset) * self.period_seconds

    def seconds_remaining(self, timestamp: TimestampLike = "now") -> int:
        """Seconds until the current code rolls over."""
        ts = to_epoch(timestamp, self.clock)
        return self.period_seconds - (ts % self.period_seconds)

    def generate_code(self, timestamp: TimestampLike = "now", period_offset: int = 0) -> str:
        """
        Generate the code for a timestamp, optionally shifted by whole periods.

        Args:
            timestamp: Epoch seconds, datetime, "now" or a parseable date.
            period_offset: Periods to add (negative for earlier codes).

        Returns:
            Zero-padded code of ``digits`` characters.
        """
        counter = self.period_for(timestamp, period_offset)
        return hotp(self.secret, counter, self.digits, self.algorithm)

    def verify_code(
        self,
        candidate: Union[str, int],
        timestamp: TimestampLike = "now",
        window: Optional[int] = None,
    ) -> bool:
        """
        Verify a code and claim it so it cannot be used again.

        Checks the current period and the ``window`` periods before it.

        Args:
            candidate: Code entered by the user.
            timestamp: Evaluation time.
            window: Extra periods to accept; defaults to the engine's window.

        Returns:
            True if the code matched and this call claimed it.

        Raises:
            StoreUnavailable: If the replay store cannot be reached.
        """
        candidate = str(candidate)

        # Checked before any HMAC work, so an accepted code never counts twice.
        if self.guard is not None and self.guard.has_used(candidate):
            logger.debug("Rejected TOTP code: already used")
            return False

        window = self.window if window is None else window
        if window < 0:
            raise ConfigurationError("window cannot be negative")

        ts = to_epoch(timestamp, self.clock)

        for i in range(window + 1):
            # No periods exist before the epoch.
            if self.period_for(ts, -i) < 0:
                break
            if strings_equal(self.generate_code(ts, -i), candidate):
                if self.guard is None:
                    return True
                # Covers the widest window any caller could verify with.
                claimed = self.guard.mark_used(
                    candidate, ts, max(window, self.window), self.period_seconds
                )
                if not claimed:
                    logger.debug("Rejected TOTP code: claimed by a concurrent request")
                return claimed

        logger.debug("Rejected TOTP code: no match in window")
        return False
