"""
Error types raised by the two-factor core.

Verification failures are never exceptions: a wrong TOTP or recovery
code is a plain ``False``. Only broken inputs, broken configuration and
broken infrastructure raise.
"""


class TwoFactorError(Exception):
    """Base class for all two-factor errors."""


class InvalidSecretEncoding(TwoFactorError, ValueError):
    """The shared secret could not be decoded (bad Base32 or bad ciphertext)."""


# Name used by the codec contract.
DecodeError = InvalidSecretEncoding


class ConfigurationError(TwoFactorError, ValueError):
    """Required identity fields or TOTP parameters are missing or invalid."""


class StoreUnavailable(TwoFactorError):
    """
    The cache or persistence backend could not be reached.

    Raised instead of treating an outage as "code not used", so
    verification always fails closed.
    """
