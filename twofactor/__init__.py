"""
twofactor - TOTP two-factor authentication core.

Time-based one-time passwords with single-use enforcement, recovery
codes and safe devices.
"""
from .auth import Credential, TotpEngine, TwoFactorService
from .config import TwoFactorConfig, get_config
from .exceptions import (
    ConfigurationError,
    DecodeError,
    InvalidSecretEncoding,
    StoreUnavailable,
    TwoFactorError,
)

__version__ = "1.0.0"

__all__ = [
    "Credential",
    "TotpEngine",
    "TwoFactorService",
    "TwoFactorConfig",
    "get_config",
    "ConfigurationError",
    "DecodeError",
    "InvalidSecretEncoding",
    "StoreUnavailable",
    "TwoFactorError",
]
