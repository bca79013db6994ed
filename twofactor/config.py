"""
Configuration for twofactor.

All settings come from environment variables, with defaults that follow
RFC 4226 / RFC 6238 recommendations (160-bit secret, 6 digits, 30 s).

Usage:
    from twofactor.config import get_config

    config = get_config()
    config.digits  # 6
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigurationError
from .utils.secrets import get_secret

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("sha1", "sha256", "sha512")
SUPPORTED_CACHE_STORES = ("memory", "redis")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TwoFactorConfig:
    """
    Two-factor settings.

    TOTP values (digits, seconds, window, algorithm) are copied onto each
    credential when it is created or flushed, so changing them only
    affects new enrollments.
    """
    # Shared secret length in bytes (160-bit as recommended by RFC 4226)
    secret_length: int = 20

    # Label / issuer shown by authenticator apps
    issuer: str = ""
    app_name: str = ""
    label: Optional[str] = None

    # TOTP
    digits: int = 6
    seconds: int = 30
    window: int = 1
    algorithm: str = "sha1"

    # Recovery codes
    recovery_enabled: bool = True
    recovery_codes: int = 10
    recovery_length: int = 8

    # Safe devices
    safe_devices_enabled: bool = False
    max_devices: int = 3
    expiration_days: int = 14

    # Used-code cache
    cache_store: str = "memory"
    cache_prefix: str = "2fa.code"

    # QR code rendering
    qr_size: int = 400
    qr_margin: int = 4

    def __post_init__(self):
        self.algorithm = self.algorithm.lower()
        self.validate()

    def validate(self) -> None:
        """
        Check every value, raising on the first invalid one.

        Raises:
            ConfigurationError: If a setting is out of range.
        """
        if self.secret_length < 1:
            raise ConfigurationError("secret_length must be positive")
        if self.digits < 1:
            raise ConfigurationError("digits must be positive")
        if self.seconds < 1:
            raise ConfigurationError("seconds must be positive")
        if self.window < 0:
            raise ConfigurationError("window cannot be negative")
        if self.algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(
                f"Unsupported algorithm '{self.algorithm}'. "
                f"Use one of: {', '.join(SUPPORTED_ALGORITHMS)}"
            )
        if self.recovery_codes < 0 or self.recovery_length < 1:
            raise ConfigurationError("recovery codes amount and length must be positive")
        if self.max_devices < 1:
            raise ConfigurationError("max_devices must be positive")
        if self.expiration_days < 0:
            raise ConfigurationError("expiration_days cannot be negative")
        if self.cache_store not in SUPPORTED_CACHE_STORES:
            raise ConfigurationError(
                f"Unsupported cache store '{self.cache_store}'. "
                f"Use one of: {', '.join(SUPPORTED_CACHE_STORES)}"
            )

    @classmethod
    def from_env(cls) -> "TwoFactorConfig":
        """Build configuration from environment variables."""
        return cls(
            secret_length=_env_int("TWO_FACTOR_SECRET_LENGTH", 20),
            issuer=get_secret("OTP_TOTP_ISSUER", "") or "",
            app_name=os.getenv("APP_NAME", ""),
            label=os.getenv("TWO_FACTOR_LABEL") or None,
            digits=_env_int("TWO_FACTOR_TOTP_DIGITS", 6),
            seconds=_env_int("TWO_FACTOR_TOTP_SECONDS", 30),
            window=_env_int("TWO_FACTOR_TOTP_WINDOW", 1),
            algorithm=os.getenv("TWO_FACTOR_TOTP_ALGORITHM", "sha1"),
            recovery_enabled=_env_bool("TWO_FACTOR_RECOVERY_ENABLED", True),
            recovery_codes=_env_int("TWO_FACTOR_RECOVERY_CODES", 10),
            recovery_length=_env_int("TWO_FACTOR_RECOVERY_LENGTH", 8),
            safe_devices_enabled=_env_bool("TWO_FACTOR_SAFE_DEVICES_ENABLED", False),
            max_devices=_env_int("TWO_FACTOR_SAFE_DEVICES_MAX_DEVICES", 3),
            expiration_days=_env_int("TWO_FACTOR_SAFE_DEVICES_EXPIRATION_DAYS", 14),
            cache_store=os.getenv("TWO_FACTOR_CACHE_STORE", "memory").lower(),
            cache_prefix=os.getenv("TWO_FACTOR_CACHE_PREFIX", "2fa.code"),
            qr_size=_env_int("TWO_FACTOR_QR_SIZE", 400),
            qr_margin=_env_int("TWO_FACTOR_QR_MARGIN", 4),
        )


# Singleton instance
_config_instance: Optional[TwoFactorConfig] = None


def get_config() -> TwoFactorConfig:
    """
    Get singleton configuration, loaded from the environment on first use.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = TwoFactorConfig.from_env()
        logger.debug(
            f"Loaded two-factor config: digits={_config_instance.digits}, "
            f"seconds={_config_instance.seconds}, window={_config_instance.window}, "
            f"algorithm={_config_instance.algorithm}, cache={_config_instance.cache_store}"
        )
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration and secrets (used by tests)."""
    global _config_instance
    _config_instance = None
    get_secret.cache_clear()
