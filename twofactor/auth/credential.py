"""
Two-factor credential record.

A Credential holds one principal's TOTP parameters, recovery codes and
safe devices. Behavior lives in the components it composes; the record
itself only knows how to flush itself and how to export its secret.
"""
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..config import TwoFactorConfig
from ..utils.timestamps import Clock
from . import provisioning, secret_codec
from .recovery_codes import RecoveryCodeSet
from .replay_guard import ReplayGuard
from .safe_devices import SafeDeviceRegistry
from .totp import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD, DEFAULT_WINDOW, TotpEngine


@dataclass
class Credential:
    """
    Persisted two-factor state for one principal.

    The shared secret is raw bytes and is excluded from ``repr`` so it
    never ends up in logs or tracebacks.
    """
    credential_id: str
    shared_secret: bytes = field(repr=False)
    label: str = ""
    digits: int = DEFAULT_DIGITS
    period_seconds: int = DEFAULT_PERIOD
    window: int = DEFAULT_WINDOW
    algorithm: str = DEFAULT_ALGORITHM
    enabled_at: Optional[datetime] = None
    recovery_codes: RecoveryCodeSet = field(default_factory=RecoveryCodeSet, repr=False)
    recovery_generated_at: Optional[datetime] = None
    safe_devices: SafeDeviceRegistry = field(default_factory=SafeDeviceRegistry, repr=False)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.algorithm = self.algorithm.lower()

    @classmethod
    def new(cls, credential_id: str, config: TwoFactorConfig, label: str = "") -> "Credential":
        """Fresh, not yet enabled credential with a random secret."""
        credential = cls(
            credential_id=str(credential_id),
            shared_secret=secret_codec.generate(config.secret_length),
            label=label,
        )
        credential.flush(config)
        return credential

    @property
    def is_enabled(self) -> bool:
        return self.enabled_at is not None

    @property
    def is_disabled(self) -> bool:
        return not self.is_enabled

    def flush(self, config: TwoFactorConfig) -> "Credential":
        """
        Cycle the secret and reset all authentication data.

        TOTP parameters are reloaded from config; the label is kept.
        """
        self.shared_secret = secret_codec.generate(config.secret_length)
        self.digits = config.digits
        self.period_seconds = config.seconds
        self.window = config.window
        self.algorithm = config.algorithm

        self.enabled_at = None
        self.recovery_codes = RecoveryCodeSet(generator=self.recovery_codes.generator)
        self.recovery_generated_at = None
        self.safe_devices = SafeDeviceRegistry(max_devices=config.max_devices)
        return self

    def engine(self, guard: Optional[ReplayGuard] = None, clock: Optional[Clock] = None) -> TotpEngine:
        """TOTP engine bound to this credential's parameters."""
        return TotpEngine(
            secret=self.shared_secret,
            digits=self.digits,
            period_seconds=self.period_seconds,
            algorithm=self.algorithm,
            window=self.window,
            guard=guard,
            clock=clock or time.time,
        )

    # ==========================================
    # Secret export
    # ==========================================

    def to_string(self) -> str:
        """Base32 form of the shared secret."""
        return secret_codec.encode(self.shared_secret)

    def to_grouped_string(self) -> str:
        """Base32 secret in groups of four, for manual entry."""
        return provisioning.grouped_secret(self.to_string())

    def to_uri(self) -> str:
        """otpauth:// URI for authenticator apps."""
        return provisioning.get_totp_provisioning_uri(
            self.label, self.to_string(), self.algorithm, self.digits
        )

    def to_qr(self, size: int = 400, margin: int = 4) -> str:
        """Provisioning URI as an SVG QR code."""
        return provisioning.generate_qr_svg(self.to_uri(), size=size, margin=margin)
