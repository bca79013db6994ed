"""
Two-factor authentication for twofactor.

This package provides:
- TOTP code generation and verification (RFC 6238 / RFC 4226)
- Used-code replay protection
- Recovery codes
- Safe devices
- Enrollment and login flows
"""
from .credential import Credential
from .events import (
    EventDispatcher,
    RecoveryCodesDepleted,
    RecoveryCodesGenerated,
    TwoFactorDisabled,
    TwoFactorEnabled,
)
from .provisioning import (
    build_label,
    get_totp_provisioning_uri,
    generate_qr_svg,
    generate_qr_code_base64,
)
from .recovery_codes import RecoveryCode, RecoveryCodeSet
from .replay_guard import ReplayGuard
from .safe_devices import SafeDevice, SafeDeviceRegistry, generate_device_token
from .service import LoginError, LoginResult, TwoFactorService
from .totp import TotpEngine, hotp

__all__ = [
    "Credential",
    "EventDispatcher",
    "RecoveryCodesDepleted",
    "RecoveryCodesGenerated",
    "TwoFactorDisabled",
    "TwoFactorEnabled",
    "build_label",
    "get_totp_provisioning_uri",
    "generate_qr_svg",
    "generate_qr_code_base64",
    "RecoveryCode",
    "RecoveryCodeSet",
    "ReplayGuard",
    "SafeDevice",
    "SafeDeviceRegistry",
    "generate_device_token",
    "LoginError",
    "LoginResult",
    "TwoFactorService",
    "TotpEngine",
    "hotp",
]
