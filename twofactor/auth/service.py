"""
Two-factor authentication flows.

Ties a Credential to the replay store, the persistence collaborator and
the event dispatcher:
- Enrollment (create / confirm / enable / disable)
- Code validation with recovery-code fallback
- Safe device management
- The login check, returned as a LoginResult instead of raised
"""
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ..cache import get_code_store
from ..config import TwoFactorConfig, get_config
from ..utils.secrets import mask_secret
from ..utils.timestamps import Clock, TimestampLike, from_epoch
from .credential import Credential
from .events import (
    EventDispatcher,
    RecoveryCodesDepleted,
    RecoveryCodesGenerated,
    TwoFactorDisabled,
    TwoFactorEnabled,
)
from .provisioning import build_label
from .recovery_codes import CodeGenerator, RecoveryCodeSet
from .replay_guard import ReplayGuard
from .safe_devices import generate_device_token
from .totp import TotpEngine

logger = logging.getLogger(__name__)


class LoginError(Enum):
    """Why a login attempt was refused at the two-factor step."""
    MISSING_CODE = "missing_code"
    INVALID_CODE = "invalid_code"


@dataclass
class LoginResult:
    """Outcome of the two-factor step of a login."""
    accepted: bool
    error: Optional[LoginError] = None
    bypassed_by_safe_device: bool = False
    device_token: Optional[str] = None


class TwoFactorService:
    """
    Two-factor operations over Credential records.

    Example usage:
        service = TwoFactorService(repository=get_credential_db())

        credential = service.create(user_id, "user@example.com")
        uri = credential.to_uri()          # show as QR code

        service.confirm(credential, code)  # enables and issues recovery codes

        result = service.check_login(credential, code=submitted)
        if not result.accepted:
            ...

    The repository is optional; without one, changes stay in memory and
    the caller persists them.
    """

    def __init__(
        self,
        config: Optional[TwoFactorConfig] = None,
        repository=None,
        store=None,
        events: Optional[EventDispatcher] = None,
        clock: Optional[Clock] = None,
        recovery_generator: Optional[CodeGenerator] = None,
        token_generator: Optional[Callable[[], str]] = None,
    ):
        self.config = config or get_config()
        self.repository = repository
        self.clock = clock or time.time
        self.store = store if store is not None else get_code_store(self.config, clock=self.clock)
        self.events = events or EventDispatcher()
        self.recovery_generator = recovery_generator
        self.token_generator = token_generator or generate_device_token

    def _now(self) -> datetime:
        return from_epoch(math.floor(self.clock()))

    def _save(self, credential: Credential) -> None:
        credential.updated_at = self._now()
        if credential.created_at is None:
            credential.created_at = credential.updated_at
        if self.repository is not None:
            self.repository.save(credential)

    def guard_for(self, credential: Credential) -> ReplayGuard:
        return ReplayGuard(
            self.store,
            credential.credential_id,
            prefix=self.config.cache_prefix,
            clock=self.clock,
        )

    def engine_for(self, credential: Credential) -> TotpEngine:
        """Engine for the credential, wired to the replay store."""
        return credential.engine(guard=self.guard_for(credential), clock=self.clock)

    # ==========================================
    # Enrollment
    # ==========================================

    def build_label(self, identifier: str) -> str:
        """
        Label for the authenticator app: "<issuer>:<identifier>".

        The issuer is the configured label, else the issuer, else the app name.

        Raises:
            ConfigurationError: If the issuer or identifier is empty.
        """
        issuer = self.config.label or self.config.issuer or self.config.app_name
        return build_label(issuer, identifier)

    def create(self, credential_id: str, identifier: str, existing: Optional[Credential] = None) -> Credential:
        """
        Start (or restart) enrollment with a fresh secret.

        An existing credential is flushed: new secret, not enabled, no
        recovery codes, no safe devices.

        Raises:
            ConfigurationError: If the label cannot be built.
        """
        label = self.build_label(identifier)

        if existing is None:
            credential = Credential.new(credential_id, self.config, label=label)
        else:
            credential = existing.flush(self.config)
            credential.label = label

        self._save(credential)
        logger.info(f"Created two-factor credential for {mask_secret(credential.credential_id)}")
        return credential

    def confirm(self, credential: Credential, code: str, at: TimestampLike = "now") -> bool:
        """
        Confirm enrollment with a TOTP code.

        Recovery codes are not accepted here. An already enabled
        credential is confirmed without checking anything.
        """
        if credential.is_enabled:
            return True

        if self.engine_for(credential).verify_code(code, at):
            self.enable(credential)
            return True

        return False

    def enable(self, credential: Credential) -> None:
        credential.enabled_at = self._now()

        if self.config.recovery_enabled:
            self.generate_recovery_codes(credential)

        self._save(credential)
        self.events.dispatch(TwoFactorEnabled(credential.credential_id))

    def disable(self, credential: Credential) -> None:
        """Flush all two-factor data and delete the record."""
        credential.flush(self.config)
        if self.repository is not None:
            self.repository.delete(credential.credential_id)
        self.events.dispatch(TwoFactorDisabled(credential.credential_id))

    # ==========================================
    # Codes
    # ==========================================

    def to_qr(self, credential: Credential) -> str:
        """Provisioning QR code as SVG, sized by ``qr_size`` and ``qr_margin``."""
        return credential.to_qr(size=self.config.qr_size, margin=self.config.qr_margin)

    def make_code(self, credential: Credential, at: TimestampLike = "now", offset: int = 0) -> str:
        return credential.engine(clock=self.clock).generate_code(at, offset)

    def validate_code(
        self,
        credential: Optional[Credential],
        code: Optional[str],
        use_recovery_codes: bool = True,
        at: TimestampLike = "now",
    ) -> bool:
        """
        Validate a TOTP code, falling back to a recovery code.

        Always False for a missing code or a credential that is not enabled.

        Raises:
            StoreUnavailable: If the replay store cannot be reached.
        """
        if credential is None or code is None or credential.is_disabled:
            return False

        if self.engine_for(credential).verify_code(code, at):
            return True

        return use_recovery_codes and self.use_recovery_code(credential, code)

    def generate_recovery_codes(self, credential: Credential) -> RecoveryCodeSet:
        """Replace the credential's recovery codes with a new batch."""
        credential.recovery_codes = RecoveryCodeSet.generate(
            self.config.recovery_codes,
            self.config.recovery_length,
            self.recovery_generator,
        )
        credential.recovery_generated_at = self._now()
        self._save(credential)

        logger.info(f"Generated {len(credential.recovery_codes)} recovery codes for {mask_secret(credential.credential_id)}")
        self.events.dispatch(RecoveryCodesGenerated(credential.credential_id))
        return credential.recovery_codes

    def use_recovery_code(self, credential: Credential, code: str) -> bool:
        """
        Consume a recovery code.

        Dispatches RecoveryCodesDepleted when this was the last unused code.
        """
        if not credential.recovery_codes.consume(code, now=self._now()):
            return False

        self._save(credential)

        if not credential.recovery_codes.has_unused():
            self.events.dispatch(RecoveryCodesDepleted(credential.credential_id))

        return True

    # ==========================================
    # Safe Devices
    # ==========================================

    def add_safe_device(self, credential: Credential, origin_ip: Optional[str] = None, token: Optional[str] = None) -> str:
        """Remember a device and return its token."""
        token = token or self.token_generator()
        credential.safe_devices.add(token, origin_ip, math.floor(self.clock()))
        self._save(credential)
        logger.info(f"Added safe device for {mask_secret(credential.credential_id)} ({len(credential.safe_devices)} stored)")
        return token

    def flush_safe_devices(self, credential: Credential) -> None:
        credential.safe_devices.flush()
        self._save(credential)

    def is_safe_device(self, credential: Credential, token: Optional[str]) -> bool:
        return credential.safe_devices.is_valid(
            token, math.floor(self.clock()), self.config.expiration_days
        )

    # ==========================================
    # Login
    # ==========================================

    def check_login(
        self,
        credential: Optional[Credential],
        code: Optional[str] = None,
        device_token: Optional[str] = None,
        remember_device: bool = False,
        origin_ip: Optional[str] = None,
    ) -> LoginResult:
        """
        Run the two-factor step of a login.

        Principals without enabled two-factor pass. A valid safe device
        token skips the code. Otherwise the code must be a valid TOTP or
        recovery code; on success the device may be remembered.
        """
        if credential is None or credential.is_disabled:
            return LoginResult(accepted=True)

        if self.config.safe_devices_enabled and self.is_safe_device(credential, device_token):
            return LoginResult(accepted=True, bypassed_by_safe_device=True)

        if not isinstance(code, str) or not code.isalnum():
            return LoginResult(accepted=False, error=LoginError.MISSING_CODE)

        if self.validate_code(credential, code):
            token = None
            if self.config.safe_devices_enabled and remember_device:
                token = self.add_safe_device(credential, origin_ip)
            return LoginResult(accepted=True, device_token=token)

        logger.debug(f"Two-factor code rejected for {mask_secret(credential.credential_id)}")
        return LoginResult(accepted=False, error=LoginError.INVALID_CODE)
