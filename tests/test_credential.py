"""
Tests for the credential record.
"""
from datetime import datetime, timezone

from twofactor.auth.credential import Credential
from twofactor.auth.recovery_codes import RecoveryCodeSet
from twofactor.config import TwoFactorConfig


class TestCredential:
    """Test creation, flushing and export."""

    def test_new_credential(self):
        config = TwoFactorConfig(secret_length=32, digits=8, seconds=60, window=2, algorithm="SHA512")
        credential = Credential.new("user-1", config, label="quz:test@foo.com")

        assert len(credential.shared_secret) == 32
        assert credential.digits == 8
        assert credential.period_seconds == 60
        assert credential.window == 2
        assert credential.algorithm == "sha512"
        assert credential.is_disabled
        assert len(credential.recovery_codes) == 0
        assert credential.safe_devices.max_devices == config.max_devices

    def test_flush_resets_everything_but_label(self, credential, config):
        old_secret = credential.shared_secret
        credential.enabled_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
        credential.recovery_codes = RecoveryCodeSet.generate(3, 8)
        credential.recovery_generated_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
        credential.safe_devices.add("token", None, 1577910600)

        credential.flush(config)

        assert credential.shared_secret != old_secret
        assert credential.enabled_at is None
        assert len(credential.recovery_codes) == 0
        assert credential.recovery_generated_at is None
        assert len(credential.safe_devices) == 0
        assert credential.label == "quz:test@foo.com"

    def test_flush_keeps_recovery_generator(self, credential, config):
        generator = lambda length, index, amount: "X" * length  # noqa: E731
        credential.recovery_codes = RecoveryCodeSet(generator=generator)
        credential.flush(config)
        assert credential.recovery_codes.generator is generator

    def test_repr_hides_secrets(self, credential, fixed_secret):
        text = repr(credential)
        assert fixed_secret not in text
        assert "shared_secret" not in text

    def test_engine_uses_credential_parameters(self, credential):
        engine = credential.engine()
        assert engine.generate_code("2020-01-01T20:30:00Z") == "716347"
        assert engine.window == credential.window
        assert engine.guard is None

    def test_to_string(self, credential, fixed_secret):
        assert credential.to_string() == fixed_secret

    def test_to_grouped_string(self, credential):
        assert credential.to_grouped_string() == "KS72 XBTN 5PEB GX2I WBMV W44L XHPA Q7L3"

    def test_to_uri(self, credential):
        assert credential.to_uri() == (
            "otpauth://totp/quz%3Atest%40foo.com"
            "?issuer=quz&label=quz%3Atest%40foo.com"
            "&secret=KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3&algorithm=SHA1&digits=6"
        )

    def test_to_qr(self, credential):
        assert "<svg" in credential.to_qr(size=200, margin=2)
