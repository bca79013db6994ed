"""
Tests for credential persistence.

Covers:
- Fernet encryption of secrets and recovery codes
- Save / load / delete against SQLite
- Upserts
- Database errors surfacing as StoreUnavailable
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from twofactor.auth.recovery_codes import RecoveryCodeSet
from twofactor.database import credential_db
from twofactor.database.credential_db import CredentialDB, SecretEncryptor
from twofactor.exceptions import InvalidSecretEncoding, StoreUnavailable


# ============================================
# Test Fixtures
# ============================================

@pytest.fixture
def encryptor():
    return SecretEncryptor(SecretEncryptor.generate_key())


@pytest.fixture
def db(sqlite_engine, encryptor, config):
    """Credential store on an in-memory SQLite database."""
    store = CredentialDB(engine=sqlite_engine, encryptor=encryptor, config=config)
    store.init_schema()
    return store


@pytest.fixture
def populated(credential):
    """Enabled credential with recovery codes and a safe device."""
    credential.enabled_at = datetime(2020, 1, 1, 20, 30, tzinfo=timezone.utc)
    credential.recovery_codes = RecoveryCodeSet.generate(3, 8)
    credential.recovery_codes.consume(
        credential.recovery_codes.unused()[0],
        now=datetime(2020, 1, 2, tzinfo=timezone.utc),
    )
    credential.recovery_generated_at = datetime(2020, 1, 1, 20, 30, tzinfo=timezone.utc)
    credential.safe_devices.add("device-token", "10.0.0.1", 1577910600)
    return credential


# ============================================
# Encryption Tests
# ============================================

class TestSecretEncryptor:
    """Test Fernet wrapping."""

    def test_round_trip(self, encryptor):
        token = encryptor.encrypt("KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3")
        assert token != "KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3"
        assert encryptor.decrypt(token) == "KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3"

    def test_wrong_key(self, encryptor):
        token = encryptor.encrypt("secret")
        other = SecretEncryptor(SecretEncryptor.generate_key())
        with pytest.raises(InvalidSecretEncoding):
            other.decrypt(token)

    def test_key_from_environment(self, monkeypatch):
        key = SecretEncryptor.generate_key()
        monkeypatch.setattr(credential_db, "get_encryption_key", lambda: key)
        encryptor = SecretEncryptor()
        assert SecretEncryptor(key).decrypt(encryptor.encrypt("x")) == "x"


# ============================================
# Persistence Tests
# ============================================

class TestCredentialDB:
    """Test save / get / delete."""

    def test_get_missing(self, db):
        assert db.get("nobody") is None

    def test_round_trip(self, db, populated):
        db.save(populated)
        loaded = db.get("user-1")

        assert loaded.shared_secret == populated.shared_secret
        assert loaded.label == "quz:test@foo.com"
        assert loaded.digits == 6
        assert loaded.period_seconds == 30
        assert loaded.window == 1
        assert loaded.algorithm == "sha1"
        assert loaded.enabled_at == populated.enabled_at
        assert loaded.recovery_generated_at == populated.recovery_generated_at
        assert loaded.recovery_codes.to_list() == populated.recovery_codes.to_list()
        assert loaded.safe_devices.to_list() == populated.safe_devices.to_list()
        assert loaded.safe_devices.max_devices == 3

    def test_loaded_credential_generates_same_codes(self, db, populated):
        db.save(populated)
        assert db.get("user-1").engine().generate_code("2020-01-01T20:30:00Z") == "716347"

    def test_secrets_are_encrypted_at_rest(self, db, populated, sqlite_engine):
        db.save(populated)
        with sqlite_engine.connect() as conn:
            row = conn.execute(
                text("SELECT shared_secret, recovery_codes FROM two_factor_authentications")
            ).one()

        assert "KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3" not in row[0]
        for code in populated.recovery_codes.unused():
            assert code not in row[1]

    def test_save_updates_existing(self, db, populated):
        db.save(populated)
        populated.label = "quz:renamed@foo.com"
        populated.enabled_at = None
        db.save(populated)

        loaded = db.get("user-1")
        assert loaded.label == "quz:renamed@foo.com"
        assert loaded.is_disabled

    def test_empty_collections(self, db, credential):
        db.save(credential)
        loaded = db.get("user-1")
        assert len(loaded.recovery_codes) == 0
        assert len(loaded.safe_devices) == 0

    def test_delete(self, db, populated):
        db.save(populated)
        assert db.delete("user-1") is True
        assert db.get("user-1") is None
        assert db.delete("user-1") is False

    def test_database_error_raises_store_unavailable(self, encryptor, config):
        session = MagicMock()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        store = CredentialDB(engine=MagicMock(), encryptor=encryptor, config=config)
        store.Session = MagicMock(return_value=session)

        with pytest.raises(StoreUnavailable):
            store.get("user-1")
        session.rollback.assert_called_once()
        session.close.assert_called_once()
