"""
Credential persistence.

Stores one row per principal in ``two_factor_authentications``. The
shared secret and the recovery codes are encrypted with Fernet before
they reach the database; safe devices are stored as plain JSON.

SECURITY NOTE: A database dump alone does not reveal secrets or recovery
codes. The encryption key lives in TWO_FACTOR_ENCRYPTION_KEY (or its
_FILE variant) and must be kept out of the database host.
"""
import os
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import create_engine, Column, String, Text, DateTime, Integer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool

from ..auth import secret_codec
from ..auth.credential import Credential
from ..auth.recovery_codes import RecoveryCodeSet
from ..auth.safe_devices import SafeDeviceRegistry
from ..config import TwoFactorConfig, get_config
from ..exceptions import InvalidSecretEncoding, StoreUnavailable
from ..utils.secrets import get_encryption_key, get_secret, mask_secret

logger = logging.getLogger(__name__)

Base = declarative_base()


# =============================================================================
# ENCRYPTION UTILITIES
# =============================================================================

class SecretEncryptor:
    """
    Handles encryption/decryption of stored secrets.

    Uses Fernet (AES-128-CBC + HMAC-SHA256) for symmetric encryption.
    Key is read from TWO_FACTOR_ENCRYPTION_KEY.
    """

    def __init__(self, key: Optional[str] = None):
        """
        Initialize encryptor with key from environment or parameter.

        Args:
            key: URL-safe base64-encoded 32-byte key. If None, reads from env.
        """
        if key is None:
            key = get_encryption_key()

        # Fernet expects a URL-safe base64-encoded 32-byte key
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """
        Raises:
            InvalidSecretEncoding: If the ciphertext was tampered with or the key is wrong.
        """
        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            logger.error("Decryption of stored two-factor data failed")
            raise InvalidSecretEncoding("Stored two-factor data could not be decrypted") from e


# =============================================================================
# DATABASE MODELS
# =============================================================================

class TwoFactorRecord(Base):
    """Row representation of a Credential."""
    __tablename__ = "two_factor_authentications"

    credential_id = Column(String(255), primary_key=True)

    # Encrypted fields
    shared_secret = Column(Text, nullable=False)
    recovery_codes = Column(Text, nullable=True)

    label = Column(String(255), nullable=False, default="")
    digits = Column(Integer, nullable=False, default=6)
    seconds = Column(Integer, nullable=False, default=30)
    window = Column("window", Integer, nullable=False, default=1, quote=True)
    algorithm = Column(String(16), nullable=False, default="sha1")
    safe_devices = Column(Text, nullable=True)

    enabled_at = Column(DateTime(timezone=True), nullable=True)
    recovery_codes_generated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # Some backends (SQLite) hand datetimes back without tzinfo.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# CREDENTIAL STORE
# =============================================================================

class CredentialDB:
    """
    Loads and saves Credential records.

    Example usage:
        db = CredentialDB()
        db.init_schema()

        db.save(credential)
        credential = db.get(user_id)
        db.delete(user_id)
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        engine=None,
        encryptor: Optional[SecretEncryptor] = None,
        config: Optional[TwoFactorConfig] = None,
    ):
        """
        Initialize database connection.

        Args:
            connection_string: Database URL. Uses environment variables if
                neither this nor ``engine`` is provided.
            engine: Pre-built SQLAlchemy engine.
            encryptor: Secret encryptor; built from env if omitted.
            config: Two-factor config (for the safe device cap).
        """
        if engine is None:
            if connection_string is None:
                connection_string = os.getenv("TWO_FACTOR_DATABASE_URL")
            if connection_string is None:
                host = os.getenv("POSTGRES_HOST", "localhost")
                port = os.getenv("POSTGRES_PORT", "5432")
                db = os.getenv("POSTGRES_DB", "twofactor")
                user = os.getenv("POSTGRES_USER", "twofactor")
                password = get_secret("POSTGRES_PASSWORD", "")
                connection_string = f"postgresql://{user}:{password}@{host}:{port}/{db}"

            engine = create_engine(
                connection_string,
                poolclass=QueuePool,
                pool_size=10,
                max_overflow=20,
                pool_timeout=30,
                pool_pre_ping=True,  # Test connections before use (detect stale)
                pool_recycle=300,    # Recycle connections every 5 minutes
            )

        self.engine = engine
        self.Session = sessionmaker(bind=self.engine)
        self.encryptor = encryptor or SecretEncryptor()
        self.config = config or get_config()

    @contextmanager
    def get_session(self):
        """
        Get a database session with automatic cleanup.

        Raises:
            StoreUnavailable: On any database error.
        """
        session = self.Session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"Credential store error: {e}")
            raise StoreUnavailable("Credential store operation failed") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_schema(self) -> None:
        """Create the credentials table if it does not exist."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreUnavailable("Could not create two-factor schema") from e
        logger.info("Two-factor schema initialized")

    # ==========================================
    # Row (de)serialization
    # ==========================================

    def _to_record(self, credential: Credential) -> TwoFactorRecord:
        recovery = None
        if credential.recovery_codes:
            recovery = self.encryptor.encrypt(json.dumps(credential.recovery_codes.to_list()))

        devices = None
        if len(credential.safe_devices):
            devices = json.dumps(credential.safe_devices.to_list())

        return TwoFactorRecord(
            credential_id=credential.credential_id,
            shared_secret=self.encryptor.encrypt(secret_codec.encode(credential.shared_secret)),
            recovery_codes=recovery,
            label=credential.label,
            digits=credential.digits,
            seconds=credential.period_seconds,
            window=credential.window,
            algorithm=credential.algorithm,
            safe_devices=devices,
            enabled_at=credential.enabled_at,
            recovery_codes_generated_at=credential.recovery_generated_at,
            created_at=credential.created_at or datetime.now(timezone.utc),
            updated_at=credential.updated_at or datetime.now(timezone.utc),
        )

    def _to_credential(self, record: TwoFactorRecord) -> Credential:
        secret = secret_codec.decode(self.encryptor.decrypt(record.shared_secret))

        recovery = RecoveryCodeSet()
        if record.recovery_codes:
            recovery = RecoveryCodeSet.from_list(json.loads(self.encryptor.decrypt(record.recovery_codes)))

        devices = SafeDeviceRegistry.from_list(
            json.loads(record.safe_devices) if record.safe_devices else None,
            max_devices=self.config.max_devices,
        )

        return Credential(
            credential_id=record.credential_id,
            shared_secret=secret,
            label=record.label,
            digits=record.digits,
            period_seconds=record.seconds,
            window=record.window,
            algorithm=record.algorithm,
            enabled_at=_aware(record.enabled_at),
            recovery_codes=recovery,
            recovery_generated_at=_aware(record.recovery_codes_generated_at),
            safe_devices=devices,
            created_at=_aware(record.created_at),
            updated_at=_aware(record.updated_at),
        )

    # ==========================================
    # Operations
    # ==========================================

    def get(self, credential_id: str) -> Optional[Credential]:
        """
        Load a credential.

        Returns:
            Credential, or None if the principal has no two-factor record.
        """
        with self.get_session() as session:
            record = session.get(TwoFactorRecord, str(credential_id))
            if record is None:
                return None
            return self._to_credential(record)

    def save(self, credential: Credential) -> None:
        """Insert or update a credential."""
        record = self._to_record(credential)
        with self.get_session() as session:
            session.merge(record)
        logger.debug(f"Saved two-factor credential {mask_secret(credential.credential_id)}")

    def delete(self, credential_id: str) -> bool:
        """
        Delete a credential.

        Returns:
            True if a row was removed.
        """
        with self.get_session() as session:
            record = session.get(TwoFactorRecord, str(credential_id))
            if record is None:
                return False
            session.delete(record)
        logger.info(f"Deleted two-factor credential {mask_secret(str(credential_id))}")
        return True


# Singleton instance
_credential_db_instance: Optional[CredentialDB] = None


def get_credential_db() -> CredentialDB:
    """
    Get singleton CredentialDB instance.

    Returns:
        CredentialDB instance.
    """
    global _credential_db_instance
    if _credential_db_instance is None:
        _credential_db_instance = CredentialDB()
    return _credential_db_instance
