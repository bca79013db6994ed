"""
Database layer for twofactor.

This package provides:
- Encrypted credential persistence (SQLAlchemy + Fernet)
"""
from .credential_db import CredentialDB, SecretEncryptor, TwoFactorRecord, get_credential_db

__all__ = ["CredentialDB", "SecretEncryptor", "TwoFactorRecord", "get_credential_db"]
