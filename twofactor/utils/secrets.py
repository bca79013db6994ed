"""
Secret lookup for twofactor.

The Fernet key, the Redis password and the database password can be
handed in directly through the environment or as files (Docker secrets):

    TWO_FACTOR_ENCRYPTION_KEY=...            # direct value
    TWO_FACTOR_ENCRYPTION_KEY_FILE=/path     # file holding the value
    /run/secrets/two_factor_encryption_key   # Docker default location
"""
import os
import logging
from typing import Optional
from functools import lru_cache

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DOCKER_SECRETS_DIR = "/run/secrets"


def _read_secret_file(path: str) -> Optional[str]:
    if not os.path.isfile(path):
        return None
    try:
        with open(path, "r") as f:
            return f.read().strip()
    except OSError as e:
        logger.warning(f"Could not read secret file {path}: {e}")
        return None


@lru_cache(maxsize=32)
def get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Look up a secret, first hit wins: ``{name}_FILE``, ``{name}``, then
    ``/run/secrets/{name.lower()}``.

    Results are cached; ``reset_config()`` clears the cache.
    """
    file_path = os.environ.get(f"{name}_FILE")
    if file_path:
        value = _read_secret_file(file_path)
        if value is not None:
            return value

    value = os.environ.get(name)
    if value:
        return value

    value = _read_secret_file(os.path.join(DOCKER_SECRETS_DIR, name.lower()))
    if value is not None:
        return value

    return default


def get_required_secret(name: str) -> str:
    """
    Raises:
        ConfigurationError: If the secret is set nowhere.
    """
    value = get_secret(name)
    if value is None:
        raise ConfigurationError(f"{name} is not set (use {name} or {name}_FILE)")
    return value


def get_encryption_key() -> str:
    """Fernet key for shared secrets and recovery codes at rest."""
    return get_required_secret("TWO_FACTOR_ENCRYPTION_KEY")


def get_redis_password() -> Optional[str]:
    return get_secret("REDIS_PASSWORD") or None


def mask_secret(value: str, visible_chars: int = 4) -> str:
    """
    Shorten an identifier for log lines: "abcd...wxyz".

    Values too short to mask partially become "***".
    """
    if not value or len(value) <= visible_chars * 2:
        return "***"
    return f"{value[:visible_chars]}...{value[-visible_chars:]}"
