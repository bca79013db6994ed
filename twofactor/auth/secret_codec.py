"""
Shared secret encoding.

The secret is kept as raw bytes in memory and handed to authenticator
apps as RFC 4648 Base32 (uppercase, no padding).
"""
import base64
import binascii
import secrets

from ..exceptions import InvalidSecretEncoding

DEFAULT_SECRET_LENGTH = 20  # 160-bit, RFC 4226 recommendation


def encode(raw: bytes) -> str:
    """
    Encode raw secret bytes as unpadded uppercase Base32.

    Args:
        raw: Secret bytes.

    Returns:
        Base32 string (e.g. "KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3").
    """
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def decode(text: str) -> bytes:
    """
    Decode a Base32 secret back to raw bytes.

    Padding is optional and lowercase input is accepted.

    Raises:
        InvalidSecretEncoding: If the text holds characters outside the
            Base32 alphabet or has an impossible length.
    """
    if not isinstance(text, str):
        raise InvalidSecretEncoding("Base32 secret must be a string")

    value = text.strip().rstrip("=")
    if not value:
        raise InvalidSecretEncoding("Base32 secret is empty")

    padded = value + "=" * (-len(value) % 8)
    try:
        return base64.b32decode(padded, casefold=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidSecretEncoding("Invalid Base32 secret") from e


def generate(length_bytes: int = DEFAULT_SECRET_LENGTH) -> bytes:
    """Generate a new secret from the OS CSPRNG."""
    if length_bytes < 1:
        raise ValueError("Secret length must be positive")
    return secrets.token_bytes(length_bytes)


def generate_encoded(length_bytes: int = DEFAULT_SECRET_LENGTH) -> str:
    """Generate a new secret, returned Base32-encoded."""
    return encode(generate(length_bytes))
