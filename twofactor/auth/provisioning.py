"""
Provisioning helpers: labels, otpauth:// URIs and QR codes.

These only serialize an existing secret for authenticator apps. QR
images are drawn by the ``qrcode`` library.
"""
import base64
import io
import logging
from urllib.parse import quote, urlencode

import qrcode
import qrcode.image.svg

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def build_label(issuer: str, identifier: str) -> str:
    """
    Build the ``issuer:identifier`` label shown by authenticator apps.

    Raises:
        ConfigurationError: If issuer or identifier is empty.
    """
    if not issuer:
        raise ConfigurationError("The TOTP issuer cannot be empty.")
    if not identifier:
        raise ConfigurationError("The TOTP User Identifier cannot be empty.")
    return f"{issuer}:{identifier}"


def issuer_from_label(label: str) -> str:
    """Everything before the first colon (the whole label if there is none)."""
    return label.split(":", 1)[0]


def get_totp_provisioning_uri(label: str, secret: str, algorithm: str = "sha1", digits: int = 6) -> str:
    """
    Generate a provisioning URI for TOTP apps.

    The label and every query value are percent-encoded per RFC 3986
    (spaces become %20, colons %3A, slashes %2F).

    Args:
        label: "issuer:account" label.
        secret: Base32-encoded shared secret.
        algorithm: HMAC algorithm name.
        digits: Code length.

    Returns:
        otpauth:// URI string.
    """
    query = urlencode(
        [
            ("issuer", issuer_from_label(label)),
            ("label", label),
            ("secret", secret),
            ("algorithm", algorithm.upper()),
            ("digits", digits),
        ],
        quote_via=lambda value, *_: quote(value, safe=""),
    )
    return f"otpauth://totp/{quote(label, safe='')}?{query}"


def grouped_secret(secret: str, size: int = 4) -> str:
    """Base32 secret split into space-separated groups for manual entry."""
    return " ".join(secret[i:i + size] for i in range(0, len(secret), size))


def generate_qr_svg(uri: str, size: int = 400, margin: int = 4) -> str:
    """
    Render the provisioning URI as an SVG QR code.

    Args:
        uri: otpauth:// provisioning URI.
        size: Approximate image size; sets the module box size.
        margin: Quiet zone, in modules.

    Returns:
        SVG document as a string.
    """
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        border=margin,
        image_factory=qrcode.image.svg.SvgPathImage,
    )
    qr.add_data(uri)
    qr.make(fit=True)
    qr.box_size = max(1, size // (qr.modules_count + 2 * margin))

    img = qr.make_image()

    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue().decode("utf-8")


def generate_qr_code(uri: str) -> bytes:
    """
    Generate a QR code image for the provisioning URI.

    Returns:
        PNG image bytes.
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    buffer.seek(0)
    return buffer.read()


def generate_qr_code_base64(uri: str) -> str:
    """
    Generate a base64-encoded QR code for embedding in HTML.

    Returns:
        Base64-encoded PNG image string (data URI ready).
    """
    png_bytes = generate_qr_code(uri)
    b64 = base64.b64encode(png_bytes).decode('utf-8')
    return f"data:image/png;base64,{b64}"
