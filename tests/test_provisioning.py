"""
Tests for provisioning helpers: labels, URIs and QR codes.
"""
import base64

import pytest

from twofactor.auth.provisioning import (
    build_label,
    generate_qr_code,
    generate_qr_code_base64,
    generate_qr_svg,
    get_totp_provisioning_uri,
    grouped_secret,
    issuer_from_label,
)
from twofactor.exceptions import ConfigurationError


class TestLabel:
    """Test label construction."""

    def test_build_label(self):
        assert build_label("quz", "test@foo.com") == "quz:test@foo.com"

    def test_empty_issuer(self):
        with pytest.raises(ConfigurationError, match="The TOTP issuer cannot be empty."):
            build_label("", "test@foo.com")

    def test_empty_identifier(self):
        with pytest.raises(ConfigurationError, match="The TOTP User Identifier cannot be empty."):
            build_label("quz", "")

    def test_issuer_from_label(self):
        assert issuer_from_label("quz:test@foo.com") == "quz"
        assert issuer_from_label("a:b:c") == "a"
        assert issuer_from_label("solo") == "solo"


class TestProvisioningUri:
    """Test otpauth:// URI export."""

    def test_uri_layout(self, fixed_secret):
        uri = get_totp_provisioning_uri("quz:test@foo.com", fixed_secret, "sha256", 14)
        assert uri == (
            "otpauth://totp/quz%3Atest%40foo.com"
            "?issuer=quz&label=quz%3Atest%40foo.com"
            "&secret=KS72XBTN5PEBGX2IWBMVW44LXHPAQ7L3&algorithm=SHA256&digits=14"
        )

    def test_spaces_are_percent_encoded(self, fixed_secret):
        uri = get_totp_provisioning_uri("foo bar:john", fixed_secret)
        assert uri.startswith("otpauth://totp/foo%20bar%3Ajohn?issuer=foo%20bar&")
        assert "+" not in uri

    def test_slashes_are_percent_encoded(self, fixed_secret):
        uri = get_totp_provisioning_uri("a/b:john", fixed_secret)
        assert uri.startswith("otpauth://totp/a%2Fb%3Ajohn?issuer=a%2Fb&label=a%2Fb%3Ajohn&")
        assert uri.count("/") == 2

    def test_defaults(self, fixed_secret):
        uri = get_totp_provisioning_uri("quz:test@foo.com", fixed_secret)
        assert uri.endswith("&algorithm=SHA1&digits=6")


class TestGroupedSecret:
    """Test manual-entry formatting."""

    def test_groups_of_four(self, fixed_secret):
        assert grouped_secret(fixed_secret) == "KS72 XBTN 5PEB GX2I WBMV W44L XHPA Q7L3"

    def test_uneven_tail(self):
        assert grouped_secret("ABCDEF") == "ABCD EF"


class TestQrCode:
    """Test QR rendering (delegated to the qrcode library)."""

    def test_svg(self, fixed_secret):
        uri = get_totp_provisioning_uri("quz:test@foo.com", fixed_secret)
        svg = generate_qr_svg(uri, size=200, margin=2)
        assert "<svg" in svg
        assert "path" in svg

    def test_png(self, fixed_secret):
        uri = get_totp_provisioning_uri("quz:test@foo.com", fixed_secret)
        png = generate_qr_code(uri)
        assert png[:8] == b"\x89PNG\r\n\x1a\n"

    def test_base64_data_uri(self, fixed_secret):
        uri = get_totp_provisioning_uri("quz:test@foo.com", fixed_secret)
        data_uri = generate_qr_code_base64(uri)
        assert data_uri.startswith("data:image/png;base64,")
        assert base64.b64decode(data_uri.split(",", 1)[1])[:4] == b"\x89PNG"
