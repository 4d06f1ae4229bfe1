"""Tests for device fingerprints and IP handling."""

import pytest

from integrity.security.fingerprint import (
    FingerprintData,
    anonymize_ip,
    extract_client_ip,
    generate_fingerprint_hash,
    is_private_ip,
    mask_ip,
    truncate_ip,
)

CHROME = FingerprintData(
    user_agent="Mozilla/5.0 Chrome/120",
    screen_resolution="1920x1080",
    timezone="Europe/Berlin",
    language="de-DE",
    platform="Win32",
)


# =============================================================================
# Fingerprints
# =============================================================================


class TestFingerprintHash:
    """Tests for fingerprint hashing."""

    def test_deterministic(self):
        assert generate_fingerprint_hash(CHROME) == generate_fingerprint_hash(
            FingerprintData(
                user_agent="Mozilla/5.0 Chrome/120",
                screen_resolution="1920x1080",
                timezone="Europe/Berlin",
                language="de-DE",
                platform="Win32",
            )
        )

    def test_is_sha256_hex(self):
        digest = generate_fingerprint_hash(CHROME)

        assert len(digest) == 64
        int(digest, 16)

    def test_field_order_matters(self):
        """Swapping values between fields changes the hash."""
        swapped = FingerprintData(
            user_agent="Mozilla/5.0 Chrome/120",
            screen_resolution="1920x1080",
            timezone="de-DE",
            language="Europe/Berlin",
            platform="Win32",
        )

        assert generate_fingerprint_hash(swapped) != generate_fingerprint_hash(CHROME)

    def test_missing_fields_hash_as_empty(self):
        assert generate_fingerprint_hash(
            FingerprintData(user_agent="ua")
        ) == generate_fingerprint_hash(
            FingerprintData(
                user_agent="ua",
                screen_resolution="",
                timezone="",
                language="",
                platform="",
            )
        )


# =============================================================================
# IP Addresses
# =============================================================================


class TestAnonymizeIp:
    """Tests for keyed IP hashing."""

    def test_stable_for_same_secret(self):
        assert anonymize_ip("203.0.113.7", "k") == anonymize_ip("203.0.113.7", "k")

    def test_differs_across_secrets(self):
        assert anonymize_ip("203.0.113.7", "k1") != anonymize_ip("203.0.113.7", "k2")

    def test_differs_across_ips(self):
        assert anonymize_ip("203.0.113.7", "k") != anonymize_ip("203.0.113.8", "k")

    def test_default_secret_from_settings(self):
        assert anonymize_ip("203.0.113.7") == anonymize_ip(
            "203.0.113.7", "test-ip-hash-secret"
        )


class TestTruncateIp:
    """Tests for host-part truncation."""

    @pytest.mark.parametrize(
        "ip,expected",
        [
            ("192.168.1.100", "192.168.1.0"),
            ("203.0.113.7", "203.0.113.0"),
            ("2001:db8:85a3::8a2e:370:7334", "2001:db8:85a3::"),
            ("2001:0db8:0000:1234::1", "2001:db8:0::"),
            ("::ffff:192.168.1.100", "::ffff:192.168.1.0"),
            ("127.0.0.1", "localhost"),
            ("::1", "localhost"),
            ("unknown", "unknown"),
            (None, "unknown"),
            ("", "unknown"),
            ("not-an-ip", "unknown"),
        ],
    )
    def test_truncate(self, ip, expected):
        assert truncate_ip(ip) == expected


class TestMaskIp:
    """Tests for display masking."""

    @pytest.mark.parametrize(
        "ip,expected",
        [
            ("192.168.1.100", "192.168.x.x"),
            ("2001:db8::1", "2001:****"),
            ("127.0.0.1", "Localhost"),
            ("localhost", "Localhost"),
            (None, "Unknown"),
            ("garbage", "Unknown"),
        ],
    )
    def test_mask(self, ip, expected):
        assert mask_ip(ip) == expected


class TestIsPrivateIp:
    """Tests for private range detection."""

    @pytest.mark.parametrize(
        "ip",
        [
            "10.0.0.1",
            "172.16.5.4",
            "192.168.0.1",
            "127.0.0.1",
            "169.254.1.1",
            "fe80::1",
        ],
    )
    def test_private(self, ip):
        assert is_private_ip(ip) is True

    @pytest.mark.parametrize("ip", ["8.8.8.8", "1.1.1.1", None, "unknown", "bogus"])
    def test_not_private(self, ip):
        assert is_private_ip(ip) is False


class TestExtractClientIp:
    """Tests for proxy header precedence."""

    def test_cloudflare_wins(self):
        headers = {
            "cf-connecting-ip": "198.51.100.1",
            "x-forwarded-for": "198.51.100.2",
            "x-real-ip": "198.51.100.3",
        }

        assert extract_client_ip(headers) == "198.51.100.1"

    def test_first_forwarded_hop(self):
        headers = {"x-forwarded-for": "198.51.100.2, 10.0.0.1, 10.0.0.2"}

        assert extract_client_ip(headers) == "198.51.100.2"

    def test_vercel_before_forwarded(self):
        headers = {
            "x-vercel-forwarded-for": "198.51.100.9",
            "x-forwarded-for": "198.51.100.2",
        }

        assert extract_client_ip(headers) == "198.51.100.9"

    def test_real_ip(self):
        assert extract_client_ip({"x-real-ip": "198.51.100.3"}) == "198.51.100.3"

    def test_fallback_to_peer(self):
        assert extract_client_ip({}, "192.0.2.10") == "192.0.2.10"

    def test_unknown_without_anything(self):
        assert extract_client_ip({}) == "unknown"
