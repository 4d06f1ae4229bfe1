"""Device fingerprints and IP address handling.

Raw IP addresses are personal data. They are only ever held in memory for
the duration of a request; what gets stored is an HMAC of the address
(for matching) and a truncated form (for admin triage).
"""

import hashlib
import hmac
import ipaddress
from collections.abc import Mapping
from dataclasses import dataclass

from integrity.config import get_settings

UNKNOWN_IP = "unknown"
LOCALHOST_NAMES = frozenset({"127.0.0.1", "::1", "localhost"})

# Proxy headers in order of trust
CLIENT_IP_HEADERS = (
    "cf-connecting-ip",
    "x-vercel-forwarded-for",
    "x-forwarded-for",
    "x-real-ip",
)


@dataclass
class FingerprintData:
    """Client-reported environment used to recognize a device."""

    user_agent: str = ""
    screen_resolution: str | None = None
    timezone: str | None = None
    language: str | None = None
    platform: str | None = None


def generate_fingerprint_hash(data: FingerprintData) -> str:
    """SHA-256 over the pipe-joined environment fields.

    Missing fields hash as empty strings. Field order matters.
    """
    components = "|".join(
        [
            data.user_agent or "",
            data.screen_resolution or "",
            data.timezone or "",
            data.language or "",
            data.platform or "",
        ]
    )
    return hashlib.sha256(components.encode("utf-8")).hexdigest()


# =============================================================================
# IP Addresses
# =============================================================================


def anonymize_ip(ip: str, secret: str | None = None) -> str:
    """Keyed one-way hash of an IP address (HMAC-SHA256, hex).

    Args:
        ip: Raw client IP.
        secret: HMAC key; defaults to ``IP_HASH_SECRET``.

    Returns:
        64-character hex digest. The same IP and secret always give the
        same digest; the raw address cannot be recovered from it.
    """
    key = secret if secret is not None else get_settings().ip_hash_secret
    return hmac.new(
        key.encode("utf-8"), ip.strip().encode("utf-8"), hashlib.sha256
    ).hexdigest()


def _parse_ip(ip: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(ip.strip())
    except ValueError:
        return None


def truncate_ip(ip: str | None) -> str:
    """Zero the host part of an address.

    IPv4 keeps the /24 ("192.168.1.100" -> "192.168.1.0"); IPv6 keeps the
    first three groups ("2001:db8:85a3::"). IPv4-mapped IPv6 addresses are
    truncated as IPv4.
    """
    if not ip or ip == UNKNOWN_IP:
        return UNKNOWN_IP

    clean = ip.strip()
    if clean in LOCALHOST_NAMES:
        return "localhost"

    parsed = _parse_ip(clean)
    if parsed is None:
        return UNKNOWN_IP

    if isinstance(parsed, ipaddress.IPv6Address):
        if parsed.ipv4_mapped is not None:
            return "::ffff:" + truncate_ip(str(parsed.ipv4_mapped))
        groups = parsed.exploded.split(":")[:3]
        return ":".join(group.lstrip("0") or "0" for group in groups) + "::"

    octets = str(parsed).split(".")
    octets[3] = "0"
    return ".".join(octets)


def mask_ip(ip: str | None) -> str:
    """Display-safe form of an IP ("192.168.x.x", "2001:****")."""
    if not ip or ip == UNKNOWN_IP:
        return "Unknown"
    if ip in LOCALHOST_NAMES:
        return "Localhost"

    parsed = _parse_ip(ip)
    if parsed is None:
        return "Unknown"
    if isinstance(parsed, ipaddress.IPv4Address):
        parts = ip.strip().split(".")
        return f"{parts[0]}.{parts[1]}.x.x"
    return f"{ip.strip().split(':')[0]}:****"


def is_private_ip(ip: str | None) -> bool:
    """Check for private, loopback and link-local addresses."""
    if not ip or ip == UNKNOWN_IP:
        return False
    parsed = _parse_ip(ip)
    if parsed is None:
        return False
    return parsed.is_private or parsed.is_loopback or parsed.is_link_local


def extract_client_ip(
    headers: Mapping[str, str], fallback: str | None = None
) -> str:
    """Pick the real client IP out of proxy headers.

    Handles Cloudflare, Vercel, standard forwarding and nginx headers, in
    that order. Comma-separated chains yield their first hop.

    Args:
        headers: Request headers (case-insensitive mapping or lowercase keys).
        fallback: Socket peer address to use when no header is present.

    Returns:
        The client IP, or ``"unknown"``.
    """
    for name in CLIENT_IP_HEADERS:
        value = headers.get(name)
        if value:
            first_hop = value.split(",")[0].strip()
            if first_hop:
                return first_hop
    return fallback or UNKNOWN_IP
