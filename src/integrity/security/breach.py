"""Password breach lookup via a k-anonymity range API.

Only the first five hex characters of the password's SHA-1 leave the
process; the oracle answers with every known suffix for that prefix and the
match happens locally. https://haveibeenpwned.com/API/v3#PwnedPasswords

The check is advisory: if the oracle is slow, down or returns garbage the
password is reported as not breached.
"""

import hashlib
import logging
from dataclasses import dataclass

import httpx

from integrity.config import get_settings

logger = logging.getLogger("integrity.breach")

USER_AGENT = "Integrity-Password-Check"
PREFIX_LENGTH = 5


@dataclass(frozen=True)
class BreachCheckResult:
    """Whether a password appears in known breaches, and how often."""

    breached: bool
    count: int = 0


NOT_BREACHED = BreachCheckResult(breached=False, count=0)


def split_sha1(password: str) -> tuple[str, str]:
    """Return the uppercase SHA-1 of ``password`` as (prefix, suffix)."""
    digest = hashlib.sha1(password.encode("utf-8")).hexdigest().upper()
    return digest[:PREFIX_LENGTH], digest[PREFIX_LENGTH:]


def find_suffix(body: str, suffix: str) -> int | None:
    """Scan ``SUFFIX:COUNT`` lines for ``suffix``; return its count if present."""
    for line in body.splitlines():
        hash_suffix, _, count = line.partition(":")
        if hash_suffix.strip().upper() == suffix:
            try:
                return int(count.strip() or 0)
            except ValueError:
                return 0
    return None


class BreachOracle:
    """Client for a ``GET /range/{prefix}`` breach oracle."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the oracle client.

        Args:
            base_url: Oracle root URL; defaults to ``BREACH_API_URL``.
            timeout: Request timeout in seconds.
            client: Optional shared HTTP client (tests inject a mock transport).
        """
        settings = get_settings()
        self.base_url = (base_url or settings.breach_api_url).rstrip("/")
        if timeout is None:
            timeout = settings.breach_timeout_seconds
        self.timeout = timeout
        self._client = client

    async def _fetch_range(self, prefix: str) -> httpx.Response:
        url = f"{self.base_url}/range/{prefix}"
        headers = {"User-Agent": USER_AGENT}
        if self._client is not None:
            return await self._client.get(url, headers=headers, timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.get(url, headers=headers, timeout=self.timeout)

    async def check(self, password: str) -> BreachCheckResult:
        """Look a password up in the oracle. Never raises on oracle failure."""
        prefix, suffix = split_sha1(password)

        try:
            response = await self._fetch_range(prefix)
        except httpx.TimeoutException:
            logger.warning("Breach oracle timed out after %ss", self.timeout)
            return NOT_BREACHED
        except httpx.HTTPError as e:
            logger.warning("Breach oracle unavailable: %s", e)
            return NOT_BREACHED
        except Exception:
            logger.exception("Password breach check failed")
            return NOT_BREACHED

        if response.status_code != 200:
            logger.warning("Breach oracle returned HTTP %s", response.status_code)
            return NOT_BREACHED

        count = find_suffix(response.text, suffix)
        if count is None:
            return NOT_BREACHED
        return BreachCheckResult(breached=True, count=count)


async def check_password_breach(password: str) -> BreachCheckResult:
    """Check a password against the configured breach oracle.

    Returns:
        BreachCheckResult; ``breached=False, count=0`` when the oracle
        cannot be reached.
    """
    return await BreachOracle().check(password)
