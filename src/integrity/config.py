"""Integrity engine configuration.

Settings are loaded from environment variables (optionally via a .env file).
Secrets have development fallbacks so the service boots locally, but in
production every secret must be set explicitly.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger("integrity.config")

DEV_IP_HASH_SECRET = "dev-only-ip-hash-secret"
DEV_JWT_SECRET = "CHANGE_ME_IN_PRODUCTION_32_BYTES!"


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


def _is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def _secret(keys: tuple[str, ...], dev_default: str, description: str) -> str:
    """Get the first set env var of ``keys`` or fall back outside production."""
    for key in keys:
        value = os.getenv(key)
        if value:
            return value

    if _is_production():
        raise ConfigurationError(
            f"Missing required environment variable: {keys[0]}\n"
            f"Description: {description}\n"
            f'Example: {keys[0]}="your-value-here"'
        )

    logger.warning("%s not set - using development default", keys[0])
    return dev_default


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the integrity engine."""

    database_url: str = "sqlite+aiosqlite:///./integrity.db"
    ip_hash_secret: str = DEV_IP_HASH_SECRET
    jwt_secret_key: str = DEV_JWT_SECRET
    breach_api_url: str = "https://api.pwnedpasswords.com"
    breach_timeout_seconds: float = 5.0
    mx_timeout_seconds: float = 5.0
    correlation_queue_size: int = 1000
    multi_account_alert_threshold: int = 70
    max_correlation_candidates: int = 10

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            ip_hash_secret=_secret(
                ("IP_HASH_SECRET", "AUTH_SECRET"),
                DEV_IP_HASH_SECRET,
                "HMAC key used to anonymize IP addresses",
            ),
            jwt_secret_key=_secret(
                ("JWT_SECRET_KEY",),
                DEV_JWT_SECRET,
                "Key used to verify bearer tokens",
            ),
            breach_api_url=os.getenv("BREACH_API_URL", cls.breach_api_url),
            breach_timeout_seconds=float(
                os.getenv("BREACH_TIMEOUT_SECONDS", str(cls.breach_timeout_seconds))
            ),
            mx_timeout_seconds=float(
                os.getenv("MX_TIMEOUT_SECONDS", str(cls.mx_timeout_seconds))
            ),
            correlation_queue_size=int(
                os.getenv("CORRELATION_QUEUE_SIZE", str(cls.correlation_queue_size))
            ),
            multi_account_alert_threshold=int(
                os.getenv(
                    "MULTI_ACCOUNT_ALERT_THRESHOLD",
                    str(cls.multi_account_alert_threshold),
                )
            ),
            max_correlation_candidates=int(
                os.getenv(
                    "MAX_CORRELATION_CANDIDATES", str(cls.max_correlation_candidates)
                )
            ),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        load_dotenv(".env.local")
        load_dotenv()  # Also try default .env
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
