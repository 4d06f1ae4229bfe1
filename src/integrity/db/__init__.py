"""Database module for the integrity engine.

Provides SQLAlchemy models, async database session management, and utilities.
"""

from integrity.db.database import (
    Base,
    async_session,
    configure_engine,
    get_db,
    init_db,
    utcnow,
)
from integrity.db.models import (
    AppealStatus,
    BanRecord,
    BanType,
    DeviceFingerprint,
    LinkStatus,
    LinkType,
    LoginAttempt,
    LoginMethod,
    MultiAccountLink,
    SecurityEvent,
    Severity,
    User,
)

__all__ = [
    "AppealStatus",
    "BanRecord",
    "BanType",
    "Base",
    "DeviceFingerprint",
    "LinkStatus",
    "LinkType",
    "LoginAttempt",
    "LoginMethod",
    "MultiAccountLink",
    "SecurityEvent",
    "Severity",
    "User",
    "async_session",
    "configure_engine",
    "get_db",
    "init_db",
    "utcnow",
]
