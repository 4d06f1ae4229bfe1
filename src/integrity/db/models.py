"""SQLAlchemy models for login telemetry, multi-account links, bans and events.

The ``users`` table is owned by the authentication system; it is mapped here
only so the engine can check existence and show usernames to admins.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from integrity.db.database import Base, UTCDateTime, utcnow

# =============================================================================
# Enums
# =============================================================================


class LoginMethod(str, Enum):
    """How a login attempt authenticated."""

    PASSWORD = "password"
    OTP = "otp"
    PASSKEY = "passkey"
    OAUTH = "oauth"


class LinkType(str, Enum):
    """Signal that tied two accounts together."""

    IP_MATCH = "ip_match"
    FINGERPRINT_MATCH = "fingerprint_match"
    EMAIL_PATTERN = "email_pattern"


class LinkStatus(str, Enum):
    """Admin review status of a multi-account link."""

    DETECTED = "detected"  # Found by the correlator, not reviewed yet
    CONFIRMED = "confirmed"  # Same person, policy violation
    ALLOWED = "allowed"  # Same person, explicitly permitted
    FALSE_POSITIVE = "false_positive"  # Coincidence (NAT, shared device)


class BanType(str, Enum):
    """Ban flavours."""

    TEMPORARY = "temporary"
    PERMANENT = "permanent"
    SHADOW = "shadow"


class AppealStatus(str, Enum):
    """Appeal sub-state of a ban."""

    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Severity(str, Enum):
    """Security event severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# User Model
# =============================================================================


class User(Base):
    """Account record (read model of the auth system's users table)."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default="user")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)


# =============================================================================
# Login Telemetry
# =============================================================================


class DeviceFingerprint(Base):
    """A device observed for a user; only ``last_seen_at`` ever changes."""

    __tablename__ = "device_fingerprints"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    fingerprint_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )

    # Client-reported environment
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="")
    screen_resolution: Mapped[str | None] = mapped_column(String(32))
    timezone: Mapped[str | None] = mapped_column(String(64))
    language: Mapped[str | None] = mapped_column(String(32))
    platform: Mapped[str | None] = mapped_column(String(64))

    first_seen_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    last_seen_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "fingerprint_hash", "user_id", name="uq_device_fingerprints_hash_user"
        ),
        Index("ix_device_fingerprints_user_id", "user_id"),
    )


class LoginAttempt(Base):
    """One authentication attempt. Append-only."""

    __tablename__ = "login_attempts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )

    # Network (raw IP is never stored)
    ip_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    ip_truncated: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    fingerprint_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("device_fingerprints.id")
    )

    # Outcome
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(String(255))

    # Supplied location label
    country: Mapped[str | None] = mapped_column(String(64))
    city: Mapped[str | None] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    __table_args__ = (
        Index("ix_login_attempts_user_id_ip_hash", "user_id", "ip_hash"),
        Index("ix_login_attempts_ip_hash", "ip_hash"),
        Index("ix_login_attempts_created_at", "created_at"),
    )


# =============================================================================
# Multi-Account Links
# =============================================================================


class MultiAccountLink(Base):
    """Detected link between two accounts. Mutated only by admin review."""

    __tablename__ = "multi_account_links"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    primary_user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    linked_user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )

    link_type: Mapped[str] = mapped_column(String(32), nullable=False)
    confidence: Mapped[int] = mapped_column(Integer, nullable=False)
    evidence: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(
        String(20), default=LinkStatus.DETECTED.value
    )

    # Review
    reviewed_by: Mapped[str | None] = mapped_column(String(64))
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    review_notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "primary_user_id",
            "linked_user_id",
            "link_type",
            name="uq_multi_account_links_pair_type",
        ),
        Index("ix_multi_account_links_status", "status"),
    )


# =============================================================================
# Bans
# =============================================================================


class BanRecord(Base):
    """Account suspension with its appeal sub-state."""

    __tablename__ = "ban_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    banned_by: Mapped[str] = mapped_column(String(64), nullable=False)

    ban_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    internal_notes: Mapped[str | None] = mapped_column(Text)
    # None encodes a permanent ban
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Appeal
    appeal_status: Mapped[str] = mapped_column(
        String(20), default=AppealStatus.NONE.value, nullable=False
    )
    appeal_message: Mapped[str | None] = mapped_column(Text)
    appealed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    appeal_reviewed_by: Mapped[str | None] = mapped_column(String(64))
    appeal_reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    appeal_response: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_ban_records_user_id_is_active", "user_id", "is_active"),
        Index("ix_ban_records_appeal_status", "appeal_status"),
        # At most one active ban per user
        Index(
            "uq_ban_records_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )


# =============================================================================
# Security Events
# =============================================================================


class SecurityEvent(Base):
    """Audit record of a security-relevant event.

    Only the triage columns change after insert.
    """

    __tablename__ = "security_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(64))
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    # Triage
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_by: Mapped[str | None] = mapped_column(String(64))
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    __table_args__ = (
        Index("ix_security_events_user_id", "user_id"),
        Index("ix_security_events_event_type", "event_type"),
        Index("ix_security_events_created_at", "created_at"),
        Index("ix_security_events_resolved_severity", "resolved", "severity"),
    )
