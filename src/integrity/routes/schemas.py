"""Request/response models shared by the integrity routers."""

from datetime import datetime
from typing import Any, Literal, NoReturn, TypeVar
from uuid import UUID

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict, Field

from integrity.errors import Failure, Outcome

T = TypeVar("T")


def raise_failure(failure: Failure) -> NoReturn:
    """Convert a typed failure into an HTTP error."""
    raise HTTPException(status_code=failure.kind.status_code, detail=failure.message)


def unwrap(outcome: Outcome[T]) -> T:
    """Return the outcome's value or raise its failure as an HTTP error."""
    if outcome.error is not None:
        raise_failure(outcome.error)
    return outcome.value


# =============================================================================
# Bans
# =============================================================================


class DurationModel(BaseModel):
    """Ban duration as sent by the admin UI."""

    type: Literal["hours", "days", "weeks", "months", "years", "permanent"]
    value: int | None = Field(default=None, gt=0)


class BanStatusResponse(BaseModel):
    """Ban state for the auth gate."""

    model_config = ConfigDict(from_attributes=True)

    is_banned: bool
    can_appeal: bool
    ban_id: UUID | None = None
    ban_type: str | None = None
    reason: str | None = None
    expires_at: datetime | None = None
    appeal_status: str | None = None


class BanResponse(BaseModel):
    """Full ban record for admins."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    banned_by: str
    ban_type: str
    reason: str
    internal_notes: str | None
    expires_at: datetime | None
    is_active: bool
    appeal_status: str
    appeal_message: str | None
    appealed_at: datetime | None
    appeal_reviewed_by: str | None
    appeal_reviewed_at: datetime | None
    appeal_response: str | None
    created_at: datetime
    updated_at: datetime


class PendingAppealResponse(BaseModel):
    """Appeal awaiting review."""

    model_config = ConfigDict(from_attributes=True)

    ban_id: UUID
    user_id: str
    username: str
    ban_type: str
    reason: str
    appeal_message: str | None
    appealed_at: datetime | None
    created_at: datetime


# =============================================================================
# Multi-Account Links
# =============================================================================


class LinkResponse(BaseModel):
    """Multi-account link with resolved usernames."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    primary_user_id: str
    primary_username: str
    linked_user_id: str
    linked_username: str
    link_type: str
    confidence: int
    status: str
    evidence: dict[str, Any]
    created_at: datetime
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None


class SecurityEventResponse(BaseModel):
    """Security event as shown in the admin audit view."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: str
    severity: str
    user_id: str | None
    ip_address: str | None
    user_agent: str | None
    details: dict[str, Any]
    created_at: datetime
    resolved: bool = False
    resolved_by: str | None = None
    resolved_at: datetime | None = None


class SecurityStatsResponse(BaseModel):
    """Dashboard summary of the security event log."""

    model_config = ConfigDict(from_attributes=True)

    total_events: int
    unresolved_events: int
    critical_events: int
    events_by_type: dict[str, int]
    events_by_severity: dict[str, int]
    recent_trend: Literal["increasing", "decreasing", "stable"]


class AnomalyResponse(BaseModel):
    """Result of a risk detector."""

    model_config = ConfigDict(from_attributes=True)

    is_anomaly: bool
    anomaly_type: str | None
    confidence: float
    details: dict[str, Any]


# =============================================================================
# Login Telemetry
# =============================================================================


class LoginAttemptResponse(BaseModel):
    """Stored login attempt. Only the truncated IP is exposed."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    ip_truncated: str | None
    user_agent: str | None
    fingerprint_id: UUID | None
    method: str
    success: bool
    failure_reason: str | None
    country: str | None
    city: str | None
    created_at: datetime
