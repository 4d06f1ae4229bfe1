"""Admin routes for bans, appeals, multi-account review and the audit log.

Every route requires an ``admin`` or ``owner`` role.
"""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from integrity.auth.jwt import Actor, require_admin
from integrity.db.database import get_db
from integrity.errors import ValidationError
from integrity.routes.schemas import (
    AnomalyResponse,
    BanResponse,
    DurationModel,
    LinkResponse,
    LoginAttemptResponse,
    PendingAppealResponse,
    SecurityEventResponse,
    SecurityStatsResponse,
    unwrap,
)
from integrity.security.correlation import (
    get_all_multi_account_links,
    get_multi_account_link,
    get_multi_account_links,
    update_multi_account_status,
)
from integrity.security.events import SecurityEventLog
from integrity.security.fingerprint import anonymize_ip
from integrity.security.login_recorder import LoginRecorder
from integrity.security.monitoring import BRUTE_FORCE_WINDOW_MINUTES, LoginMonitor
from integrity.security.suspension import BanManager, parse_ban_duration

router = APIRouter(prefix="/admin/integrity", tags=["Integrity Admin"])


# =============================================================================
# Request Models
# =============================================================================


class BanRequest(BaseModel):
    """Request body for banning a user."""

    user_id: str = Field(..., min_length=1, max_length=64)
    ban_type: Literal["temporary", "permanent", "shadow"]
    reason: str = Field(..., min_length=1, max_length=2000)
    internal_notes: str | None = None
    duration: DurationModel | None = None


class UnbanRequest(BaseModel):
    """Request body for lifting a ban."""

    reason: str | None = None


class AppealReviewRequest(BaseModel):
    """Request body for deciding an appeal."""

    decision: Literal["approved", "rejected"]
    response: str = Field(..., min_length=1, max_length=2000)


class LinkReviewRequest(BaseModel):
    """Request body for reviewing a multi-account link."""

    status: Literal["confirmed", "allowed", "false_positive"]
    notes: str | None = None


# =============================================================================
# Bans
# =============================================================================


@router.post("/bans", response_model=BanResponse, status_code=status.HTTP_201_CREATED)
async def ban_user(
    request: BanRequest,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Ban a user, superseding any active ban."""
    try:
        duration = parse_ban_duration(
            request.duration.model_dump() if request.duration else None
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=e.reason
        ) from e

    outcome = await BanManager(db).ban_user(
        user_id=request.user_id,
        banned_by=admin.user_id,
        ban_type=request.ban_type,
        reason=request.reason,
        duration=duration,
        internal_notes=request.internal_notes,
    )
    return unwrap(outcome)


@router.post("/bans/{user_id}/unban", response_model=BanResponse)
async def unban_user(
    user_id: str,
    request: UnbanRequest | None = None,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Lift a user's active ban."""
    reason = request.reason if request else None
    return unwrap(await BanManager(db).unban_user(user_id, admin.user_id, reason))


@router.get("/bans/{user_id}/history", response_model=list[BanResponse])
async def ban_history(
    user_id: str,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every ban a user has had, oldest first."""
    return await BanManager(db).get_ban_history(user_id)


@router.get("/appeals", response_model=list[PendingAppealResponse])
async def pending_appeals(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Appeals awaiting review."""
    return await BanManager(db).get_pending_appeals()


@router.post("/appeals/{ban_id}/review", response_model=BanResponse)
async def review_appeal(
    ban_id: UUID,
    request: AppealReviewRequest,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Approve (lifting the ban) or reject a pending appeal."""
    outcome = await BanManager(db).review_ban_appeal(
        ban_id, admin.user_id, request.decision, request.response
    )
    return unwrap(outcome)


# =============================================================================
# Multi-Account Review
# =============================================================================


@router.get("/multi-account", response_model=list[LinkResponse])
async def all_links(
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All detected links, highest confidence first."""
    return await get_all_multi_account_links(db, status=status_filter, limit=limit)


@router.get("/multi-account/{user_id}", response_model=list[LinkResponse])
async def user_links(
    user_id: str,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Links where the user is the primary account."""
    return await get_multi_account_links(db, user_id)


@router.patch("/multi-account/{link_id}", response_model=LinkResponse)
async def review_link(
    link_id: UUID,
    request: LinkReviewRequest,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Record a verdict on a link."""
    unwrap(
        await update_multi_account_status(
            db, link_id, admin.user_id, request.status, request.notes
        )
    )
    return await get_multi_account_link(db, link_id)


# =============================================================================
# Security Events
# =============================================================================


@router.get("/security-events", response_model=list[SecurityEventResponse])
async def security_events(
    user_id: str | None = None,
    event_type: str | None = None,
    resolved: bool | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Newest security events, filtered by user, type or resolution."""
    log = SecurityEventLog(db)
    if user_id:
        return await log.by_user(user_id, limit=limit)
    if event_type:
        return await log.by_type(event_type, limit=limit)
    return await log.recent(limit=limit, resolved=resolved)


@router.get("/security-events/stats", response_model=SecurityStatsResponse)
async def security_stats(
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Event totals, open criticals and the day-over-day trend."""
    return await SecurityEventLog(db).stats()


@router.post(
    "/security-events/{event_id}/resolve", response_model=SecurityEventResponse
)
async def resolve_security_event(
    event_id: UUID,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Mark an event as triaged."""
    return unwrap(await SecurityEventLog(db).resolve(event_id, admin.user_id))


# =============================================================================
# Login History
# =============================================================================


@router.get("/logins/{user_id}", response_model=list[LoginAttemptResponse])
async def login_history(
    user_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """A user's recent login attempts, newest first."""
    return await LoginRecorder(db).get_login_history(user_id, limit=limit)


@router.get("/logins/{user_id}/anomaly", response_model=AnomalyResponse)
async def login_anomaly(
    user_id: str,
    ip: str,
    user_agent: str | None = None,
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """How a login from ``ip`` with ``user_agent`` would compare to history."""
    return await LoginMonitor(db).detect_login_anomaly(
        user_id, anonymize_ip(ip), user_agent
    )


# =============================================================================
# Brute Force
# =============================================================================


@router.get("/brute-force", response_model=AnomalyResponse)
async def brute_force(
    ip: str,
    window_minutes: int = Query(default=BRUTE_FORCE_WINDOW_MINUTES, ge=1, le=1440),
    admin: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Failed-attempt pressure from one IP. The IP is hashed, never stored."""
    return await LoginMonitor(db).detect_brute_force(
        anonymize_ip(ip), window_minutes=window_minutes
    )
