"""Integrity API routes consumed by the authentication flow.

Provides credential validation, login recording, the ban gate and ban
appeals.
"""

from dataclasses import asdict
from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from integrity.auth.jwt import Actor, get_current_actor, require_service
from integrity.db.database import get_db
from integrity.routes.schemas import BanStatusResponse, unwrap
from integrity.security.breach import BreachOracle
from integrity.security.email_validator import (
    EmailValidationOptions,
    MxResolver,
    resolve_mx_records,
    validate_email,
)
from integrity.security.fingerprint import FingerprintData, extract_client_ip
from integrity.security.login_recorder import (
    CorrelationWorker,
    LoginData,
    LoginRecorder,
)
from integrity.security.password_policy import (
    PasswordOptions,
    UserInfo,
    analyze_password_strength,
    validate_password,
)
from integrity.security.suspension import BanManager

router = APIRouter(prefix="/integrity", tags=["Integrity"])


# =============================================================================
# Dependencies
# =============================================================================


def get_breach_oracle() -> BreachOracle:
    """Breach oracle client (overridable in tests)."""
    return BreachOracle()


def get_mx_resolver() -> MxResolver:
    """MX resolver used by email validation (overridable in tests)."""
    return resolve_mx_records


def get_correlation_worker(request: Request) -> CorrelationWorker | None:
    """Background correlation worker started by the app lifespan."""
    return getattr(request.app.state, "correlation_worker", None)


# =============================================================================
# Request/Response Models
# =============================================================================


class UserInfoModel(BaseModel):
    """Personal details the password must not contain."""

    email: str | None = None
    username: str | None = None
    name: str | None = None


class PasswordValidateRequest(BaseModel):
    """Request body for password validation."""

    password: str = Field(..., max_length=1024)
    min_length: int = Field(default=8, ge=1)
    max_length: int = Field(default=128, ge=1)
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_chars: bool = False
    min_entropy: int = Field(default=40, ge=0)
    user_info: UserInfoModel | None = None


class PasswordStrengthResponse(BaseModel):
    """Raw strength signals."""

    length: int
    has_uppercase: bool
    has_lowercase: bool
    has_numbers: bool
    has_special_chars: bool
    has_keyboard_pattern: bool
    has_sequential_chars: bool
    has_repeated_chars: bool
    is_common_password: bool
    entropy: int


class PasswordValidateResponse(BaseModel):
    """Password verdict with inline feedback."""

    is_valid: bool
    score: int
    errors: list[str]
    warnings: list[str]
    suggestions: list[str]
    strength: PasswordStrengthResponse


class BreachRequest(BaseModel):
    """Request body for a breach lookup."""

    password: str = Field(..., min_length=1, max_length=1024)


class BreachResponse(BaseModel):
    """Breach lookup result."""

    breached: bool
    count: int


class EmailValidateRequest(BaseModel):
    """Request body for email validation."""

    email: str = Field(..., max_length=320)
    check_mx: bool = True
    check_disposable: bool = True
    check_role_account: bool = True
    check_typo: bool = True


class EmailChecksResponse(BaseModel):
    """Per-check verdicts; true means passed."""

    syntax: bool
    domain: bool
    mx: bool
    disposable: bool
    role_account: bool
    typo: bool


class EmailValidateResponse(BaseModel):
    """Email verdict with inline feedback."""

    valid: bool
    email: str
    normalized: str
    checks: EmailChecksResponse
    risk: str
    risk_score: int
    suggestion: str | None
    errors: list[str]
    warnings: list[str]


class FingerprintModel(BaseModel):
    """Client-reported device environment."""

    user_agent: str = ""
    screen_resolution: str | None = None
    timezone: str | None = None
    language: str | None = None
    platform: str | None = None


class LoginRecordRequest(BaseModel):
    """A login attempt reported by the auth flow."""

    user_id: str = Field(..., min_length=1, max_length=64)
    ip_address: str | None = None  # Defaults to the request's client IP
    user_agent: str | None = None
    login_method: Literal["password", "otp", "passkey", "oauth", "discord"]
    success: bool
    failure_reason: str | None = None
    country: str | None = None
    city: str | None = None
    fingerprint: FingerprintModel | None = None


class LoginRecordResponse(BaseModel):
    """Whether the attempt was stored."""

    recorded: bool


class AppealRequest(BaseModel):
    """Request body for a ban appeal."""

    message: str = Field(..., min_length=1, max_length=2000)


class AppealResponse(BaseModel):
    """Appeal confirmation."""

    ban_id: UUID
    appeal_status: str
    appealed_at: datetime | None


# =============================================================================
# Routes
# =============================================================================


@router.post("/password/validate", response_model=PasswordValidateResponse)
async def password_validate(request: PasswordValidateRequest):
    """Score a password and list what to fix."""
    options = PasswordOptions(
        min_length=request.min_length,
        max_length=request.max_length,
        require_uppercase=request.require_uppercase,
        require_lowercase=request.require_lowercase,
        require_numbers=request.require_numbers,
        require_special_chars=request.require_special_chars,
        min_entropy=request.min_entropy,
        user_info=UserInfo(**request.user_info.model_dump())
        if request.user_info
        else None,
    )
    result = validate_password(request.password, options)
    strength = analyze_password_strength(request.password)

    return PasswordValidateResponse(
        is_valid=result.is_valid,
        score=result.score,
        errors=result.errors,
        warnings=result.warnings,
        suggestions=result.suggestions,
        strength=PasswordStrengthResponse(**asdict(strength)),
    )


@router.post("/password/breach", response_model=BreachResponse)
async def password_breach(
    request: BreachRequest,
    oracle: BreachOracle = Depends(get_breach_oracle),
):
    """Check a password against known breaches. Advisory; never fails."""
    result = await oracle.check(request.password)
    return BreachResponse(breached=result.breached, count=result.count)


@router.post("/email/validate", response_model=EmailValidateResponse)
async def email_validate(
    request: EmailValidateRequest,
    mx_resolver: MxResolver = Depends(get_mx_resolver),
):
    """Validate an email address for signup."""
    options = EmailValidationOptions(
        check_mx=request.check_mx,
        check_disposable=request.check_disposable,
        check_role_account=request.check_role_account,
        check_typo=request.check_typo,
    )
    result = await validate_email(request.email, options, mx_resolver=mx_resolver)

    return EmailValidateResponse(
        valid=result.valid,
        email=result.email,
        normalized=result.normalized,
        checks=EmailChecksResponse(**asdict(result.checks)),
        risk=result.risk,
        risk_score=result.risk_score,
        suggestion=result.suggestion,
        errors=result.errors,
        warnings=result.warnings,
    )


@router.post(
    "/logins",
    response_model=LoginRecordResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def record_login(
    body: LoginRecordRequest,
    request: Request,
    _service: Actor = Depends(require_service),
    db: AsyncSession = Depends(get_db),
    worker: CorrelationWorker | None = Depends(get_correlation_worker),
):
    """Record a login attempt. Always answers 202, even if storing failed."""
    peer = request.client.host if request.client else None
    ip_address = body.ip_address or extract_client_ip(request.headers, peer)

    fingerprint = None
    if body.fingerprint is not None:
        fingerprint = FingerprintData(**body.fingerprint.model_dump())

    recorder = LoginRecorder(db, worker=worker)
    attempt = await recorder.record_login(
        LoginData(
            user_id=body.user_id,
            ip_address=ip_address,
            login_method=body.login_method,
            success=body.success,
            user_agent=body.user_agent or request.headers.get("user-agent"),
            failure_reason=body.failure_reason,
            country=body.country,
            city=body.city,
            fingerprint_data=fingerprint,
        )
    )
    return LoginRecordResponse(recorded=attempt is not None)


@router.get("/bans/{user_id}/status", response_model=BanStatusResponse)
async def ban_status(
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Ban gate consulted on every authentication attempt.

    Open to the authentication service, admins and the user themselves.
    """
    if not actor.can_view_user(user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to view this user",
        )
    info = await BanManager(db).check_ban_status(user_id)
    return BanStatusResponse.model_validate(info)


@router.post("/bans/appeal", response_model=AppealResponse)
async def submit_appeal(
    request: AppealRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Appeal the caller's own active ban."""
    ban = unwrap(await BanManager(db).submit_ban_appeal(actor.user_id, request.message))
    return AppealResponse(
        ban_id=ban.id,
        appeal_status=ban.appeal_status,
        appealed_at=ban.appealed_at,
    )
