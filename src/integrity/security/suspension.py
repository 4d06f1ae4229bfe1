"""Account suspension (ban) lifecycle.

A user is either unbanned or has exactly one active ban. An active ban ends
when it expires, when an admin lifts it, or when its appeal is approved.
The appeal sub-state moves none -> pending -> approved | rejected.

Every transition is a single UPDATE guarded by the state it leaves
(``is_active``, ``appeal_status``), so a retried or racing request finds
the guard false and reports a failure instead of applying twice.
"""

import calendar
import contextlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from integrity.db.database import utcnow
from integrity.db.models import AppealStatus, BanRecord, BanType, User
from integrity.errors import ErrorKind, Outcome, ValidationError
from integrity.security.events import SecurityEventLog

logger = logging.getLogger("integrity.suspension")

DEFAULT_UNBAN_RESPONSE = "Ban lifted by admin"
APPEAL_DECISIONS = frozenset({AppealStatus.APPROVED.value, AppealStatus.REJECTED.value})


# =============================================================================
# Ban Durations
# =============================================================================


@dataclass(frozen=True)
class _Span:
    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError("Ban duration value must be an integer")
        if self.value <= 0:
            raise ValidationError("Ban duration value must be positive")


@dataclass(frozen=True)
class Hours(_Span):
    pass


@dataclass(frozen=True)
class Days(_Span):
    pass


@dataclass(frozen=True)
class Weeks(_Span):
    pass


@dataclass(frozen=True)
class Months(_Span):
    pass


@dataclass(frozen=True)
class Years(_Span):
    pass


@dataclass(frozen=True)
class Permanent:
    pass


BanDuration = Hours | Days | Weeks | Months | Years | Permanent

DURATION_TYPES: dict[str, type[_Span]] = {
    "hours": Hours,
    "days": Days,
    "weeks": Weeks,
    "months": Months,
    "years": Years,
}


def parse_ban_duration(raw: Mapping[str, Any] | None) -> BanDuration | None:
    """Build a BanDuration from ``{"type": ..., "value": ...}``.

    Raises:
        ValidationError: Unknown type, or a missing / non-positive value.
    """
    if raw is None:
        return None

    tag = raw.get("type")
    if tag == "permanent":
        return Permanent()
    if tag not in DURATION_TYPES:
        raise ValidationError(f"Unknown ban duration type: {tag}")
    if raw.get("value") is None:
        raise ValidationError(f"Ban duration of type {tag} requires a value")
    return DURATION_TYPES[tag](raw["value"])


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar-aware month addition, clamping to the target month's last day.

    Jan 31 + 1 month is Feb 28 (or 29).
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def calculate_expires_at(
    duration: BanDuration | None, now: datetime | None = None
) -> datetime | None:
    """Expiry timestamp for a ban starting at ``now``; None means permanent."""
    if duration is None or isinstance(duration, Permanent):
        return None

    start = now or utcnow()
    if isinstance(duration, Hours):
        return start + timedelta(hours=duration.value)
    if isinstance(duration, Days):
        return start + timedelta(days=duration.value)
    if isinstance(duration, Weeks):
        return start + timedelta(weeks=duration.value)
    if isinstance(duration, Months):
        return add_months(start, duration.value)
    if isinstance(duration, Years):
        return add_months(start, 12 * duration.value)
    raise ValidationError(f"Unsupported ban duration: {duration!r}")


# =============================================================================
# Read Models
# =============================================================================


@dataclass
class BanInfo:
    """What the auth flow needs to know about a user's ban."""

    is_banned: bool
    can_appeal: bool = False
    ban_id: UUID | None = None
    ban_type: str | None = None
    reason: str | None = None
    expires_at: datetime | None = None
    appeal_status: str | None = None


@dataclass
class PendingAppeal:
    """An appeal awaiting admin review."""

    ban_id: UUID
    user_id: str
    username: str
    ban_type: str
    reason: str
    appeal_message: str | None
    appealed_at: datetime | None
    created_at: datetime


def _not_banned() -> BanInfo:
    return BanInfo(is_banned=False, can_appeal=False)


# =============================================================================
# Ban Manager
# =============================================================================


class BanManager:
    """Ban, unban and appeal operations on one database session.

    Mutations commit on success and roll back on failure. Expected business
    failures come back as ``Outcome`` failures; database errors are logged
    and reported as ``infrastructure`` failures, never as success.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.events = SecurityEventLog(db)

    async def _rollback(self) -> None:
        with contextlib.suppress(SQLAlchemyError):
            await self.db.rollback()

    async def _active_ban_id(self, user_id: str) -> UUID | None:
        return await self.db.scalar(
            select(BanRecord.id)
            .where(BanRecord.user_id == user_id)
            .where(BanRecord.is_active.is_(True))
            .limit(1)
        )

    async def ban_user(
        self,
        user_id: str,
        banned_by: str,
        ban_type: str | BanType,
        reason: str,
        duration: BanDuration | None = None,
        internal_notes: str | None = None,
    ) -> Outcome[BanRecord]:
        """Ban a user, superseding any ban they already have.

        The user row is locked, the prior active ban deactivated and the new
        ban inserted in one transaction.

        Args:
            user_id: User to ban.
            banned_by: Admin user ID.
            ban_type: temporary, permanent or shadow.
            reason: Reason shown to the user.
            duration: How long the ban lasts; None or Permanent for no expiry.
                The expiry follows the duration whatever the ban type.
            internal_notes: Admin-only notes.

        Returns:
            Outcome with the new BanRecord, or a ``user_not_found``,
            ``invalid_input``, ``conflict`` or ``infrastructure`` failure.
        """
        try:
            ban_type = BanType(ban_type)
        except ValueError:
            return Outcome.failure(
                ErrorKind.INVALID_INPUT, f"Invalid ban type: {ban_type}"
            )
        if not reason or not reason.strip():
            return Outcome.failure(ErrorKind.INVALID_INPUT, "A ban reason is required")

        now = utcnow()
        expires_at = calculate_expires_at(duration, now)

        try:
            user = await self.db.scalar(
                select(User.id).where(User.id == user_id).with_for_update()
            )
            if user is None:
                await self._rollback()
                return Outcome.failure(ErrorKind.USER_NOT_FOUND, "User not found")

            await self.db.execute(
                update(BanRecord)
                .where(BanRecord.user_id == user_id)
                .where(BanRecord.is_active.is_(True))
                .values(is_active=False, updated_at=now)
            )

            ban = BanRecord(
                user_id=user_id,
                banned_by=banned_by,
                ban_type=ban_type.value,
                reason=reason,
                internal_notes=internal_notes,
                expires_at=expires_at,
                is_active=True,
                appeal_status=AppealStatus.NONE.value,
                created_at=now,
                updated_at=now,
            )
            self.db.add(ban)
            await self.db.flush()

            await self.events.log(
                "account.banned",
                user_id=user_id,
                details={
                    "banned_by": banned_by,
                    "ban_type": ban_type.value,
                    "reason": reason,
                    "expires_at": expires_at.isoformat() if expires_at else "permanent",
                },
            )
            await self.db.commit()
        except IntegrityError:
            await self._rollback()
            logger.warning("Concurrent ban detected for user %s", user_id)
            return Outcome.failure(
                ErrorKind.CONFLICT, "User was banned by a concurrent request"
            )
        except SQLAlchemyError:
            await self._rollback()
            logger.exception("Failed to ban user %s", user_id)
            return Outcome.failure(ErrorKind.INFRASTRUCTURE, "Failed to ban user")

        logger.info("User %s banned (%s) by %s", user_id, ban_type.value, banned_by)
        return Outcome.success(ban)

    async def unban_user(
        self, user_id: str, unbanned_by: str, reason: str | None = None
    ) -> Outcome[BanRecord]:
        """Lift the user's active ban and close its appeal as approved.

        Returns:
            Outcome with the lifted ban, or ``no_active_ban``.
        """
        now = utcnow()
        try:
            ban_id = await self._active_ban_id(user_id)
            if ban_id is None:
                await self._rollback()
                return Outcome.failure(ErrorKind.NO_ACTIVE_BAN, "No active ban found")

            result = await self.db.execute(
                update(BanRecord)
                .where(BanRecord.id == ban_id)
                .where(BanRecord.is_active.is_(True))
                .values(
                    is_active=False,
                    appeal_status=AppealStatus.APPROVED.value,
                    appeal_reviewed_by=unbanned_by,
                    appeal_reviewed_at=now,
                    appeal_response=reason or DEFAULT_UNBAN_RESPONSE,
                    updated_at=now,
                )
            )
            if result.rowcount == 0:
                await self._rollback()
                return Outcome.failure(ErrorKind.NO_ACTIVE_BAN, "No active ban found")

            await self.events.log(
                "account.unbanned",
                user_id=user_id,
                details={"unbanned_by": unbanned_by, "reason": reason},
            )
            await self.db.commit()
            ban = await self.db.get(BanRecord, ban_id, populate_existing=True)
        except SQLAlchemyError:
            await self._rollback()
            logger.exception("Failed to unban user %s", user_id)
            return Outcome.failure(ErrorKind.INFRASTRUCTURE, "Failed to unban user")

        logger.info("User %s unbanned by %s", user_id, unbanned_by)
        return Outcome.success(ban)

    async def check_ban_status(self, user_id: str) -> BanInfo:
        """Current ban state for the auth gate.

        Expired bans still flagged active are deactivated on the way. If the
        lookup itself fails the user is reported as not banned, so a database
        hiccup never locks out legitimate users.
        """
        try:
            now = utcnow()
            ban = await self.db.scalar(
                select(BanRecord)
                .where(BanRecord.user_id == user_id)
                .where(BanRecord.is_active.is_(True))
                .where(or_(BanRecord.expires_at.is_(None), BanRecord.expires_at > now))
                .limit(1)
            )

            if ban is None:
                result = await self.db.execute(
                    update(BanRecord)
                    .where(BanRecord.user_id == user_id)
                    .where(BanRecord.is_active.is_(True))
                    .where(BanRecord.expires_at.is_not(None))
                    .where(BanRecord.expires_at <= now)
                    .values(is_active=False, updated_at=now)
                )
                await self.db.commit()
                if result.rowcount:
                    logger.info("Expired ban deactivated for user %s", user_id)
                return _not_banned()

            return BanInfo(
                is_banned=True,
                can_appeal=ban.appeal_status == AppealStatus.NONE.value,
                ban_id=ban.id,
                ban_type=ban.ban_type,
                reason=ban.reason,
                expires_at=ban.expires_at,
                appeal_status=ban.appeal_status,
            )
        except Exception:
            logger.exception("Ban status check failed for user %s; allowing", user_id)
            await self._rollback()
            return _not_banned()

    async def submit_ban_appeal(
        self, user_id: str, appeal_message: str
    ) -> Outcome[BanRecord]:
        """Open an appeal against the user's current ban.

        Only an unexpired active ban with no prior appeal can be appealed.

        Returns:
            Outcome with the appealed ban, or ``no_appealable_ban``.
        """
        if not appeal_message or not appeal_message.strip():
            return Outcome.failure(
                ErrorKind.INVALID_INPUT, "An appeal message is required"
            )

        now = utcnow()
        appealable = (
            BanRecord.is_active.is_(True),
            BanRecord.appeal_status == AppealStatus.NONE.value,
            or_(BanRecord.expires_at.is_(None), BanRecord.expires_at > now),
        )
        try:
            ban_id = await self.db.scalar(
                select(BanRecord.id)
                .where(BanRecord.user_id == user_id, *appealable)
                .limit(1)
            )
            if ban_id is None:
                await self._rollback()
                return Outcome.failure(
                    ErrorKind.NO_APPEALABLE_BAN, "No appealable ban found"
                )

            result = await self.db.execute(
                update(BanRecord)
                .where(BanRecord.id == ban_id, *appealable)
                .values(
                    appeal_status=AppealStatus.PENDING.value,
                    appeal_message=appeal_message,
                    appealed_at=now,
                    updated_at=now,
                )
            )
            if result.rowcount == 0:
                await self._rollback()
                return Outcome.failure(
                    ErrorKind.NO_APPEALABLE_BAN, "No appealable ban found"
                )

            await self.events.log(
                "account.ban_appeal_submitted",
                user_id=user_id,
                details={"ban_id": str(ban_id)},
            )
            await self.db.commit()
            ban = await self.db.get(BanRecord, ban_id, populate_existing=True)
        except SQLAlchemyError:
            await self._rollback()
            logger.exception("Failed to submit appeal for user %s", user_id)
            return Outcome.failure(ErrorKind.INFRASTRUCTURE, "Failed to submit appeal")

        return Outcome.success(ban)

    async def review_ban_appeal(
        self, ban_id: UUID, reviewed_by: str, decision: str, response: str
    ) -> Outcome[BanRecord]:
        """Decide a pending appeal. Approval also lifts the ban.

        Args:
            ban_id: Ban whose appeal is being decided.
            reviewed_by: Admin user ID.
            decision: approved or rejected.
            response: Message shown to the user.

        Returns:
            Outcome with the reviewed ban, or ``appeal_not_found`` if the
            appeal is not pending.
        """
        if decision not in APPEAL_DECISIONS:
            return Outcome.failure(
                ErrorKind.INVALID_INPUT,
                f"Invalid decision: {decision}. Must be approved or rejected",
            )

        now = utcnow()
        values: dict[str, Any] = {
            "appeal_status": decision,
            "appeal_reviewed_by": reviewed_by,
            "appeal_reviewed_at": now,
            "appeal_response": response,
            "updated_at": now,
        }
        if decision == AppealStatus.APPROVED.value:
            values["is_active"] = False

        try:
            result = await self.db.execute(
                update(BanRecord)
                .where(BanRecord.id == ban_id)
                .where(BanRecord.appeal_status == AppealStatus.PENDING.value)
                .values(**values)
            )
            if result.rowcount == 0:
                await self._rollback()
                return Outcome.failure(
                    ErrorKind.APPEAL_NOT_FOUND, "Appeal not found or already reviewed"
                )

            ban = await self.db.get(BanRecord, ban_id, populate_existing=True)
            await self.events.log(
                "account.ban_appeal_reviewed",
                user_id=ban.user_id if ban else None,
                details={
                    "ban_id": str(ban_id),
                    "reviewed_by": reviewed_by,
                    "decision": decision,
                },
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self._rollback()
            logger.exception("Failed to review appeal for ban %s", ban_id)
            return Outcome.failure(ErrorKind.INFRASTRUCTURE, "Failed to review appeal")

        logger.info("Appeal on ban %s %s by %s", ban_id, decision, reviewed_by)
        return Outcome.success(ban)

    async def get_ban_history(self, user_id: str) -> list[BanRecord]:
        """All bans for a user, oldest first."""
        result = await self.db.execute(
            select(BanRecord)
            .where(BanRecord.user_id == user_id)
            .order_by(BanRecord.created_at)
        )
        return list(result.scalars().all())

    async def get_pending_appeals(self) -> list[PendingAppeal]:
        """Appeals awaiting review, oldest appeal first."""
        result = await self.db.execute(
            select(BanRecord, User.username)
            .outerjoin(User, BanRecord.user_id == User.id)
            .where(BanRecord.appeal_status == AppealStatus.PENDING.value)
            .order_by(BanRecord.appealed_at)
        )
        return [
            PendingAppeal(
                ban_id=ban.id,
                user_id=ban.user_id,
                username=username or "Unknown",
                ban_type=ban.ban_type,
                reason=ban.reason,
                appeal_message=ban.appeal_message,
                appealed_at=ban.appealed_at,
                created_at=ban.created_at,
            )
            for ban, username in result.all()
        ]
