"""Risk signals computed from stored login attempts.

Two detectors run over ``login_attempts``, keyed by the HMAC ``ip_hash``:

- Brute force: failed attempts from one IP inside a sliding window
  (5 suspected, 10 detected, 15 minutes by default).
- Login anomaly: a successful login from a different IP within an hour of
  the previous one (impossible travel), or from a user agent the user has
  not logged in with during the last week (new device).

Detection is advisory. A database error yields "no anomaly" and is logged.
``LoginMonitor.inspect`` runs the detector that fits an attempt and writes
a security event when a threshold is crossed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from integrity.db.database import utcnow
from integrity.db.models import LoginAttempt
from integrity.security.events import SecurityEventLog
from integrity.security.fingerprint import UNKNOWN_IP

logger = logging.getLogger("integrity.monitoring")

BRUTE_FORCE_WINDOW_MINUTES = 15
BRUTE_FORCE_SUSPECTED_AT = 5
BRUTE_FORCE_DETECTED_AT = 10

ANOMALY_LOOKBACK = timedelta(days=7)
ANOMALY_HISTORY_SIZE = 10
IMPOSSIBLE_TRAVEL_WINDOW = timedelta(hours=1)
# User agents are compared on their first characters only
USER_AGENT_PREFIX = 50

# Anomalies at or above this confidence are written to the event log
EVENT_CONFIDENCE = 0.5


@dataclass
class AnomalyResult:
    """Outcome of one detector."""

    is_anomaly: bool = False
    anomaly_type: str | None = None
    confidence: float = 0.0
    details: dict[str, Any] = field(default_factory=dict)


def _known_ip(ip_hash: str | None) -> bool:
    return bool(ip_hash) and ip_hash != UNKNOWN_IP


def _agent_key(user_agent: str | None) -> str:
    return (user_agent or "")[:USER_AGENT_PREFIX]


class LoginMonitor:
    """Brute-force and login-anomaly detection over login attempts."""

    def __init__(self, db: AsyncSession, events: SecurityEventLog | None = None):
        self.db = db
        self.events = events or SecurityEventLog(db)

    async def count_failed_attempts(
        self, ip_hash: str, since: datetime, until: datetime
    ) -> int:
        """Failed attempts from one IP hash between two points in time."""
        return (
            await self.db.scalar(
                select(func.count(LoginAttempt.id))
                .where(LoginAttempt.ip_hash == ip_hash)
                .where(LoginAttempt.success.is_(False))
                .where(LoginAttempt.created_at >= since)
                .where(LoginAttempt.created_at <= until)
            )
            or 0
        )

    async def detect_brute_force(
        self,
        ip_hash: str,
        window_minutes: int = BRUTE_FORCE_WINDOW_MINUTES,
        now: datetime | None = None,
    ) -> AnomalyResult:
        """Flag an IP with many recent failed attempts.

        Attempts with an unknown IP are never grouped together.
        """
        if not _known_ip(ip_hash):
            return AnomalyResult()

        now = now or utcnow()
        since = now - timedelta(minutes=window_minutes)
        try:
            failed = await self.count_failed_attempts(ip_hash, since, now)
        except SQLAlchemyError:
            logger.exception("Brute force detection failed")
            return AnomalyResult()

        details = {"failed_attempts": failed, "window_minutes": window_minutes}
        if failed >= BRUTE_FORCE_DETECTED_AT:
            return AnomalyResult(True, "brute_force", 0.95, details)
        if failed >= BRUTE_FORCE_SUSPECTED_AT:
            return AnomalyResult(True, "brute_force_suspected", 0.7, details)
        return AnomalyResult(details=details)

    async def _recent_successes(
        self, user_id: str, now: datetime, exclude_id: UUID | None
    ) -> list[LoginAttempt]:
        query = (
            select(LoginAttempt)
            .where(LoginAttempt.user_id == user_id)
            .where(LoginAttempt.success.is_(True))
            .where(LoginAttempt.created_at >= now - ANOMALY_LOOKBACK)
            .where(LoginAttempt.created_at <= now)
        )
        if exclude_id is not None:
            query = query.where(LoginAttempt.id != exclude_id)
        result = await self.db.execute(
            query.order_by(desc(LoginAttempt.created_at)).limit(ANOMALY_HISTORY_SIZE)
        )
        return list(result.scalars().all())

    async def detect_login_anomaly(
        self,
        user_id: str,
        ip_hash: str,
        user_agent: str | None,
        now: datetime | None = None,
        exclude_id: UUID | None = None,
    ) -> AnomalyResult:
        """Compare a successful login with the user's recent ones.

        Args:
            user_id: User who logged in.
            ip_hash: HMAC hash of the login's IP.
            user_agent: Client user agent of the login.
            now: Time of the login; defaults to the current time.
            exclude_id: The login's own attempt ID, if already stored.
        """
        now = now or utcnow()
        try:
            history = await self._recent_successes(user_id, now, exclude_id)
        except SQLAlchemyError:
            logger.exception("Login anomaly detection failed for user %s", user_id)
            return AnomalyResult()

        if not history:
            return AnomalyResult(
                True, "new_device", 0.3, {"reason": "First login detected"}
            )

        last = history[0]
        if (
            _known_ip(last.ip_hash)
            and _known_ip(ip_hash)
            and last.ip_hash != ip_hash
        ):
            elapsed = now - last.created_at
            if elapsed < IMPOSSIBLE_TRAVEL_WINDOW:
                return AnomalyResult(
                    True,
                    "impossible_travel",
                    0.8,
                    {
                        "previous_ip": last.ip_truncated,
                        "time_difference_hours": round(
                            elapsed.total_seconds() / 3600, 3
                        ),
                    },
                )

        known_agents = {_agent_key(a.user_agent) for a in history if a.user_agent}
        if known_agents and _agent_key(user_agent) not in known_agents:
            return AnomalyResult(
                True, "new_device", 0.5, {"reason": "New user agent detected"}
            )

        return AnomalyResult()

    async def inspect(self, attempt: LoginAttempt) -> AnomalyResult:
        """Run the detector for a stored attempt and log what it finds.

        Failures feed brute-force detection; an event is written only when
        the count reaches a threshold, not on every later failure.
        Successes feed anomaly detection. The caller commits.
        """
        if not attempt.success:
            result = await self.detect_brute_force(
                attempt.ip_hash, now=attempt.created_at
            )
            failed = result.details.get("failed_attempts")
            if failed == BRUTE_FORCE_DETECTED_AT:
                await self._log("login.brute_force_detected", attempt, result)
            elif failed == BRUTE_FORCE_SUSPECTED_AT:
                await self._log("login.suspicious_failures", attempt, result)
            return result

        result = await self.detect_login_anomaly(
            attempt.user_id,
            attempt.ip_hash,
            attempt.user_agent,
            now=attempt.created_at,
            exclude_id=attempt.id,
        )
        if result.is_anomaly and result.confidence >= EVENT_CONFIDENCE:
            await self._log(f"login.{result.anomaly_type}", attempt, result)
        return result

    async def _log(
        self, event_type: str, attempt: LoginAttempt, result: AnomalyResult
    ) -> None:
        await self.events.log(
            event_type,
            user_id=attempt.user_id,
            ip_address=attempt.ip_truncated,
            user_agent=attempt.user_agent,
            details={
                "anomaly_type": result.anomaly_type,
                "confidence": result.confidence,
                **result.details,
            },
        )
        logger.warning(
            "%s for user %s (confidence %.2f)",
            result.anomaly_type,
            attempt.user_id,
            result.confidence,
        )
