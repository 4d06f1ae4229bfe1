"""Security event log.

Every event is persisted to ``security_events`` and also written as one
JSON line to the ``integrity.security_events`` logger so log shippers can
alert on it without querying the database. Admins triage events by
resolving them; ``stats`` summarizes the log for a dashboard.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal
from uuid import UUID

from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from integrity.db.database import utcnow
from integrity.db.models import SecurityEvent, Severity
from integrity.errors import ErrorKind, Outcome

logger = logging.getLogger("integrity.security_events")

# Substrings of an event type, checked from most to least severe
SEVERITY_MARKERS: tuple[tuple[Severity, tuple[str, ...]], ...] = (
    (Severity.CRITICAL, ("brute_force", "ban_evasion", "malware", "phishing")),
    (
        Severity.HIGH,
        ("account_locked", "impossible_travel", "multi_account", "abuse"),
    ),
    (Severity.MEDIUM, ("failed", "suspicious", "rate_limit", "invalid")),
)

# Day-over-day change that counts as a trend
TREND_RISE = 1.2
TREND_FALL = 0.8

Trend = Literal["increasing", "decreasing", "stable"]


def severity_for_event_type(event_type: str) -> Severity:
    """Derive severity from the event type name."""
    for severity, markers in SEVERITY_MARKERS:
        if any(marker in event_type for marker in markers):
            return severity
    return Severity.LOW


def classify_trend(last_day: int, previous_day: int) -> Trend:
    """Compare event volume in the last 24 hours with the 24 before."""
    if last_day > previous_day * TREND_RISE:
        return "increasing"
    if last_day < previous_day * TREND_FALL:
        return "decreasing"
    return "stable"


@dataclass
class SecurityStats:
    """Dashboard summary of the event log."""

    total_events: int = 0
    unresolved_events: int = 0
    critical_events: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)
    events_by_severity: dict[str, int] = field(default_factory=dict)
    recent_trend: Trend = "stable"


class SecurityEventLog:
    """Audit trail bound to a database session.

    Events are added to the caller's session and flushed, so they commit
    or roll back together with the change they describe.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        event_type: str,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> SecurityEvent:
        """Record a security event.

        Args:
            event_type: Dotted event name, e.g. ``account.banned``.
            user_id: Subject of the event, if any.
            ip_address: Truncated or hashed IP; never a raw address.
            user_agent: Client user agent.
            details: JSON-serializable context.

        Returns:
            The pending SecurityEvent row.
        """
        severity = severity_for_event_type(event_type)
        event = SecurityEvent(
            event_type=event_type,
            severity=severity.value,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details=details or {},
            created_at=utcnow(),
        )
        self.db.add(event)
        await self.db.flush()

        logger.info(
            json.dumps(
                {
                    "level": "security",
                    "eventType": event_type,
                    "severity": severity.value,
                    "userId": user_id,
                    "ip": ip_address,
                    "timestamp": event.created_at.isoformat(),
                    "details": details or {},
                },
                default=str,
            )
        )
        return event

    async def recent(
        self, limit: int = 100, resolved: bool | None = None
    ) -> list[SecurityEvent]:
        """Newest events first, optionally only resolved or unresolved ones."""
        query = select(SecurityEvent)
        if resolved is not None:
            query = query.where(SecurityEvent.resolved.is_(resolved))
        result = await self.db.execute(
            query.order_by(desc(SecurityEvent.created_at)).limit(limit)
        )
        return list(result.scalars().all())

    async def by_user(self, user_id: str, limit: int = 50) -> list[SecurityEvent]:
        """Newest events about one user."""
        result = await self.db.execute(
            select(SecurityEvent)
            .where(SecurityEvent.user_id == user_id)
            .order_by(desc(SecurityEvent.created_at))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def by_type(
        self, event_type: str, limit: int = 100
    ) -> list[SecurityEvent]:
        """Newest events of one type."""
        result = await self.db.execute(
            select(SecurityEvent)
            .where(SecurityEvent.event_type == event_type)
            .order_by(desc(SecurityEvent.created_at))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def resolve(
        self, event_id: UUID, resolved_by: str
    ) -> Outcome[SecurityEvent]:
        """Mark an event as triaged.

        Resolving an already resolved event records the new resolver.

        Returns:
            Outcome with the updated event, or ``event_not_found``.
        """
        try:
            result = await self.db.execute(
                update(SecurityEvent)
                .where(SecurityEvent.id == event_id)
                .values(resolved=True, resolved_by=resolved_by, resolved_at=utcnow())
            )
            if result.rowcount == 0:
                await self.db.rollback()
                return Outcome.failure(
                    ErrorKind.EVENT_NOT_FOUND, "Security event not found"
                )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to resolve security event %s", event_id)
            return Outcome.failure(
                ErrorKind.INFRASTRUCTURE, "Failed to resolve security event"
            )

        event = await self.db.get(SecurityEvent, event_id, populate_existing=True)
        return Outcome.success(event)

    async def _count(self, *criteria) -> int:
        query = select(func.count(SecurityEvent.id))
        for criterion in criteria:
            query = query.where(criterion)
        return await self.db.scalar(query) or 0

    async def _count_by(self, column) -> dict[str, int]:
        result = await self.db.execute(
            select(column, func.count(SecurityEvent.id)).group_by(column)
        )
        return {key: count for key, count in result.all()}

    async def stats(self, now: datetime | None = None) -> SecurityStats:
        """Totals, open criticals, breakdowns and the day-over-day trend."""
        now = now or utcnow()
        day_ago = now - timedelta(hours=24)
        two_days_ago = now - timedelta(hours=48)

        last_day = await self._count(SecurityEvent.created_at >= day_ago)
        previous_day = await self._count(
            SecurityEvent.created_at >= two_days_ago,
            SecurityEvent.created_at < day_ago,
        )
        return SecurityStats(
            total_events=await self._count(),
            unresolved_events=await self._count(SecurityEvent.resolved.is_(False)),
            critical_events=await self._count(
                SecurityEvent.resolved.is_(False),
                SecurityEvent.severity == Severity.CRITICAL.value,
            ),
            events_by_type=await self._count_by(SecurityEvent.event_type),
            events_by_severity=await self._count_by(SecurityEvent.severity),
            recent_trend=classify_trend(last_day, previous_day),
        )
