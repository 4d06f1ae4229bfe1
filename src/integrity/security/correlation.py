"""Multi-account detection.

After a successful login the correlator looks for other accounts that
share the login's IP (by HMAC hash) or its exact device fingerprint, and
records each pairing once as a ``MultiAccountLink`` for admin review.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from integrity.config import Settings, get_settings
from integrity.db.database import utcnow
from integrity.db.models import (
    DeviceFingerprint,
    LinkStatus,
    LinkType,
    LoginAttempt,
    MultiAccountLink,
    User,
)
from integrity.errors import ErrorKind, Outcome
from integrity.security.events import SecurityEventLog

logger = logging.getLogger("integrity.correlation")

IP_BASE_CONFIDENCE = 30
IP_CONFIDENCE_PER_LOGIN = 10
IP_MAX_CONFIDENCE = 80
FINGERPRINT_CONFIDENCE = 85
FINGERPRINT_EVIDENCE_CHARS = 16

REVIEW_STATUSES = frozenset(
    {
        LinkStatus.CONFIRMED.value,
        LinkStatus.ALLOWED.value,
        LinkStatus.FALSE_POSITIVE.value,
    }
)


def ip_match_confidence(prior_login_count: int) -> int:
    """30% base, +10% per corroborating login, capped at 80%."""
    count = max(prior_login_count, 0)
    confidence = IP_BASE_CONFIDENCE + IP_CONFIDENCE_PER_LOGIN * count
    return min(confidence, IP_MAX_CONFIDENCE)


@dataclass
class MultiAccountMatch:
    """One candidate pairing found by a detection pass."""

    linked_user_id: str
    link_type: LinkType
    confidence: int
    evidence: dict[str, Any] = field(default_factory=dict)


@dataclass
class LinkSummary:
    """Admin view of a link with usernames resolved."""

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


class MultiAccountCorrelator:
    """Runs the IP and fingerprint detection passes for one login."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        """Initialize the correlator.

        Args:
            db: Async database session; the correlator commits on it.
            settings: Thresholds and candidate limits.
        """
        self.db = db
        self.settings = settings or get_settings()
        self.events = SecurityEventLog(db)

    async def find_ip_matches(
        self, user_id: str, ip_hash: str
    ) -> list[MultiAccountMatch]:
        """Other users with successful logins from the same IP hash."""
        login_count = func.count(LoginAttempt.id)
        result = await self.db.execute(
            select(LoginAttempt.user_id, login_count)
            .where(LoginAttempt.ip_hash == ip_hash)
            .where(LoginAttempt.user_id != user_id)
            .where(LoginAttempt.success.is_(True))
            .group_by(LoginAttempt.user_id)
            .order_by(desc(login_count), LoginAttempt.user_id)
            .limit(self.settings.max_correlation_candidates)
        )

        return [
            MultiAccountMatch(
                linked_user_id=other_user_id,
                link_type=LinkType.IP_MATCH,
                confidence=ip_match_confidence(count),
                evidence={"shared_ip_hash": ip_hash, "login_count": count},
            )
            for other_user_id, count in result.all()
        ]

    async def find_fingerprint_matches(
        self, user_id: str, fingerprint_id: UUID
    ) -> list[MultiAccountMatch]:
        """Other users who own a fingerprint with the identical hash."""
        fingerprint_hash = await self.db.scalar(
            select(DeviceFingerprint.fingerprint_hash).where(
                DeviceFingerprint.id == fingerprint_id
            )
        )
        if fingerprint_hash is None:
            return []

        result = await self.db.execute(
            select(DeviceFingerprint.user_id)
            .where(DeviceFingerprint.fingerprint_hash == fingerprint_hash)
            .where(DeviceFingerprint.user_id != user_id)
            .distinct()
            .order_by(DeviceFingerprint.user_id)
            .limit(self.settings.max_correlation_candidates)
        )

        partial_hash = fingerprint_hash[:FINGERPRINT_EVIDENCE_CHARS] + "..."
        return [
            MultiAccountMatch(
                linked_user_id=other_user_id,
                link_type=LinkType.FINGERPRINT_MATCH,
                confidence=FINGERPRINT_CONFIDENCE,
                evidence={"fingerprint_hash": partial_hash},
            )
            for other_user_id in result.scalars().all()
        ]

    async def _link_exists(self, user_id: str, match: MultiAccountMatch) -> bool:
        existing = await self.db.scalar(
            select(MultiAccountLink.id)
            .where(MultiAccountLink.primary_user_id == user_id)
            .where(MultiAccountLink.linked_user_id == match.linked_user_id)
            .where(MultiAccountLink.link_type == match.link_type.value)
            .limit(1)
        )
        return existing is not None

    async def store_match(
        self, user_id: str, match: MultiAccountMatch
    ) -> MultiAccountLink | None:
        """Insert a link for ``match`` unless one already exists.

        Each insert commits on its own; losing an insert race to another
        worker counts as "already exists".

        Returns:
            The new link, or None if the pairing was already recorded.
        """
        if await self._link_exists(user_id, match):
            return None

        link = MultiAccountLink(
            primary_user_id=user_id,
            linked_user_id=match.linked_user_id,
            link_type=match.link_type.value,
            confidence=match.confidence,
            evidence=match.evidence,
            status=LinkStatus.DETECTED.value,
            created_at=utcnow(),
        )
        self.db.add(link)

        try:
            await self.db.flush()
            if match.confidence >= self.settings.multi_account_alert_threshold:
                await self.events.log(
                    "account.multi_account_detected",
                    user_id=user_id,
                    details={
                        "linked_user_id": match.linked_user_id,
                        "link_type": match.link_type.value,
                        "confidence": match.confidence,
                    },
                )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "Link %s -> %s (%s) recorded concurrently",
                user_id,
                match.linked_user_id,
                match.link_type.value,
            )
            return None

        return link

    async def detect_and_store(
        self,
        user_id: str,
        ip_hash: str | None,
        fingerprint_id: UUID | None = None,
    ) -> list[MultiAccountLink]:
        """Run both passes for a successful login and persist new links.

        Args:
            user_id: User who just logged in.
            ip_hash: HMAC of the login IP.
            fingerprint_id: Fingerprint row recorded for the login.

        Returns:
            Links inserted by this call (existing pairings are skipped).
        """
        matches: list[MultiAccountMatch] = []
        if ip_hash:
            matches.extend(await self.find_ip_matches(user_id, ip_hash))
        if fingerprint_id is not None:
            matches.extend(
                await self.find_fingerprint_matches(user_id, fingerprint_id)
            )

        created: list[MultiAccountLink] = []
        for match in matches:
            link = await self.store_match(user_id, match)
            if link is not None:
                created.append(link)

        if created:
            logger.info(
                "Detected %d new multi-account link(s) for user %s",
                len(created),
                user_id,
            )
        return created


# =============================================================================
# Admin Review
# =============================================================================


def _links_with_usernames() -> Select:
    primary = aliased(User)
    linked = aliased(User)
    return (
        select(MultiAccountLink, primary.username, linked.username)
        .outerjoin(primary, MultiAccountLink.primary_user_id == primary.id)
        .outerjoin(linked, MultiAccountLink.linked_user_id == linked.id)
        .order_by(desc(MultiAccountLink.confidence), MultiAccountLink.created_at)
    )


async def _fetch_summaries(db: AsyncSession, query: Select) -> list[LinkSummary]:
    result = await db.execute(query)
    return [
        _summarize(link, primary_name, linked_name)
        for link, primary_name, linked_name in result.all()
    ]


async def get_multi_account_links(
    db: AsyncSession, user_id: str
) -> list[LinkSummary]:
    """Links where ``user_id`` is the primary account, highest confidence first."""
    query = _links_with_usernames().where(
        MultiAccountLink.primary_user_id == user_id
    )
    return await _fetch_summaries(db, query)


async def get_all_multi_account_links(
    db: AsyncSession, status: str | None = None, limit: int = 100
) -> list[LinkSummary]:
    """All links, optionally filtered by review status.

    Usernames that cannot be resolved are reported as "Unknown".
    """
    query = _links_with_usernames()
    if status:
        query = query.where(MultiAccountLink.status == status)
    return await _fetch_summaries(db, query.limit(limit))


async def get_multi_account_link(
    db: AsyncSession, link_id: UUID
) -> LinkSummary | None:
    """One link by ID."""
    summaries = await _fetch_summaries(
        db, _links_with_usernames().where(MultiAccountLink.id == link_id)
    )
    return summaries[0] if summaries else None


async def update_multi_account_status(
    db: AsyncSession,
    link_id: UUID,
    reviewed_by: str,
    status: str,
    notes: str | None = None,
) -> Outcome[MultiAccountLink]:
    """Record an admin's verdict on a link.

    Args:
        db: Async database session.
        link_id: Link to review.
        reviewed_by: Admin user ID.
        status: One of confirmed, allowed, false_positive.
        notes: Free-form review notes.

    Returns:
        Outcome with the updated link, or a ``link_not_found`` /
        ``invalid_input`` failure.
    """
    if status not in REVIEW_STATUSES:
        return Outcome.failure(
            ErrorKind.INVALID_INPUT,
            f"Invalid status: {status}. Must be one of: "
            + ", ".join(sorted(REVIEW_STATUSES)),
        )

    link = await db.get(MultiAccountLink, link_id)
    if link is None:
        return Outcome.failure(ErrorKind.LINK_NOT_FOUND, "Link not found")

    link.status = status
    link.reviewed_by = reviewed_by
    link.reviewed_at = utcnow()
    link.review_notes = notes
    await db.commit()

    logger.info("Link %s marked %s by %s", link_id, status, reviewed_by)
    return Outcome.success(link)


def _summarize(
    link: MultiAccountLink, primary_name: str | None, linked_name: str | None
) -> LinkSummary:
    return LinkSummary(
        id=link.id,
        primary_user_id=link.primary_user_id,
        primary_username=primary_name or "Unknown",
        linked_user_id=link.linked_user_id,
        linked_username=linked_name or "Unknown",
        link_type=link.link_type,
        confidence=link.confidence,
        status=link.status,
        evidence=link.evidence or {},
        created_at=link.created_at,
        reviewed_by=link.reviewed_by,
        reviewed_at=link.reviewed_at,
        review_notes=link.review_notes,
    )
