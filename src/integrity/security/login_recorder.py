"""Login telemetry recording and background correlation.

``LoginRecorder.record_login`` is called by the auth flow after every
attempt. It never raises: telemetry must not block authentication.
Successful logins are handed to a ``CorrelationWorker`` as a
``CorrelationJob``; the worker drains a bounded queue on its own task and
database session, so a slow or failing correlation pass never delays the
login response.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from integrity.config import Settings, get_settings
from integrity.db.database import async_session, utcnow
from integrity.db.models import DeviceFingerprint, LoginAttempt, LoginMethod
from integrity.errors import ValidationError
from integrity.security.correlation import MultiAccountCorrelator
from integrity.security.fingerprint import (
    UNKNOWN_IP,
    FingerprintData,
    anonymize_ip,
    generate_fingerprint_hash,
    truncate_ip,
)
from integrity.security.monitoring import LoginMonitor

logger = logging.getLogger("integrity.logins")

# Provider labels recorded under a generic method
LOGIN_METHOD_ALIASES = {"discord": LoginMethod.OAUTH}


def normalize_login_method(method: str | LoginMethod) -> LoginMethod:
    """Map a login method label to ``LoginMethod``.

    Raises:
        ValidationError: If the label is not a known method.
    """
    if isinstance(method, LoginMethod):
        return method
    label = method.strip().lower()
    if label in LOGIN_METHOD_ALIASES:
        return LOGIN_METHOD_ALIASES[label]
    try:
        return LoginMethod(label)
    except ValueError as e:
        raise ValidationError(f"Unknown login method: {method}") from e


@dataclass
class LoginData:
    """One authentication attempt as reported by the auth flow."""

    user_id: str
    ip_address: str
    login_method: str | LoginMethod
    success: bool
    user_agent: str | None = None
    failure_reason: str | None = None
    country: str | None = None
    city: str | None = None
    fingerprint_data: FingerprintData | None = None


@dataclass(frozen=True)
class CorrelationJob:
    """Request to correlate one successful login."""

    user_id: str
    ip_hash: str | None
    fingerprint_id: UUID | None = None


# =============================================================================
# Correlation Worker
# =============================================================================


class CorrelationWorker:
    """Bounded queue of correlation jobs drained by one background task.

    ``submit`` never blocks: when the queue is full the job is dropped with
    a warning.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        maxsize: int | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory or async_session
        if maxsize is None:
            maxsize = self.settings.correlation_queue_size
        self._queue: asyncio.Queue[CorrelationJob] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None
        self._dropped = 0
        self._processed = 0

    def submit(self, job: CorrelationJob) -> bool:
        """Enqueue a job. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                "Correlation queue full (%d), dropping job for user %s",
                self._queue.maxsize,
                job.user_id,
            )
            return False
        return True

    async def start(self) -> None:
        """Start the background task."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background task. Queued jobs are discarded."""
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def process(self, job: CorrelationJob) -> None:
        """Run one correlation pass on a fresh session."""
        async with self.session_factory() as session:
            correlator = MultiAccountCorrelator(session, self.settings)
            await correlator.detect_and_store(
                job.user_id, job.ip_hash, job.fingerprint_id
            )

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
                self._processed += 1
            except Exception:
                logger.exception("Correlation failed for user %s", job.user_id)
            finally:
                self._queue.task_done()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        """Jobs waiting in the queue."""
        return self._queue.qsize()

    @property
    def dropped(self) -> int:
        """Jobs dropped because the queue was full."""
        return self._dropped

    @property
    def processed(self) -> int:
        """Jobs completed without error."""
        return self._processed


# =============================================================================
# Recorder
# =============================================================================


class LoginRecorder:
    """Writes login attempts and device fingerprints."""

    def __init__(
        self,
        db: AsyncSession,
        worker: CorrelationWorker | None = None,
        ip_hash_secret: str | None = None,
    ):
        """Initialize the recorder.

        Args:
            db: Async database session; ``record_login`` commits on it.
            worker: Where successful logins are sent for correlation.
            ip_hash_secret: HMAC key for IP hashes; defaults to settings.
        """
        self.db = db
        self.worker = worker
        self.ip_hash_secret = ip_hash_secret

    async def upsert_fingerprint(
        self, user_id: str, data: FingerprintData
    ) -> DeviceFingerprint:
        """Return the user's fingerprint row for ``data``, creating it if new.

        A re-observed fingerprint only has ``last_seen_at`` bumped.
        """
        fingerprint_hash = generate_fingerprint_hash(data)
        query = (
            select(DeviceFingerprint)
            .where(DeviceFingerprint.fingerprint_hash == fingerprint_hash)
            .where(DeviceFingerprint.user_id == user_id)
        )

        existing = (await self.db.execute(query)).scalar_one_or_none()
        if existing is not None:
            existing.last_seen_at = utcnow()
            await self.db.flush()
            return existing

        now = utcnow()
        fingerprint = DeviceFingerprint(
            fingerprint_hash=fingerprint_hash,
            user_id=user_id,
            user_agent=data.user_agent or "",
            screen_resolution=data.screen_resolution,
            timezone=data.timezone,
            language=data.language,
            platform=data.platform,
            first_seen_at=now,
            last_seen_at=now,
        )
        self.db.add(fingerprint)
        try:
            await self.db.flush()
        except IntegrityError:
            # Same device recorded by a concurrent login
            await self.db.rollback()
            existing = (await self.db.execute(query)).scalar_one()
            existing.last_seen_at = utcnow()
            await self.db.flush()
            return existing
        return fingerprint

    def _hash_ip(self, ip: str) -> str:
        if not ip or ip == UNKNOWN_IP:
            return UNKNOWN_IP
        return anonymize_ip(ip, self.ip_hash_secret)

    async def record_login(self, data: LoginData) -> LoginAttempt | None:
        """Record a login attempt, run the risk detectors and queue
        correlation for successes.

        Never raises. Any failure is logged and the attempt is dropped.

        Returns:
            The stored attempt, or None if recording failed.
        """
        try:
            method = normalize_login_method(data.login_method)

            fingerprint_id: UUID | None = None
            if data.fingerprint_data is not None:
                fingerprint = await self.upsert_fingerprint(
                    data.user_id, data.fingerprint_data
                )
                fingerprint_id = fingerprint.id

            ip_hash = self._hash_ip(data.ip_address)
            attempt = LoginAttempt(
                user_id=data.user_id,
                ip_hash=ip_hash,
                ip_truncated=truncate_ip(data.ip_address),
                user_agent=data.user_agent,
                fingerprint_id=fingerprint_id,
                method=method.value,
                success=data.success,
                failure_reason=data.failure_reason,
                country=data.country,
                city=data.city,
                created_at=utcnow(),
            )
            self.db.add(attempt)
            await self.db.commit()
        except Exception:
            logger.exception("Failed to record login for user %s", data.user_id)
            with contextlib.suppress(Exception):
                await self.db.rollback()
            return None

        await self._monitor(attempt)

        if data.success:
            self._enqueue_correlation(
                CorrelationJob(
                    user_id=data.user_id,
                    ip_hash=None if ip_hash == UNKNOWN_IP else ip_hash,
                    fingerprint_id=fingerprint_id,
                )
            )
        return attempt

    async def _monitor(self, attempt: LoginAttempt) -> None:
        try:
            await LoginMonitor(self.db).inspect(attempt)
            await self.db.commit()
        except Exception:
            logger.exception("Login monitoring failed for user %s", attempt.user_id)
            with contextlib.suppress(Exception):
                await self.db.rollback()

    def _enqueue_correlation(self, job: CorrelationJob) -> None:
        if self.worker is None:
            logger.debug("No correlation worker; skipping user %s", job.user_id)
            return
        try:
            self.worker.submit(job)
        except Exception:
            logger.exception("Failed to queue correlation for user %s", job.user_id)

    async def get_login_history(
        self, user_id: str, limit: int = 50
    ) -> list[LoginAttempt]:
        """Most recent attempts for a user, newest first."""
        result = await self.db.execute(
            select(LoginAttempt)
            .where(LoginAttempt.user_id == user_id)
            .order_by(desc(LoginAttempt.created_at))
            .limit(limit)
        )
        return list(result.scalars().all())
