"""Tests for login recording and the background correlation worker."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from integrity.db.models import DeviceFingerprint, LoginMethod, MultiAccountLink
from integrity.errors import ValidationError
from integrity.security.fingerprint import FingerprintData, anonymize_ip
from integrity.security.login_recorder import (
    CorrelationJob,
    CorrelationWorker,
    LoginData,
    LoginRecorder,
    normalize_login_method,
)

DEVICE = FingerprintData(
    user_agent="Mozilla/5.0 Firefox/121",
    screen_resolution="2560x1440",
    timezone="America/Chicago",
    language="en-US",
    platform="MacIntel",
)


def login(user_id="alice", ip="203.0.113.7", success=True, **kwargs) -> LoginData:
    return LoginData(
        user_id=user_id,
        ip_address=ip,
        login_method=kwargs.pop("login_method", "password"),
        success=success,
        **kwargs,
    )


class RecordingWorker:
    """Stands in for CorrelationWorker and keeps submitted jobs."""

    def __init__(self):
        self.jobs: list[CorrelationJob] = []

    def submit(self, job: CorrelationJob) -> bool:
        self.jobs.append(job)
        return True


class BrokenSession:
    """Session whose every write fails."""

    def __init__(self):
        self.rolled_back = False

    def add(self, instance):
        pass

    async def flush(self):
        raise RuntimeError("database is gone")

    async def commit(self):
        raise RuntimeError("database is gone")

    async def execute(self, *args, **kwargs):
        raise RuntimeError("database is gone")

    async def rollback(self):
        self.rolled_back = True


# =============================================================================
# Login Methods
# =============================================================================


class TestNormalizeLoginMethod:
    """Tests for login method labels."""

    def test_known_methods(self):
        assert normalize_login_method("password") == LoginMethod.PASSWORD
        assert normalize_login_method("OTP") == LoginMethod.OTP
        assert normalize_login_method(LoginMethod.PASSKEY) == LoginMethod.PASSKEY

    def test_discord_is_oauth(self):
        assert normalize_login_method("discord") == LoginMethod.OAUTH

    def test_unknown_method(self):
        with pytest.raises(ValidationError):
            normalize_login_method("carrier-pigeon")


# =============================================================================
# Recorder
# =============================================================================


class TestRecordLogin:
    """Tests for LoginRecorder.record_login."""

    @pytest.mark.asyncio
    async def test_stores_hashed_and_truncated_ip(self, db):
        attempt = await LoginRecorder(db).record_login(login())

        assert attempt is not None
        assert attempt.ip_hash == anonymize_ip("203.0.113.7")
        assert attempt.ip_truncated == "203.0.113.0"
        assert "203.0.113.7" not in (attempt.ip_hash, attempt.ip_truncated)
        assert attempt.method == "password"
        assert attempt.success is True

    @pytest.mark.asyncio
    async def test_discord_stored_as_oauth(self, db):
        attempt = await LoginRecorder(db).record_login(login(login_method="discord"))

        assert attempt.method == "oauth"

    @pytest.mark.asyncio
    async def test_unknown_ip_is_not_hashed(self, db):
        worker = RecordingWorker()

        attempt = await LoginRecorder(db, worker=worker).record_login(
            login(ip="unknown")
        )

        assert attempt.ip_hash == "unknown"
        assert attempt.ip_truncated == "unknown"
        assert worker.jobs[0].ip_hash is None

    @pytest.mark.asyncio
    async def test_success_is_queued_for_correlation(self, db):
        worker = RecordingWorker()

        attempt = await LoginRecorder(db, worker=worker).record_login(
            login(fingerprint_data=DEVICE)
        )

        assert worker.jobs == [
            CorrelationJob(
                user_id="alice",
                ip_hash=attempt.ip_hash,
                fingerprint_id=attempt.fingerprint_id,
            )
        ]
        assert attempt.fingerprint_id is not None

    @pytest.mark.asyncio
    async def test_failure_is_not_queued(self, db):
        worker = RecordingWorker()

        attempt = await LoginRecorder(db, worker=worker).record_login(
            login(success=False, failure_reason="bad_password")
        )

        assert attempt.failure_reason == "bad_password"
        assert worker.jobs == []

    @pytest.mark.asyncio
    async def test_database_failure_never_raises(self):
        session = BrokenSession()
        worker = RecordingWorker()

        result = await LoginRecorder(session, worker=worker).record_login(login())

        assert result is None
        assert session.rolled_back is True
        assert worker.jobs == []

    @pytest.mark.asyncio
    async def test_bad_method_never_raises(self, db):
        assert await LoginRecorder(db).record_login(login(login_method="sms")) is None

    @pytest.mark.asyncio
    async def test_history_newest_first(self, db):
        recorder = LoginRecorder(db)
        first = await recorder.record_login(login())
        second = await recorder.record_login(login(success=False))
        second.created_at = first.created_at + timedelta(seconds=1)
        await db.commit()

        history = await recorder.get_login_history("alice")

        assert [a.id for a in history] == [second.id, first.id]
        assert len(await recorder.get_login_history("alice", limit=1)) == 1


class TestUpsertFingerprint:
    """Tests for device fingerprint upserts."""

    @pytest.mark.asyncio
    async def test_repeat_observation_bumps_last_seen(self, db):
        recorder = LoginRecorder(db)
        first = await recorder.upsert_fingerprint("alice", DEVICE)
        await db.commit()
        first_seen = first.first_seen_at
        last_seen = first.last_seen_at

        await asyncio.sleep(0.01)
        again = await recorder.upsert_fingerprint("alice", DEVICE)
        await db.commit()

        assert again.id == first.id
        assert again.first_seen_at == first_seen
        assert again.last_seen_at > last_seen
        count = await db.scalar(select(func.count(DeviceFingerprint.id)))
        assert count == 1

    @pytest.mark.asyncio
    async def test_same_device_for_two_users(self, db):
        recorder = LoginRecorder(db)

        mine = await recorder.upsert_fingerprint("alice", DEVICE)
        theirs = await recorder.upsert_fingerprint("bob", DEVICE)

        assert mine.id != theirs.id
        assert mine.fingerprint_hash == theirs.fingerprint_hash


# =============================================================================
# Correlation Worker
# =============================================================================


class TestCorrelationWorker:
    """Tests for the bounded background queue."""

    @pytest.mark.asyncio
    async def test_full_queue_drops_without_blocking(self, session_factory):
        worker = CorrelationWorker(session_factory, maxsize=1)

        assert worker.submit(CorrelationJob("alice", "h1")) is True
        assert worker.submit(CorrelationJob("bob", "h1")) is False
        assert worker.pending == 1
        assert worker.dropped == 1

    @pytest.mark.asyncio
    async def test_processes_jobs_in_background(self, session_factory):
        async with session_factory() as session:
            recorder = LoginRecorder(session)
            await recorder.record_login(login("bob"))
            attempt = await recorder.record_login(login("alice"))

        worker = CorrelationWorker(session_factory)
        await worker.start()
        try:
            assert worker.running
            worker.submit(CorrelationJob("alice", attempt.ip_hash))
            await asyncio.wait_for(worker.join(), timeout=5)
        finally:
            await worker.stop()

        assert worker.processed == 1
        assert not worker.running
        async with session_factory() as session:
            links = (await session.execute(select(MultiAccountLink))).scalars().all()
        assert [(link.primary_user_id, link.linked_user_id) for link in links] == [
            ("alice", "bob")
        ]

    @pytest.mark.asyncio
    async def test_failing_job_does_not_stop_worker(self, session_factory, monkeypatch):
        worker = CorrelationWorker(session_factory)
        calls = []

        async def flaky(job):
            calls.append(job.user_id)
            if job.user_id == "boom":
                raise RuntimeError("correlation exploded")

        monkeypatch.setattr(worker, "process", flaky)
        await worker.start()
        try:
            worker.submit(CorrelationJob("boom", "h1"))
            worker.submit(CorrelationJob("alice", "h1"))
            await asyncio.wait_for(worker.join(), timeout=5)
        finally:
            await worker.stop()

        assert calls == ["boom", "alice"]
        assert worker.processed == 1

    @pytest.mark.asyncio
    async def test_end_to_end_with_recorder(self, session_factory):
        worker = CorrelationWorker(session_factory)
        await worker.start()
        try:
            async with session_factory() as session:
                recorder = LoginRecorder(session, worker=worker)
                await recorder.record_login(login("bob", fingerprint_data=DEVICE))
                await recorder.record_login(login("alice", fingerprint_data=DEVICE))
            await asyncio.wait_for(worker.join(), timeout=5)
        finally:
            await worker.stop()

        async with session_factory() as session:
            links = (await session.execute(select(MultiAccountLink))).scalars().all()
        alice_links = {
            link.link_type for link in links if link.primary_user_id == "alice"
        }
        assert alice_links == {"ip_match", "fingerprint_match"}
