"""HTTP tests for the integrity and admin routers."""

from datetime import timedelta
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import select

from integrity.auth.jwt import create_access_token
from integrity.db.database import get_db
from integrity.db.models import LoginAttempt
from integrity.main import app
from integrity.routes.integrity import (
    get_breach_oracle,
    get_correlation_worker,
    get_mx_resolver,
)
from integrity.security.breach import BreachOracle, split_sha1
from integrity.security.correlation import MultiAccountCorrelator
from integrity.security.login_recorder import CorrelationWorker


def bearer(user_id: str, role: str = "user") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}


def admin_headers() -> dict[str, str]:
    return bearer("admin-1", role="admin")


def service_headers() -> dict[str, str]:
    return bearer("auth-service", role="service")


async def has_mx(domain: str) -> list[str]:
    return [f"mx.{domain}."]


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app with the test database wired in."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mx_resolver] = lambda: has_mx

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def banned_user(client, make_user):
    """A user with an active seven-day ban."""
    await make_user("spammer")
    response = await client.post(
        "/admin/integrity/bans",
        json={
            "user_id": "spammer",
            "ban_type": "temporary",
            "reason": "Spam",
            "duration": {"type": "days", "value": 7},
        },
        headers=admin_headers(),
    )
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    """Tests for the health endpoint."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["correlation_worker_running"] is False
        assert data["correlation_queue_depth"] == 0


# =============================================================================
# Auth
# =============================================================================


class TestAdminAuth:
    """Admin routes require an admin bearer token."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/admin/integrity/appeals")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get(
            "/admin/integrity/appeals",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, client):
        token = create_access_token(
            "admin-1", role="admin", expires_delta=timedelta(minutes=-1)
        )

        response = await client.get(
            "/admin/integrity/appeals",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_regular_user_forbidden(self, client):
        response = await client.get(
            "/admin/integrity/appeals", headers=bearer("someone")
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    @pytest.mark.asyncio
    async def test_owner_allowed(self, client):
        response = await client.get(
            "/admin/integrity/appeals", headers=bearer("boss", role="owner")
        )

        assert response.status_code == 200
        assert response.json() == []


# =============================================================================
# Bans and Appeals
# =============================================================================


class TestBanFlow:
    """Ban, gate, appeal and review over HTTP."""

    @pytest.mark.asyncio
    async def test_ban_response(self, banned_user):
        assert banned_user["user_id"] == "spammer"
        assert banned_user["banned_by"] == "admin-1"
        assert banned_user["is_active"] is True
        assert banned_user["appeal_status"] == "none"
        assert banned_user["expires_at"] is not None

    @pytest.mark.asyncio
    async def test_ban_gate(self, client, banned_user):
        response = await client.get(
            "/integrity/bans/spammer/status", headers=service_headers()
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_banned"] is True
        assert data["can_appeal"] is True
        assert data["ban_id"] == banned_user["id"]

    @pytest.mark.asyncio
    async def test_unbanned_gate(self, client):
        response = await client.get(
            "/integrity/bans/nobody/status", headers=service_headers()
        )

        assert response.json()["is_banned"] is False

    @pytest.mark.asyncio
    async def test_gate_requires_auth(self, client, banned_user):
        response = await client.get("/integrity/bans/spammer/status")

        assert response.status_code == 401
        assert "reason" not in response.json()

    @pytest.mark.asyncio
    async def test_user_sees_own_status(self, client, banned_user):
        response = await client.get(
            "/integrity/bans/spammer/status", headers=bearer("spammer")
        )

        assert response.status_code == 200
        assert response.json()["reason"] == "Spam"

    @pytest.mark.asyncio
    async def test_gate_hides_other_users(self, client, banned_user):
        response = await client.get(
            "/integrity/bans/spammer/status", headers=bearer("curious")
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_appeal_and_approve(self, client, banned_user):
        response = await client.post(
            "/integrity/bans/appeal",
            json={"message": "It was my brother"},
            headers=bearer("spammer"),
        )
        assert response.status_code == 200
        assert response.json()["appeal_status"] == "pending"

        again = await client.post(
            "/integrity/bans/appeal",
            json={"message": "Really"},
            headers=bearer("spammer"),
        )
        assert again.status_code == 404

        appeals = await client.get("/admin/integrity/appeals", headers=admin_headers())
        assert [a["user_id"] for a in appeals.json()] == ["spammer"]
        assert appeals.json()[0]["appeal_message"] == "It was my brother"

        review = await client.post(
            f"/admin/integrity/appeals/{banned_user['id']}/review",
            json={"decision": "approved", "response": "Fair enough"},
            headers=admin_headers(),
        )
        assert review.status_code == 200
        assert review.json()["is_active"] is False
        assert review.json()["appeal_reviewed_by"] == "admin-1"

        status = await client.get(
            "/integrity/bans/spammer/status", headers=bearer("spammer")
        )
        assert status.json()["is_banned"] is False

    @pytest.mark.asyncio
    async def test_appeal_requires_auth(self, client, banned_user):
        response = await client.post(
            "/integrity/bans/appeal", json={"message": "let me in"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_review_unknown_appeal(self, client):
        response = await client.post(
            f"/admin/integrity/appeals/{uuid4()}/review",
            json={"decision": "rejected", "response": "No"},
            headers=admin_headers(),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unban(self, client, banned_user):
        response = await client.post(
            "/admin/integrity/bans/spammer/unban", headers=admin_headers()
        )

        assert response.status_code == 200
        assert response.json()["appeal_response"] == "Ban lifted by admin"

        again = await client.post(
            "/admin/integrity/bans/spammer/unban",
            json={"reason": "Double check"},
            headers=admin_headers(),
        )
        assert again.status_code == 404
        assert again.json()["detail"] == "No active ban found"

    @pytest.mark.asyncio
    async def test_history_and_events(self, client, banned_user):
        await client.post(
            "/admin/integrity/bans/spammer/unban", headers=admin_headers()
        )

        history = await client.get(
            "/admin/integrity/bans/spammer/history", headers=admin_headers()
        )
        events = await client.get(
            "/admin/integrity/security-events",
            params={"user_id": "spammer"},
            headers=admin_headers(),
        )

        assert len(history.json()) == 1
        assert history.json()[0]["is_active"] is False
        assert {e["event_type"] for e in events.json()} == {
            "account.banned",
            "account.unbanned",
        }

    @pytest.mark.asyncio
    async def test_ban_unknown_user(self, client):
        response = await client.post(
            "/admin/integrity/bans",
            json={"user_id": "ghost", "ban_type": "permanent", "reason": "x"},
            headers=admin_headers(),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_ban_duration_without_value(self, client, make_user):
        await make_user("spammer")

        response = await client.post(
            "/admin/integrity/bans",
            json={
                "user_id": "spammer",
                "ban_type": "temporary",
                "reason": "Spam",
                "duration": {"type": "days"},
            },
            headers=admin_headers(),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_ban_rejects_unknown_type(self, client):
        response = await client.post(
            "/admin/integrity/bans",
            json={"user_id": "spammer", "ban_type": "forever", "reason": "x"},
            headers=admin_headers(),
        )

        assert response.status_code == 422


# =============================================================================
# Multi-Account Review
# =============================================================================


class TestMultiAccountReview:
    """Admin review of detected links over HTTP."""

    @pytest.fixture
    async def link_id(self, session_factory, make_user):
        await make_user("alice")
        await make_user("bob")
        async with session_factory() as session:
            session.add(
                LoginAttempt(
                    user_id="bob", ip_hash="h" * 64, method="password", success=True
                )
            )
            await session.commit()
            [link] = await MultiAccountCorrelator(session).detect_and_store(
                "alice", "h" * 64
            )
        return str(link.id)

    @pytest.mark.asyncio
    async def test_list_and_review(self, client, link_id):
        listed = await client.get(
            "/admin/integrity/multi-account",
            params={"status": "detected"},
            headers=admin_headers(),
        )
        assert [link["id"] for link in listed.json()] == [link_id]
        assert listed.json()[0]["linked_username"] == "bob"

        reviewed = await client.patch(
            f"/admin/integrity/multi-account/{link_id}",
            json={"status": "confirmed", "notes": "Same person"},
            headers=admin_headers(),
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "confirmed"
        assert reviewed.json()["reviewed_by"] == "admin-1"

        per_user = await client.get(
            "/admin/integrity/multi-account/alice", headers=admin_headers()
        )
        assert per_user.json()[0]["review_notes"] == "Same person"

    @pytest.mark.asyncio
    async def test_review_unknown_link(self, client):
        response = await client.patch(
            f"/admin/integrity/multi-account/{uuid4()}",
            json={"status": "allowed"},
            headers=admin_headers(),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_review_rejects_unknown_status(self, client, link_id):
        response = await client.patch(
            f"/admin/integrity/multi-account/{link_id}",
            json={"status": "detected"},
            headers=admin_headers(),
        )

        assert response.status_code == 422


# =============================================================================
# Login Recording
# =============================================================================


class TestRecordLogin:
    """Tests for POST /integrity/logins."""

    @pytest.mark.asyncio
    async def test_records_and_queues(self, client, session_factory):
        worker = CorrelationWorker(session_factory)
        app.dependency_overrides[get_correlation_worker] = lambda: worker

        response = await client.post(
            "/integrity/logins",
            json={"user_id": "alice", "login_method": "discord", "success": True},
            headers={
                **service_headers(),
                "x-forwarded-for": "198.51.100.4, 10.0.0.1",
            },
        )

        assert response.status_code == 202
        assert response.json() == {"recorded": True}
        assert worker.pending == 1
        async with session_factory() as session:
            attempt = (await session.execute(select(LoginAttempt))).scalar_one()
        assert attempt.method == "oauth"
        assert attempt.ip_truncated == "198.51.100.0"

    @pytest.mark.asyncio
    async def test_explicit_ip_and_fingerprint(self, client, session_factory):
        response = await client.post(
            "/integrity/logins",
            json={
                "user_id": "alice",
                "ip_address": "2001:db8:85a3::1",
                "login_method": "password",
                "success": False,
                "failure_reason": "bad_password",
                "fingerprint": {"user_agent": "ua", "platform": "Linux"},
            },
            headers=service_headers(),
        )

        assert response.status_code == 202
        async with session_factory() as session:
            attempt = (await session.execute(select(LoginAttempt))).scalar_one()
        assert attempt.ip_truncated == "2001:db8:85a3::"
        assert attempt.fingerprint_id is not None
        assert attempt.success is False

        history = await client.get(
            "/admin/integrity/logins/alice", headers=admin_headers()
        )
        assert history.status_code == 200
        [entry] = history.json()
        assert entry["failure_reason"] == "bad_password"
        assert "ip_hash" not in entry

    @pytest.mark.asyncio
    async def test_unknown_method_rejected(self, client):
        response = await client.post(
            "/integrity/logins",
            json={"user_id": "alice", "login_method": "sms", "success": True},
            headers=service_headers(),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_service_token(self, client, session_factory):
        body = {
            "user_id": "victim",
            "ip_address": "203.0.113.9",
            "login_method": "password",
            "success": True,
        }

        anonymous = await client.post("/integrity/logins", json=body)
        as_user = await client.post(
            "/integrity/logins", json=body, headers=bearer("victim")
        )
        as_admin = await client.post(
            "/integrity/logins", json=body, headers=admin_headers()
        )

        assert anonymous.status_code == 401
        assert as_user.status_code == 403
        assert as_admin.status_code == 403
        async with session_factory() as session:
            attempts = (await session.execute(select(LoginAttempt))).scalars().all()
        assert attempts == []


# =============================================================================
# Credential Checks
# =============================================================================


class TestCredentialChecks:
    """Tests for password and email validation endpoints."""

    @pytest.mark.asyncio
    async def test_password_validate(self, client):
        response = await client.post(
            "/integrity/password/validate", json={"password": "password123"}
        )

        data = response.json()
        assert response.status_code == 200
        assert data["is_valid"] is False
        assert "This password is too common and easily guessable" in data["errors"]
        assert data["strength"]["is_common_password"] is True
        assert data["score"] <= 60

    @pytest.mark.asyncio
    async def test_password_breach(self, client):
        prefix, suffix = split_sha1("password")

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"/range/{prefix}"
            return httpx.Response(200, text=f"{suffix}:12")

        oracle = BreachOracle(
            base_url="https://oracle.test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        app.dependency_overrides[get_breach_oracle] = lambda: oracle

        response = await client.post(
            "/integrity/password/breach", json={"password": "password"}
        )

        assert response.json() == {"breached": True, "count": 12}

    @pytest.mark.asyncio
    async def test_email_validate(self, client):
        response = await client.post(
            "/integrity/email/validate", json={"email": "Jane+promo@gmial.com"}
        )

        data = response.json()
        assert data["valid"] is True
        assert data["normalized"] == "jane@gmial.com"
        assert data["suggestion"] == "jane@gmail.com"
        assert data["checks"]["typo"] is False

    @pytest.mark.asyncio
    async def test_disposable_email(self, client):
        response = await client.post(
            "/integrity/email/validate", json={"email": "x@mailinator.com"}
        )

        data = response.json()
        assert data["valid"] is False
        assert data["risk"] == "high"


# =============================================================================
# Security Monitoring
# =============================================================================


class TestSecurityMonitoring:
    """Tests for brute-force checks, anomaly checks and event triage."""

    async def fail_logins(self, client, count, ip="203.0.113.66"):
        for _ in range(count):
            response = await client.post(
                "/integrity/logins",
                json={
                    "user_id": "victim",
                    "ip_address": ip,
                    "login_method": "password",
                    "success": False,
                    "failure_reason": "bad_password",
                },
                headers=service_headers(),
            )
            assert response.status_code == 202

    @pytest.mark.asyncio
    async def test_brute_force_check(self, client):
        await self.fail_logins(client, 10)

        response = await client.get(
            "/admin/integrity/brute-force",
            params={"ip": "203.0.113.66"},
            headers=admin_headers(),
        )
        quiet = await client.get(
            "/admin/integrity/brute-force",
            params={"ip": "198.51.100.1"},
            headers=admin_headers(),
        )

        assert response.status_code == 200
        assert response.json()["anomaly_type"] == "brute_force"
        assert response.json()["details"]["failed_attempts"] == 10
        assert quiet.json()["is_anomaly"] is False

    @pytest.mark.asyncio
    async def test_brute_force_requires_admin(self, client):
        response = await client.get(
            "/admin/integrity/brute-force",
            params={"ip": "203.0.113.66"},
            headers=service_headers(),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_login_anomaly_check(self, client):
        await client.post(
            "/integrity/logins",
            json={
                "user_id": "alice",
                "ip_address": "198.51.100.4",
                "user_agent": "Firefox",
                "login_method": "password",
                "success": True,
            },
            headers=service_headers(),
        )

        response = await client.get(
            "/admin/integrity/logins/alice/anomaly",
            params={"ip": "203.0.113.9", "user_agent": "Firefox"},
            headers=admin_headers(),
        )

        assert response.status_code == 200
        assert response.json()["anomaly_type"] == "impossible_travel"
        assert response.json()["details"]["previous_ip"] == "198.51.100.0"

    @pytest.mark.asyncio
    async def test_resolve_and_stats(self, client):
        await self.fail_logins(client, 5)

        events = await client.get(
            "/admin/integrity/security-events",
            params={"resolved": "false"},
            headers=admin_headers(),
        )
        [event] = events.json()
        assert event["event_type"] == "login.suspicious_failures"
        assert event["resolved"] is False

        resolved = await client.post(
            f"/admin/integrity/security-events/{event['id']}/resolve",
            headers=admin_headers(),
        )
        assert resolved.status_code == 200
        assert resolved.json()["resolved_by"] == "admin-1"

        stats = await client.get(
            "/admin/integrity/security-events/stats", headers=admin_headers()
        )
        assert stats.status_code == 200
        assert stats.json()["total_events"] == 1
        assert stats.json()["unresolved_events"] == 0
        assert stats.json()["events_by_type"] == {"login.suspicious_failures": 1}

    @pytest.mark.asyncio
    async def test_resolve_unknown_event(self, client):
        response = await client.post(
            f"/admin/integrity/security-events/{uuid4()}/resolve",
            headers=admin_headers(),
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Security event not found"
