"""HTTP contract of the fraud engine API against an in-memory store."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.db.database import get_session
from src.main import app
from src.shared.clock import utcnow
from tests.conftest import override_get_session
from tests.factories import add_member, add_transaction

pytestmark = pytest.mark.integration

ACTOR = {"X-Actor-Id": "officer-1"}


@pytest_asyncio.fixture
async def client(db_session):
    app.dependency_overrides[get_session] = override_get_session(db_session)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _drained_member(session):
    """No deposits and three large withdrawals this week: CRITICAL."""
    member = await add_member(session, full_name="Peter Kamau")
    now = utcnow()
    for days in (3, 2, 1):
        await add_transaction(session, member, "WITHDRAWAL", 150_000, now - timedelta(days=days))
    return member


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "uptime_seconds" in response.json()

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

        generated = await client.get("/health")
        assert generated.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_ready_when_database_is_up(self, client):
        with patch("src.api.routes.health.check_db", AsyncMock(return_value=True)):
            response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["database"] is True

    @pytest.mark.asyncio
    async def test_degraded_when_database_is_down(self, client):
        with patch("src.api.routes.health.check_db", AsyncMock(return_value=False)):
            response = await client.get("/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"


class TestRuleEndpoints:
    @pytest.mark.asyncio
    async def test_create_list_and_run(self, client, db_session):
        member = await add_member(db_session)
        await add_transaction(
            db_session, member, "WITHDRAWAL", 2_000, utcnow() - timedelta(hours=3)
        )

        created = await client.post(
            "/api/v1/fraud-engine/rules",
            json={"name": "No deposits", "rule_type": "NO_DEPOSIT", "risk_points": 25},
            headers=ACTOR,
        )
        assert created.status_code == 201
        assert created.json()["created_by"] == "officer-1"

        run = await client.post("/api/v1/fraud-engine/rules/run")
        assert run.status_code == 200
        assert run.json()["new_violations"] == 1

        rules = (await client.get("/api/v1/fraud-engine/rules")).json()
        assert rules["total"] == 1
        assert rules["items"][0]["violation_count"] == 1

        violations = (await client.get("/api/v1/fraud-engine/violations")).json()
        assert violations["total"] == 1
        assert violations["items"][0]["rule"]["name"] == "No deposits"

    @pytest.mark.asyncio
    async def test_frequency_rule_without_parameters_is_rejected(self, client):
        response = await client.post(
            "/api/v1/fraud-engine/rules",
            json={"name": "Burst", "rule_type": "FREQUENCY", "max_count": 3},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_update_is_a_bad_request(self, client):
        created = await client.post(
            "/api/v1/fraud-engine/rules",
            json={"name": "Watch", "rule_type": "CUSTOM"},
        )
        rule_id = created.json()["id"]

        response = await client.patch(
            f"/api/v1/fraud-engine/rules/{rule_id}", json={"rule_type": "AMOUNT"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "bad_request"

    @pytest.mark.asyncio
    async def test_delete(self, client):
        created = await client.post(
            "/api/v1/fraud-engine/rules", json={"name": "Watch", "rule_type": "CUSTOM"}
        )
        rule_id = created.json()["id"]

        assert (await client.delete(f"/api/v1/fraud-engine/rules/{rule_id}")).status_code == 204
        assert (await client.delete(f"/api/v1/fraud-engine/rules/{rule_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_review_unknown_violation(self, client):
        response = await client.patch(
            "/api/v1/fraud-engine/violations/missing/review", json={"notes": "checked"}
        )
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestDecisionEndpoints:
    @pytest.mark.asyncio
    async def test_evaluate_and_approve(self, client, db_session):
        member = await _drained_member(db_session)

        evaluated = await client.post(
            "/api/v1/fraud-engine/decisions/evaluate",
            json={"member_id": member.id},
            headers=ACTOR,
        )
        assert evaluated.status_code == 200
        body = evaluated.json()
        assert body["risk_score"]["risk_level"] == "CRITICAL"
        [pending] = [d for d in body["decisions"] if d["requires_approval"]]

        approved = await client.patch(
            f"/api/v1/fraud-engine/decisions/{pending['id']}/approve",
            json={"approved": True},
            headers={"X-Actor-Id": "manager-1"},
        )
        assert approved.status_code == 200
        assert approved.json()["approved_by"] == "manager-1"

        conflict = await client.patch(
            f"/api/v1/fraud-engine/decisions/{pending['id']}/approve",
            json={"approved": False},
        )
        assert conflict.status_code == 409

        revoked = await client.post(f"/api/v1/fraud-engine/decisions/{pending['id']}/revoke")
        assert revoked.status_code == 200
        assert revoked.json()["approved"] is None

        stats = (await client.get("/api/v1/fraud-engine/decisions/stats")).json()
        assert stats["total"] == 3
        assert stats["pending_approvals"] == 1

    @pytest.mark.asyncio
    async def test_evaluate_unknown_member(self, client):
        response = await client.post(
            "/api/v1/fraud-engine/decisions/evaluate", json={"member_id": "missing"}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_filters(self, client, db_session):
        member = await _drained_member(db_session)
        await client.post("/api/v1/fraud-engine/decisions/evaluate", json={"member_id": member.id})

        response = await client.get(
            "/api/v1/fraud-engine/decisions", params={"action": "ACCOUNT_FLAGGED"}
        )

        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["member"]["full_name"] == "Peter Kamau"
        assert body["breakdown"]["ACCOUNT_FLAGGED"] == 1


class TestRiskAndBehaviorEndpoints:
    @pytest.mark.asyncio
    async def test_recalculate_list_and_detail(self, client, db_session):
        member = await _drained_member(db_session)
        await add_member(db_session, full_name="Quiet Saver")

        recalculated = await client.post("/api/v1/fraud-engine/risk-scores/recalculate")
        assert recalculated.json() == {"members_processed": 2}

        listing = (await client.get("/api/v1/fraud-engine/risk-scores")).json()
        assert listing["total"] == 2
        assert listing["breakdown"] == {"LOW": 1, "MEDIUM": 0, "HIGH": 0, "CRITICAL": 1}

        detail = await client.get(f"/api/v1/fraud-engine/risk-scores/{member.id}")
        assert detail.status_code == 200
        assert detail.json()["member"]["full_name"] == "Peter Kamau"
        assert detail.json()["recent_decisions"] == []

    @pytest.mark.asyncio
    async def test_unscored_member_detail(self, client, db_session):
        member = await add_member(db_session)
        response = await client.get(f"/api/v1/fraud-engine/risk-scores/{member.id}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_behavior(self, client, db_session):
        member = await _drained_member(db_session)

        report = await client.get(f"/api/v1/fraud-engine/behavior/{member.id}")
        summary = await client.get("/api/v1/fraud-engine/behavior/summary")

        assert report.status_code == 200
        assert report.json()["withdrawals"] == 3
        assert summary.json()["total_transactions"] == 3


class TestWithdrawalEndpoints:
    @pytest.mark.asyncio
    async def test_thresholds(self, client):
        defaults = (await client.get("/api/v1/fraud-engine/thresholds")).json()
        assert defaults["configured"] is False

        updated = await client.put(
            "/api/v1/fraud-engine/thresholds",
            json={
                "large_withdrawal_amount": 200_000,
                "daily_withdrawal_limit": 1_500_000,
                "max_withdrawals_per_day": 3,
                "require_approval_above": 250_000,
            },
        )
        assert updated.status_code == 200

        current = (await client.get("/api/v1/fraud-engine/thresholds")).json()
        assert current["configured"] is True
        assert current["max_withdrawals_per_day"] == 3

    @pytest.mark.asyncio
    async def test_request_lifecycle(self, client, db_session):
        member = await add_member(db_session)

        created = await client.post(
            "/api/v1/fraud-engine/withdrawal-requests",
            json={"member_id": member.id, "amount": 300_000, "reason": "School fees"},
        )
        assert created.status_code == 201
        request_id = created.json()["id"]

        reviewed = await client.patch(
            f"/api/v1/fraud-engine/withdrawal-requests/{request_id}/review",
            json={"status": "REJECTED", "notes": "No supporting documents"},
        )
        assert reviewed.json()["status"] == "REJECTED"

        again = await client.patch(
            f"/api/v1/fraud-engine/withdrawal-requests/{request_id}/review",
            json={"status": "APPROVED"},
        )
        assert again.status_code == 409

        listing = (
            await client.get(
                "/api/v1/fraud-engine/withdrawal-requests", params={"status": "REJECTED"}
            )
        ).json()
        assert listing["total"] == 1


class TestScreeningAndStats:
    @pytest.mark.asyncio
    async def test_screen_and_engine_stats(self, client, db_session):
        member = await add_member(db_session, balance=750_000)
        txn = await add_transaction(
            db_session, member, "DEPOSIT", 750_000, utcnow() - timedelta(minutes=5)
        )

        screened = await client.post(f"/api/v1/fraud-engine/transactions/{txn.id}/screen")
        assert screened.status_code == 200
        assert screened.json()["flagged"] is True
        assert screened.json()["signals"][0]["signal"] == "LARGE_DEPOSIT"

        stats = (await client.get("/api/v1/fraud-engine/stats")).json()
        assert stats["total_rules"] == 0
        assert stats["pending_withdrawals"] == 0

    @pytest.mark.asyncio
    async def test_screen_unknown_transaction(self, client):
        response = await client.post("/api/v1/fraud-engine/transactions/missing/screen")
        assert response.status_code == 404
