"""Risk score persistence against a real (SQLite) store."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from src.db.models import FraudDecisionDB, MemberRiskScoreDB
from src.domains.fraud.models import ThresholdUpdate
from src.domains.fraud.scorer import RiskScorer
from src.domains.fraud.thresholds import set_thresholds
from src.shared.errors import NotFoundError
from tests.factories import NOW, add_member, add_transaction


async def _score_rows(session) -> int:
    return (
        await session.execute(select(func.count()).select_from(MemberRiskScoreDB))
    ).scalar_one()


class TestScoreMember:
    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row_per_member(self, db_session):
        member = await add_member(db_session)
        await add_transaction(db_session, member, "WITHDRAWAL", 5_000, NOW - timedelta(days=2))
        scorer = RiskScorer()

        first = await scorer.score_member(db_session, member.id, now=NOW)
        assert first.no_deposit_points == 25

        await add_transaction(db_session, member, "DEPOSIT", 10_000, NOW - timedelta(days=1))
        second = await scorer.score_member(db_session, member.id, now=NOW + timedelta(hours=1))

        assert await _score_rows(db_session) == 1
        assert second.no_deposit_points == 0
        assert second.total_points == 0
        assert second.risk_level == "LOW"

    @pytest.mark.asyncio
    async def test_recalculation_replaces_every_component(self, db_session):
        member = await add_member(db_session)
        for hours in (5, 4, 3, 2, 1):
            await add_transaction(
                db_session, member, "WITHDRAWAL", 120_000, NOW - timedelta(hours=hours)
            )
        scorer = RiskScorer()
        burst = await scorer.score_member(db_session, member.id, now=NOW)
        assert (burst.frequency_points, burst.amount_points) == (20, 75)

        later = await scorer.score_member(db_session, member.id, now=NOW + timedelta(days=2))
        assert later.frequency_points == 0
        assert later.amount_points == 75
        assert later.total_points == 100

    @pytest.mark.asyncio
    async def test_large_withdrawal_never_lowers_amount_points(self, db_session):
        member = await add_member(db_session)
        await add_transaction(db_session, member, "DEPOSIT", 500_000, NOW - timedelta(days=40))
        await add_transaction(db_session, member, "WITHDRAWAL", 100_000, NOW - timedelta(days=10))
        scorer = RiskScorer()
        before = await scorer.score_member(db_session, member.id, now=NOW)
        before_points = before.amount_points

        await add_transaction(db_session, member, "WITHDRAWAL", 300_000, NOW - timedelta(days=1))
        after = await scorer.score_member(db_session, member.id, now=NOW)

        assert after.amount_points >= before_points
        assert after.amount_points == 30

    @pytest.mark.asyncio
    async def test_uses_configured_threshold(self, db_session):
        member = await add_member(db_session)
        await add_transaction(db_session, member, "DEPOSIT", 50_000, NOW - timedelta(days=9))
        await add_transaction(db_session, member, "WITHDRAWAL", 40_000, NOW - timedelta(days=8))
        await set_thresholds(
            db_session,
            ThresholdUpdate(
                large_withdrawal_amount=30_000,
                daily_withdrawal_limit=500_000,
                max_withdrawals_per_day=5,
                require_approval_above=30_000,
            ),
            actor_id="admin-1",
        )

        score = await RiskScorer().score_member(db_session, member.id, now=NOW)

        assert score.amount_points == 15

    @pytest.mark.asyncio
    async def test_unknown_member(self, db_session):
        with pytest.raises(NotFoundError):
            await RiskScorer().score_member(db_session, "missing", now=NOW)

    @pytest.mark.asyncio
    async def test_scoring_creates_no_decisions(self, db_session):
        member = await add_member(db_session)
        for days in (6, 5, 4):
            await add_transaction(
                db_session, member, "WITHDRAWAL", 200_000, NOW - timedelta(days=days)
            )

        score = await RiskScorer().score_member(db_session, member.id, now=NOW)

        assert score.risk_level == "CRITICAL"
        decisions = (await db_session.execute(select(FraudDecisionDB))).scalars().all()
        assert decisions == []


class TestRecalculateAll:
    @pytest.mark.asyncio
    async def test_processes_every_member_and_is_repeatable(self, db_session):
        for _ in range(3):
            member = await add_member(db_session)
            await add_transaction(db_session, member, "WITHDRAWAL", 100, NOW - timedelta(days=1))
        await add_member(db_session)
        scorer = RiskScorer()

        assert await scorer.recalculate_all(db_session, now=NOW) == 4
        assert await scorer.recalculate_all(db_session, now=NOW) == 4
        assert await _score_rows(db_session) == 4


class TestListing:
    @pytest.mark.asyncio
    async def test_list_scores_with_breakdown(self, db_session):
        risky = await add_member(db_session, full_name="Risky")
        await add_transaction(db_session, risky, "WITHDRAWAL", 100, NOW - timedelta(days=1))
        await add_member(db_session, full_name="Quiet")
        scorer = RiskScorer()
        await scorer.recalculate_all(db_session, now=NOW)

        rows, total, breakdown = await scorer.list_scores(db_session)

        assert total == 2
        assert rows[0][1].full_name == "Risky"
        assert breakdown == {"MEDIUM": 1, "LOW": 1}

        medium, medium_total, _ = await scorer.list_scores(db_session, risk_level="MEDIUM")
        assert medium_total == 1
        assert medium[0][0].total_points == 25

    @pytest.mark.asyncio
    async def test_member_detail(self, db_session):
        member = await add_member(db_session)
        scorer = RiskScorer()
        await scorer.score_member(db_session, member.id, now=NOW)

        detail = await scorer.member_detail(db_session, member.id)

        assert detail["member"].id == member.id
        assert detail["score"].risk_level == "LOW"
        assert detail["violations"] == []
        assert detail["decisions"] == []

    @pytest.mark.asyncio
    async def test_member_detail_without_score(self, db_session):
        member = await add_member(db_session)
        with pytest.raises(NotFoundError):
            await RiskScorer().member_detail(db_session, member.id)
