"""Member risk scoring: transaction history -> points -> risk tier.

Points per member, against the current large-withdrawal threshold:

  frequency   10 per withdrawal beyond the third in the trailing 24h
  amount      15 per lifetime withdrawal at or above the threshold
  no deposit  25 when the member has withdrawn but never completed a deposit
  behavior    20 when the recent 30-day mean is >100% above the historical
              mean, 10 when it is >50% above; 0 without history

Tiers: CRITICAL >= 60, HIGH >= 40, MEDIUM >= 20, else LOW.

The stored score is a cache: every recalculation replaces the whole row via
INSERT ... ON CONFLICT (member_id) DO UPDATE.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import (
    FraudDecisionDB,
    FraudRuleDB,
    Member,
    MemberRiskScoreDB,
    RuleViolationDB,
    new_id,
)
from src.db.statements import upsert
from src.domains.behavior.analyzer import (
    TransactionLike,
    amount_deviation,
    load_member_transactions,
    weekly_frequency,
)
from src.shared.clock import as_utc, utcnow
from src.shared.errors import NotFoundError

from .alerts import AuditTrail
from .config import FraudEngineConfig, ScoringWeights, TierBreakpoints, default_config
from .models import RiskBreakdown, RiskLevel
from .thresholds import current_thresholds

logger = structlog.get_logger()

_SCORE_COLUMNS = [
    "total_points",
    "risk_level",
    "frequency_points",
    "amount_points",
    "behavior_points",
    "no_deposit_points",
    "avg_transaction_amount",
    "transaction_frequency",
    "last_calculated_at",
]


def classify_risk_level(total_points: int, tiers: TierBreakpoints | None = None) -> RiskLevel:
    tiers = tiers or TierBreakpoints()
    if total_points >= tiers.critical:
        return RiskLevel.CRITICAL
    if total_points >= tiers.high:
        return RiskLevel.HIGH
    if total_points >= tiers.medium:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def behavior_points(deviation_percent: float, historical_mean: float, weights: ScoringWeights) -> int:
    if historical_mean <= 0:
        return 0
    if deviation_percent > weights.deviation_high_pct:
        return weights.deviation_high_points
    if deviation_percent > weights.deviation_medium_pct:
        return weights.deviation_medium_points
    return 0


def compute_risk_breakdown(
    member_id: str,
    transactions: Sequence[TransactionLike],
    large_withdrawal_amount: float,
    now: datetime,
    config: FraudEngineConfig | None = None,
) -> RiskBreakdown:
    """Score one member's history. Pure; nothing is read or written."""
    cfg = config or default_config
    weights = cfg.scoring

    since = now - timedelta(hours=weights.frequency_window_hours)
    withdrawals = [t for t in transactions if t.type == "WITHDRAWAL"]
    withdrawals_window = [t for t in withdrawals if as_utc(t.created_at) >= since]
    completed_deposits = [
        t for t in transactions if t.type == "DEPOSIT" and t.status == "COMPLETED"
    ]

    frequency = (
        max(0, len(withdrawals_window) - weights.free_withdrawals_24h)
        * weights.points_per_extra_withdrawal
    )
    amount = (
        sum(1 for t in withdrawals if t.amount >= large_withdrawal_amount)
        * weights.points_per_large_withdrawal
    )
    no_deposit = weights.no_deposit_points if withdrawals and not completed_deposits else 0

    deviation = amount_deviation(transactions, now, weights.recent_window_days)
    behavior = behavior_points(deviation.deviation_percent, deviation.historical_mean, weights)

    total = frequency + amount + no_deposit + behavior
    avg_amount = sum(t.amount for t in transactions) / len(transactions) if transactions else 0.0

    return RiskBreakdown(
        member_id=member_id,
        frequency_points=frequency,
        amount_points=amount,
        behavior_points=behavior,
        no_deposit_points=no_deposit,
        total_points=total,
        risk_level=classify_risk_level(total, cfg.tiers),
        avg_transaction_amount=round(avg_amount, 2),
        transaction_frequency=round(weekly_frequency(transactions, now), 2),
        calculated_at=now,
    )


class RiskScorer:
    """Computes and caches member risk scores."""

    def __init__(
        self,
        config: FraudEngineConfig | None = None,
        audit: AuditTrail | None = None,
    ) -> None:
        self._config = config or default_config
        self._audit = audit or AuditTrail()

    async def score_member(
        self,
        session: AsyncSession,
        member_id: str,
        now: datetime | None = None,
        large_withdrawal_amount: float | None = None,
        commit: bool = True,
    ) -> MemberRiskScoreDB:
        """Recompute one member's score and replace the cached row."""
        now = now or utcnow()
        if await session.get(Member, member_id) is None:
            raise NotFoundError("Member", member_id)
        if large_withdrawal_amount is None:
            thresholds = await current_thresholds(session, self._config)
            large_withdrawal_amount = thresholds.large_withdrawal_amount

        transactions = await load_member_transactions(session, member_id)
        breakdown = compute_risk_breakdown(
            member_id, transactions, large_withdrawal_amount, now, self._config
        )
        row = await self._store(session, breakdown)
        if commit:
            await session.commit()

        logger.info(
            "member_risk_scored",
            member_id=member_id,
            total_points=breakdown.total_points,
            risk_level=breakdown.risk_level.value,
        )
        return row

    async def get_or_score(
        self, session: AsyncSession, member_id: str, now: datetime | None = None
    ) -> MemberRiskScoreDB:
        """Cached score if present, otherwise compute and cache it (uncommitted)."""
        cached = await self.get_score(session, member_id)
        if cached is not None:
            return cached
        return await self.score_member(session, member_id, now=now, commit=False)

    async def get_score(self, session: AsyncSession, member_id: str) -> MemberRiskScoreDB | None:
        result = await session.execute(
            select(MemberRiskScoreDB).where(MemberRiskScoreDB.member_id == member_id)
        )
        return result.scalar_one_or_none()

    async def recalculate_all(
        self,
        session: AsyncSession,
        actor_id: str = "system",
        now: datetime | None = None,
    ) -> int:
        """Recompute every member's score. Safe to re-run after an interruption."""
        now = now or utcnow()
        thresholds = await current_thresholds(session, self._config)
        member_ids = (await session.execute(select(Member.id).order_by(Member.id))).scalars().all()

        processed = 0
        for member_id in member_ids:
            await self.score_member(
                session,
                member_id,
                now=now,
                large_withdrawal_amount=thresholds.large_withdrawal_amount,
            )
            processed += 1

        logger.info("risk_scores_recalculated", members_processed=processed)
        await self._audit.record(
            session,
            actor_id,
            "CALCULATE_RISK_SCORES",
            "MemberRiskScore",
            None,
            f"Calculated for {processed} members",
        )
        return processed

    async def list_scores(
        self,
        session: AsyncSession,
        risk_level: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[tuple[MemberRiskScoreDB, Member]], int, dict[str, int]]:
        """Scores ordered by total points, plus a count per risk level."""
        filters = [MemberRiskScoreDB.risk_level == risk_level] if risk_level else []

        total = (
            await session.execute(
                select(func.count()).select_from(MemberRiskScoreDB).where(*filters)
            )
        ).scalar_one()

        stmt = (
            select(MemberRiskScoreDB, Member)
            .join(Member, Member.id == MemberRiskScoreDB.member_id)
            .where(*filters)
            .order_by(MemberRiskScoreDB.total_points.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = (await session.execute(stmt)).all()

        breakdown_rows = await session.execute(
            select(MemberRiskScoreDB.risk_level, func.count(MemberRiskScoreDB.id)).group_by(
                MemberRiskScoreDB.risk_level
            )
        )
        breakdown = {level: count for level, count in breakdown_rows.all()}
        return [(score, member) for score, member in rows], total, breakdown

    async def member_detail(self, session: AsyncSession, member_id: str) -> dict:
        """Score with the member's most recent violations and decisions."""
        score = await self.get_score(session, member_id)
        if score is None:
            raise NotFoundError("MemberRiskScore", member_id)
        member = await session.get(Member, member_id)
        recent = self._config.decisions.recent_items

        violations = (
            await session.execute(
                select(RuleViolationDB, FraudRuleDB)
                .join(FraudRuleDB, FraudRuleDB.id == RuleViolationDB.rule_id)
                .where(RuleViolationDB.member_id == member_id)
                .order_by(RuleViolationDB.created_at.desc())
                .limit(recent)
            )
        ).all()
        decisions = (
            await session.execute(
                select(FraudDecisionDB)
                .where(FraudDecisionDB.member_id == member_id)
                .order_by(FraudDecisionDB.created_at.desc())
                .limit(recent)
            )
        ).scalars().all()

        return {
            "score": score,
            "member": member,
            "violations": [(v, r) for v, r in violations],
            "decisions": list(decisions),
        }

    async def _store(self, session: AsyncSession, breakdown: RiskBreakdown) -> MemberRiskScoreDB:
        await upsert(
            session,
            MemberRiskScoreDB,
            {
                "id": new_id(),
                "member_id": breakdown.member_id,
                "total_points": breakdown.total_points,
                "risk_level": breakdown.risk_level.value,
                "frequency_points": breakdown.frequency_points,
                "amount_points": breakdown.amount_points,
                "behavior_points": breakdown.behavior_points,
                "no_deposit_points": breakdown.no_deposit_points,
                "avg_transaction_amount": breakdown.avg_transaction_amount,
                "transaction_frequency": breakdown.transaction_frequency,
                "last_calculated_at": breakdown.calculated_at,
            },
            index_elements=["member_id"],
            update_columns=_SCORE_COLUMNS,
        )
        result = await session.execute(
            select(MemberRiskScoreDB)
            .where(MemberRiskScoreDB.member_id == breakdown.member_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
