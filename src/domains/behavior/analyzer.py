"""Per-member transaction baselines.

The statistics here are shared with risk scoring: the recent/historical split
around a 30-day cutoff feeds both the behavior report and ``behavior_points``.
Nothing in this module writes to the database.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import Member, MemberRiskScoreDB, Transaction
from src.shared.clock import as_utc, utcnow
from src.shared.errors import NotFoundError

from .models import AmountDeviation, BehaviorAnalysis, BehaviorSummary, DayActivity

logger = structlog.get_logger()

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
RECENT_WINDOW_DAYS = 30


class TransactionLike(Protocol):
    type: str
    amount: float
    status: str
    created_at: datetime


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _round2(value: float) -> float:
    return round(value, 2)


def amount_deviation(
    transactions: Sequence[TransactionLike],
    now: datetime,
    recent_days: int = RECENT_WINDOW_DAYS,
) -> AmountDeviation:
    """Split at ``now - recent_days``; transactions on the cutoff count as recent."""
    cutoff = now - timedelta(days=recent_days)
    recent = [t.amount for t in transactions if as_utc(t.created_at) >= cutoff]
    historical = [t.amount for t in transactions if as_utc(t.created_at) < cutoff]
    return AmountDeviation(
        recent_mean=_mean(recent),
        historical_mean=_mean(historical),
        recent_count=len(recent),
        historical_count=len(historical),
    )


def weekly_frequency(transactions: Sequence[TransactionLike], now: datetime) -> float:
    """Transactions per week since the member's first transaction, at least one week."""
    if not transactions:
        return 0.0
    first = min(as_utc(t.created_at) for t in transactions)
    weeks = max(1.0, (now - first).total_seconds() / timedelta(weeks=1).total_seconds())
    return len(transactions) / weeks


def day_of_week_counts(transactions: Sequence[TransactionLike]) -> list[int]:
    """Counts per weekday, Sunday first."""
    counts = [0] * 7
    for t in transactions:
        # datetime.weekday() is Monday=0
        counts[(as_utc(t.created_at).weekday() + 1) % 7] += 1
    return counts


def peak_day(counts: Sequence[int]) -> str:
    # max() keeps the first index on ties
    return DAY_NAMES[max(range(len(counts)), key=counts.__getitem__)]


def analyze_transactions(
    member_id: str,
    transactions: Sequence[TransactionLike],
    now: datetime,
    recent_days: int = RECENT_WINDOW_DAYS,
) -> BehaviorAnalysis:
    deposits = [t.amount for t in transactions if t.type == "DEPOSIT"]
    withdrawals = [t.amount for t in transactions if t.type == "WITHDRAWAL"]
    deviation = amount_deviation(transactions, now, recent_days)
    counts = day_of_week_counts(transactions)

    return BehaviorAnalysis(
        member_id=member_id,
        total_transactions=len(transactions),
        deposits=len(deposits),
        withdrawals=len(withdrawals),
        avg_amount=_round2(_mean([t.amount for t in transactions])),
        avg_deposit=_round2(_mean(deposits)),
        avg_withdrawal=_round2(_mean(withdrawals)),
        weekly_frequency=_round2(weekly_frequency(transactions, now)),
        recent_avg_amount=_round2(deviation.recent_mean),
        historical_avg_amount=_round2(deviation.historical_mean),
        amount_deviation_percent=_round2(deviation.deviation_percent),
        flagged_transactions=sum(1 for t in transactions if t.status == "FLAGGED"),
        peak_activity_day=peak_day(counts),
        activity_by_day=[DayActivity(day=name, count=c) for name, c in zip(DAY_NAMES, counts)],
    )


async def load_member_transactions(session: AsyncSession, member_id: str) -> list[Transaction]:
    stmt = (
        select(Transaction)
        .where(Transaction.member_id == member_id)
        .order_by(Transaction.created_at)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


class BehaviorAnalyzer:
    """Read-only behavior reporting over the transaction store."""

    def __init__(self, recent_days: int = RECENT_WINDOW_DAYS) -> None:
        self._recent_days = recent_days

    async def analyze_member(
        self,
        session: AsyncSession,
        member_id: str,
        now: datetime | None = None,
    ) -> BehaviorAnalysis:
        member = await session.get(Member, member_id)
        if member is None:
            raise NotFoundError("Member", member_id)
        return await self._analyze(session, member, now or utcnow())

    async def analyze(
        self,
        session: AsyncSession,
        member_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
        now: datetime | None = None,
    ) -> tuple[list[BehaviorAnalysis], int]:
        """Page through members (newest first) and analyze each one."""
        now = now or utcnow()
        stmt = select(Member)
        count_stmt = select(func.count()).select_from(Member)
        if member_id:
            stmt = stmt.where(Member.id == member_id)
            count_stmt = count_stmt.where(Member.id == member_id)

        total = (await session.execute(count_stmt)).scalar_one()
        stmt = stmt.order_by(Member.created_at.desc()).offset(offset).limit(limit)
        members = (await session.execute(stmt)).scalars().all()

        analyses = [await self._analyze(session, m, now) for m in members]
        return analyses, total

    async def summarize(self, session: AsyncSession, now: datetime | None = None) -> BehaviorSummary:
        now = now or utcnow()
        cutoff = now - timedelta(days=self._recent_days)

        total_members = (await session.execute(select(func.count()).select_from(Member))).scalar_one()
        total_tx = (await session.execute(select(func.count()).select_from(Transaction))).scalar_one()
        flagged_tx = (
            await session.execute(
                select(func.count()).select_from(Transaction).where(Transaction.status == "FLAGGED")
            )
        ).scalar_one()
        recent_tx = (
            await session.execute(
                select(func.count()).select_from(Transaction).where(Transaction.created_at >= cutoff)
            )
        ).scalar_one()
        avg_amount = (await session.execute(select(func.avg(Transaction.amount)))).scalar()
        high_risk = (
            await session.execute(
                select(func.count())
                .select_from(MemberRiskScoreDB)
                .where(MemberRiskScoreDB.risk_level.in_(["HIGH", "CRITICAL"]))
            )
        ).scalar_one()

        return BehaviorSummary(
            total_members=total_members,
            total_transactions=total_tx,
            flagged_transactions=flagged_tx,
            recent_transactions=recent_tx,
            avg_transaction_amount=_round2(float(avg_amount or 0.0)),
            high_risk_members=high_risk,
        )

    async def _analyze(self, session: AsyncSession, member: Member, now: datetime) -> BehaviorAnalysis:
        transactions = await load_member_transactions(session, member.id)
        analysis = analyze_transactions(member.id, transactions, now, self._recent_days)
        analysis.member_number = member.member_number
        analysis.full_name = member.full_name
        analysis.status = member.status
        analysis.balance = member.balance
        logger.debug(
            "member_behavior_analyzed",
            member_id=member.id,
            total_transactions=analysis.total_transactions,
            deviation_pct=analysis.amount_deviation_percent,
        )
        return analysis
