"""Withdrawal frequency rule."""

from datetime import timedelta

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import RuleViolationDB, Transaction

from ..models import RuleDefinition, RuleType, ViolationCandidate
from .base import EvaluationContext, RuleEvaluator

logger = structlog.get_logger()


def window_bucket(context: EvaluationContext, window_hours: int) -> int:
    return int(context.now.timestamp() // (window_hours * 3600))


class FrequencyRuleEvaluator(RuleEvaluator):
    """Triggers when a member's non-failed withdrawals in the trailing window exceed max_count.

    At most one violation per (rule, member) per trailing window. The read check
    below gives the trailing-window semantics; the bucket in the dedup key lets
    the unique constraint reject a concurrent scan that passed the same check.
    """

    rule_type = RuleType.FREQUENCY

    async def find_violations(
        self,
        session: AsyncSession,
        rule: RuleDefinition,
        context: EvaluationContext,
    ) -> list[ViolationCandidate]:
        if rule.max_count is None or rule.window_hours is None:
            logger.warning("frequency_rule_incomplete", rule_id=rule.id)
            return []

        since = context.now - timedelta(hours=rule.window_hours)
        qualifying = (
            Transaction.type == "WITHDRAWAL",
            Transaction.created_at >= since,
            Transaction.status != "FAILED",
        )

        stmt = (
            select(Transaction.member_id, func.count(Transaction.id).label("cnt"))
            .where(*qualifying)
            .group_by(Transaction.member_id)
            .having(func.count(Transaction.id) > rule.max_count)
        )
        offenders = (await session.execute(stmt)).all()

        bucket = window_bucket(context, rule.window_hours)
        candidates: list[ViolationCandidate] = []
        for member_id, count in offenders:
            existing = await session.execute(
                select(RuleViolationDB.id)
                .where(
                    RuleViolationDB.rule_id == rule.id,
                    RuleViolationDB.member_id == member_id,
                    RuleViolationDB.created_at >= since,
                )
                .limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                continue

            latest = await session.execute(
                select(Transaction.id)
                .where(Transaction.member_id == member_id, *qualifying)
                .order_by(Transaction.created_at.desc())
                .limit(1)
            )
            candidates.append(
                ViolationCandidate(
                    member_id=member_id,
                    dedup_key=f"member:{member_id}:bucket:{bucket}",
                    transaction_id=latest.scalar_one_or_none(),
                    details=(
                        f"Member made {count} withdrawals in {rule.window_hours}h "
                        f"(limit: {rule.max_count})"
                    ),
                )
            )

        return candidates
