"""Withdrawals-without-deposits rule."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import RuleViolationDB, Transaction

from ..models import RuleDefinition, RuleType, ViolationCandidate
from .base import EvaluationContext, RuleEvaluator


class NoDepositRuleEvaluator(RuleEvaluator):
    """One violation per member who has withdrawn but never completed a deposit.

    Lookback is the member's whole history; a window_hours value on the rule is
    ignored.
    """

    rule_type = RuleType.NO_DEPOSIT

    async def find_violations(
        self,
        session: AsyncSession,
        rule: RuleDefinition,
        context: EvaluationContext,
    ) -> list[ViolationCandidate]:
        depositors = select(Transaction.member_id).where(
            Transaction.type == "DEPOSIT",
            Transaction.status == "COMPLETED",
        )
        already_flagged = select(RuleViolationDB.member_id).where(
            RuleViolationDB.rule_id == rule.id
        )
        stmt = (
            select(Transaction.member_id, func.count(Transaction.id))
            .where(
                Transaction.type == "WITHDRAWAL",
                Transaction.status != "FAILED",
                Transaction.member_id.not_in(depositors),
                Transaction.member_id.not_in(already_flagged),
            )
            .group_by(Transaction.member_id)
        )
        members = (await session.execute(stmt)).all()

        candidates: list[ViolationCandidate] = []
        for member_id, withdrawal_count in members:
            latest = await session.execute(
                select(Transaction.id)
                .where(
                    Transaction.member_id == member_id,
                    Transaction.type == "WITHDRAWAL",
                    Transaction.status != "FAILED",
                )
                .order_by(Transaction.created_at.desc())
                .limit(1)
            )
            candidates.append(
                ViolationCandidate(
                    member_id=member_id,
                    dedup_key=f"member:{member_id}",
                    transaction_id=latest.scalar_one_or_none(),
                    details=(
                        f"Member has {withdrawal_count} withdrawal(s) "
                        "but zero deposits on record"
                    ),
                )
            )
        return candidates
