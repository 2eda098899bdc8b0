"""Large withdrawal amount rule."""

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import RuleViolationDB, Transaction

from ..models import RuleDefinition, RuleType, ViolationCandidate
from .base import EvaluationContext, RuleEvaluator


def effective_ceiling(rule: RuleDefinition, context: EvaluationContext) -> float:
    """The rule's own max_amount, else the configured large-withdrawal amount."""
    if rule.max_amount is not None:
        return rule.max_amount
    return context.thresholds.large_withdrawal_amount


class AmountRuleEvaluator(RuleEvaluator):
    """Flags every non-failed withdrawal at or above the ceiling, once per transaction."""

    rule_type = RuleType.AMOUNT

    async def find_violations(
        self,
        session: AsyncSession,
        rule: RuleDefinition,
        context: EvaluationContext,
    ) -> list[ViolationCandidate]:
        ceiling = effective_ceiling(rule, context)

        already_flagged = exists().where(
            and_(
                RuleViolationDB.rule_id == rule.id,
                RuleViolationDB.transaction_id == Transaction.id,
            )
        )
        stmt = (
            select(Transaction.id, Transaction.member_id, Transaction.amount)
            .where(
                Transaction.type == "WITHDRAWAL",
                Transaction.amount >= ceiling,
                Transaction.status != "FAILED",
                ~already_flagged,
            )
            .order_by(Transaction.created_at)
        )
        rows = (await session.execute(stmt)).all()

        return [
            ViolationCandidate(
                member_id=member_id,
                dedup_key=f"txn:{txn_id}",
                transaction_id=txn_id,
                details=f"Withdrawal of {amount:,.2f} exceeds threshold of {ceiling:,.2f}",
            )
            for txn_id, member_id, amount in rows
        ]
