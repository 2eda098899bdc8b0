"""Decision logic: member risk tier -> recorded fraud decisions and side effects."""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import FraudDecisionDB, Member, MemberRiskScoreDB, Transaction
from src.shared.clock import utcnow
from src.shared.errors import InvalidStateError, NotFoundError

from .alerts import AuditTrail, build_alert
from .config import FraudEngineConfig, default_config
from .models import DecisionAction, MemberStatus, PlannedDecision, RiskLevel
from .scorer import RiskScorer

logger = structlog.get_logger()


def plan_decisions(risk_level: RiskLevel, total_points: int) -> list[PlannedDecision]:
    """Actions for a risk tier.

    HIGH and CRITICAL both raise an alert; CRITICAL adds second approval and an
    account flag, HIGH adds manual review. LOW and MEDIUM are auto-approved.
    """
    planned: list[PlannedDecision] = []

    if risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
        planned.append(
            PlannedDecision(
                action=DecisionAction.ALERT_TRIGGERED,
                reason=f"{risk_level.value} risk level detected (score: {total_points})",
            )
        )

    if risk_level == RiskLevel.CRITICAL:
        planned.append(
            PlannedDecision(
                action=DecisionAction.SECOND_APPROVAL_REQUIRED,
                reason="CRITICAL risk: all transactions require secondary approval",
                requires_approval=True,
            )
        )
        planned.append(
            PlannedDecision(
                action=DecisionAction.ACCOUNT_FLAGGED,
                reason="Account auto-flagged due to CRITICAL risk score",
                links_transaction=False,
            )
        )
    elif risk_level == RiskLevel.HIGH:
        planned.append(
            PlannedDecision(
                action=DecisionAction.MANUAL_REVIEW,
                reason="HIGH risk: manual review recommended",
            )
        )
    else:
        planned.append(
            PlannedDecision(
                action=DecisionAction.AUTO_APPROVED,
                reason=(
                    f"Risk level {risk_level.value} (score: {total_points}): no action required"
                ),
            )
        )

    return planned


@dataclass
class EvaluationOutcome:
    risk_score: MemberRiskScoreDB
    decisions: list[FraudDecisionDB]


class DecisionEngine:
    """Turns a member's current risk score into auditable fraud decisions."""

    def __init__(
        self,
        config: FraudEngineConfig | None = None,
        scorer: RiskScorer | None = None,
        audit: AuditTrail | None = None,
    ) -> None:
        self._config = config or default_config
        self._audit = audit or AuditTrail()
        self._scorer = scorer or RiskScorer(config=self._config, audit=self._audit)

    async def evaluate(
        self,
        session: AsyncSession,
        member_id: str,
        transaction_id: str | None = None,
        actor_id: str = "system",
        now: datetime | None = None,
    ) -> EvaluationOutcome:
        """Record the decisions for a member's risk tier.

        All writes (score, decisions, alert, account flag) commit together or
        not at all.
        """
        now = now or utcnow()
        member = await session.get(Member, member_id)
        if member is None:
            raise NotFoundError("Member", member_id)
        if transaction_id is not None:
            txn = await session.get(Transaction, transaction_id)
            if txn is None:
                raise NotFoundError("Transaction", transaction_id)
            if txn.member_id != member_id:
                raise ValueError(
                    f"Transaction {transaction_id} does not belong to member {member_id}"
                )

        try:
            score = await self._scorer.get_or_score(session, member_id, now=now)
            risk_level = RiskLevel(score.risk_level)
            total_points = score.total_points

            decisions: list[FraudDecisionDB] = []
            for planned in plan_decisions(risk_level, total_points):
                decision = FraudDecisionDB(
                    member_id=member_id,
                    transaction_id=transaction_id if planned.links_transaction else None,
                    risk_score=total_points,
                    risk_level=risk_level.value,
                    action=planned.action.value,
                    reason=planned.reason,
                    requires_approval=planned.requires_approval,
                    approved=None,
                    created_at=now,
                )
                session.add(decision)
                decisions.append(decision)

            if risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
                session.add(
                    build_alert(
                        alert_type=self._config.decisions.alert_type,
                        severity=risk_level.value,
                        description=(
                            "Fraud detection engine flagged member: "
                            f"risk score {total_points} ({risk_level.value})"
                        ),
                        member_id=member_id,
                        transaction_id=transaction_id,
                        details={"risk_score": total_points, "risk_level": risk_level.value},
                    )
                )

            if risk_level == RiskLevel.CRITICAL:
                member.status = MemberStatus.FLAGGED.value

            await session.commit()
        except Exception:
            await session.rollback()
            raise

        actions = [d.action for d in decisions]
        logger.info(
            "fraud_decision_recorded",
            member_id=member_id,
            transaction_id=transaction_id,
            risk_level=risk_level.value,
            total_points=total_points,
            actions=actions,
        )
        await self._audit.record(
            session,
            actor_id,
            "FRAUD_DECISION",
            "FraudDecision",
            member_id,
            f"Risk: {risk_level.value} ({total_points}pts): {', '.join(actions)}",
        )
        return EvaluationOutcome(risk_score=score, decisions=decisions)

    async def approve_decision(
        self,
        session: AsyncSession,
        decision_id: str,
        approved: bool,
        actor_id: str,
        now: datetime | None = None,
    ) -> FraudDecisionDB:
        """Record the approval outcome once; a decided approval cannot be overwritten."""
        stmt = (
            update(FraudDecisionDB)
            .where(
                FraudDecisionDB.id == decision_id,
                FraudDecisionDB.requires_approval.is_(True),
                FraudDecisionDB.approved.is_(None),
            )
            .values(approved=approved, approved_by=actor_id, approved_at=now or utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            await session.rollback()
            await self._raise_not_pending(session, decision_id)
        await session.commit()

        logger.info(
            "fraud_decision_approval_recorded",
            decision_id=decision_id,
            approved=approved,
            approved_by=actor_id,
        )
        await self._audit.record(
            session, actor_id, "APPROVE_DECISION", "FraudDecision", decision_id, f"Approved: {approved}"
        )
        return await self._reload(session, decision_id)

    async def revoke_approval(
        self, session: AsyncSession, decision_id: str, actor_id: str
    ) -> FraudDecisionDB:
        """Return a decided approval to pending so it can be decided again."""
        stmt = (
            update(FraudDecisionDB)
            .where(
                FraudDecisionDB.id == decision_id,
                FraudDecisionDB.requires_approval.is_(True),
                FraudDecisionDB.approved.is_not(None),
            )
            .values(approved=None, approved_by=None, approved_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            await session.rollback()
            decision = await session.get(FraudDecisionDB, decision_id)
            if decision is None:
                raise NotFoundError("FraudDecision", decision_id)
            raise InvalidStateError(f"Decision {decision_id} has no approval to revoke")
        await session.commit()

        logger.info("fraud_decision_approval_revoked", decision_id=decision_id, revoked_by=actor_id)
        await self._audit.record(
            session, actor_id, "REVOKE_DECISION_APPROVAL", "FraudDecision", decision_id, None
        )
        return await self._reload(session, decision_id)

    async def list_decisions(
        self,
        session: AsyncSession,
        action: str | None = None,
        risk_level: str | None = None,
        requires_approval: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[tuple[FraudDecisionDB, Member]], int, dict[str, int]]:
        filters = []
        if action:
            filters.append(FraudDecisionDB.action == action)
        if risk_level:
            filters.append(FraudDecisionDB.risk_level == risk_level)
        if requires_approval is not None:
            filters.append(FraudDecisionDB.requires_approval.is_(requires_approval))

        total = (
            await session.execute(select(func.count()).select_from(FraudDecisionDB).where(*filters))
        ).scalar_one()
        rows = (
            await session.execute(
                select(FraudDecisionDB, Member)
                .join(Member, Member.id == FraudDecisionDB.member_id)
                .where(*filters)
                .order_by(FraudDecisionDB.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
        ).all()
        return [(d, m) for d, m in rows], total, await self._action_breakdown(session)

    async def decision_stats(self, session: AsyncSession) -> dict:
        breakdown = await self._action_breakdown(session)
        total = (await session.execute(select(func.count()).select_from(FraudDecisionDB))).scalar_one()
        pending = (
            await session.execute(
                select(func.count())
                .select_from(FraudDecisionDB)
                .where(
                    FraudDecisionDB.requires_approval.is_(True),
                    FraudDecisionDB.approved.is_(None),
                )
            )
        ).scalar_one()
        recent = (
            await session.execute(
                select(FraudDecisionDB, Member)
                .join(Member, Member.id == FraudDecisionDB.member_id)
                .order_by(FraudDecisionDB.created_at.desc())
                .limit(5)
            )
        ).all()

        return {
            "total": total,
            "pending_approvals": pending,
            "alerts_triggered": breakdown.get(DecisionAction.ALERT_TRIGGERED.value, 0),
            "accounts_flagged": breakdown.get(DecisionAction.ACCOUNT_FLAGGED.value, 0),
            "auto_approved": breakdown.get(DecisionAction.AUTO_APPROVED.value, 0),
            "blocked": breakdown.get(DecisionAction.TRANSACTION_BLOCKED.value, 0),
            "recent_decisions": [(d, m) for d, m in recent],
        }

    async def _action_breakdown(self, session: AsyncSession) -> dict[str, int]:
        rows = await session.execute(
            select(FraudDecisionDB.action, func.count(FraudDecisionDB.id)).group_by(
                FraudDecisionDB.action
            )
        )
        return {action: count for action, count in rows.all()}

    async def _raise_not_pending(self, session: AsyncSession, decision_id: str) -> None:
        decision = await session.get(FraudDecisionDB, decision_id)
        if decision is None:
            raise NotFoundError("FraudDecision", decision_id)
        if not decision.requires_approval:
            raise InvalidStateError(f"Decision {decision_id} does not require approval")
        raise InvalidStateError(
            f"Decision {decision_id} was already {'approved' if decision.approved else 'rejected'}"
        )

    async def _reload(self, session: AsyncSession, decision_id: str) -> FraudDecisionDB:
        result = await session.execute(
            select(FraudDecisionDB)
            .where(FraudDecisionDB.id == decision_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
