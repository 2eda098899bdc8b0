"""Operator dashboard counters across the fraud engine tables."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import (
    FraudDecisionDB,
    FraudRuleDB,
    MemberRiskScoreDB,
    RuleViolationDB,
    WithdrawalRequestDB,
)

from .models import RiskLevel, WithdrawalStatus


async def _count(session: AsyncSession, model, *filters) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*filters))
    return result.scalar_one()


async def engine_stats(session: AsyncSession) -> dict[str, int]:
    return {
        "total_rules": await _count(session, FraudRuleDB),
        "enabled_rules": await _count(session, FraudRuleDB, FraudRuleDB.enabled.is_(True)),
        "total_violations": await _count(session, RuleViolationDB),
        "unreviewed_violations": await _count(
            session, RuleViolationDB, RuleViolationDB.reviewed.is_(False)
        ),
        "high_risk_members": await _count(
            session, MemberRiskScoreDB, MemberRiskScoreDB.risk_level == RiskLevel.HIGH.value
        ),
        "critical_risk_members": await _count(
            session, MemberRiskScoreDB, MemberRiskScoreDB.risk_level == RiskLevel.CRITICAL.value
        ),
        "total_decisions": await _count(session, FraudDecisionDB),
        "pending_approvals": await _count(
            session,
            FraudDecisionDB,
            FraudDecisionDB.requires_approval.is_(True),
            FraudDecisionDB.approved.is_(None),
        ),
        "pending_withdrawals": await _count(
            session,
            WithdrawalRequestDB,
            WithdrawalRequestDB.status == WithdrawalStatus.PENDING.value,
        ),
    }
