"""Fraud rule catalog and violation review."""

from datetime import datetime

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import FraudRuleDB, RuleViolationDB
from src.shared.clock import utcnow
from src.shared.errors import NotFoundError

from .alerts import AuditTrail
from .models import RuleCreate, RuleUpdate, RuleType, ViolationReview, validate_rule_parameters

logger = structlog.get_logger()


class RuleCatalog:
    def __init__(self, audit: AuditTrail | None = None) -> None:
        self._audit = audit or AuditTrail()

    async def list_rules(self, session: AsyncSession) -> list[tuple[FraudRuleDB, int]]:
        """All rules, newest first, each with its violation count."""
        violation_counts = (
            select(RuleViolationDB.rule_id, func.count(RuleViolationDB.id).label("cnt"))
            .group_by(RuleViolationDB.rule_id)
            .subquery()
        )
        stmt = (
            select(FraudRuleDB, func.coalesce(violation_counts.c.cnt, 0))
            .outerjoin(violation_counts, violation_counts.c.rule_id == FraudRuleDB.id)
            .order_by(FraudRuleDB.created_at.desc())
        )
        result = await session.execute(stmt)
        return [(rule, count) for rule, count in result.all()]

    async def get_rule(self, session: AsyncSession, rule_id: str) -> FraudRuleDB:
        rule = await session.get(FraudRuleDB, rule_id)
        if rule is None:
            raise NotFoundError("FraudRule", rule_id)
        return rule

    async def create_rule(
        self, session: AsyncSession, spec: RuleCreate, actor_id: str
    ) -> FraudRuleDB:
        now = utcnow()
        rule = FraudRuleDB(
            name=spec.name,
            description=spec.description,
            rule_type=spec.rule_type.value,
            enabled=spec.enabled,
            max_count=spec.max_count,
            window_hours=spec.window_hours,
            min_amount=spec.min_amount,
            max_amount=spec.max_amount,
            severity=spec.severity.value,
            risk_points=spec.risk_points,
            created_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        session.add(rule)
        await session.commit()

        logger.info("fraud_rule_created", rule_id=rule.id, rule_type=rule.rule_type)
        await self._audit.record(
            session, actor_id, "CREATE_FRAUD_RULE", "FraudRule", rule.id, f"Created rule: {rule.name}"
        )
        return rule

    async def update_rule(
        self, session: AsyncSession, rule_id: str, patch: RuleUpdate, actor_id: str
    ) -> FraudRuleDB:
        """Apply a partial update; the merged rule must still satisfy its type's invariants."""
        rule = await self.get_rule(session, rule_id)
        changes = patch.model_dump(exclude_unset=True, mode="json")

        merged = {
            "rule_type": RuleType(changes.get("rule_type", rule.rule_type)),
            "max_count": changes.get("max_count", rule.max_count),
            "window_hours": changes.get("window_hours", rule.window_hours),
            "min_amount": changes.get("min_amount", rule.min_amount),
            "max_amount": changes.get("max_amount", rule.max_amount),
        }
        validate_rule_parameters(**merged)

        for field_name, value in changes.items():
            if field_name in ("name", "risk_points", "enabled") and value is None:
                continue
            setattr(rule, field_name, value)
        rule.updated_at = utcnow()
        await session.commit()

        logger.info("fraud_rule_updated", rule_id=rule_id, fields=sorted(changes))
        await self._audit.record(
            session,
            actor_id,
            "UPDATE_FRAUD_RULE",
            "FraudRule",
            rule_id,
            patch.model_dump_json(exclude_unset=True),
        )
        return rule

    async def delete_rule(self, session: AsyncSession, rule_id: str, actor_id: str) -> None:
        """Delete a rule together with its violations."""
        await self.get_rule(session, rule_id)
        await session.execute(delete(RuleViolationDB).where(RuleViolationDB.rule_id == rule_id))
        await session.execute(delete(FraudRuleDB).where(FraudRuleDB.id == rule_id))
        await session.commit()

        logger.info("fraud_rule_deleted", rule_id=rule_id)
        await self._audit.record(
            session, actor_id, "DELETE_FRAUD_RULE", "FraudRule", rule_id, "Rule deleted"
        )

    async def list_violations(
        self,
        session: AsyncSession,
        reviewed: bool | None = None,
        rule_id: str | None = None,
        member_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[tuple[RuleViolationDB, FraudRuleDB]], int]:
        filters = []
        if reviewed is not None:
            filters.append(RuleViolationDB.reviewed.is_(reviewed))
        if rule_id:
            filters.append(RuleViolationDB.rule_id == rule_id)
        if member_id:
            filters.append(RuleViolationDB.member_id == member_id)

        total = (
            await session.execute(select(func.count()).select_from(RuleViolationDB).where(*filters))
        ).scalar_one()

        stmt = (
            select(RuleViolationDB, FraudRuleDB)
            .join(FraudRuleDB, FraudRuleDB.id == RuleViolationDB.rule_id)
            .where(*filters)
            .order_by(RuleViolationDB.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = (await session.execute(stmt)).all()
        return [(violation, rule) for violation, rule in rows], total

    async def review_violation(
        self,
        session: AsyncSession,
        violation_id: str,
        review: ViolationReview,
        actor_id: str,
        now: datetime | None = None,
    ) -> RuleViolationDB:
        """Set the review fields. Re-reviewing overwrites them."""
        violation = await session.get(RuleViolationDB, violation_id)
        if violation is None:
            raise NotFoundError("RuleViolation", violation_id)

        violation.reviewed = review.reviewed
        violation.reviewed_by = actor_id
        violation.reviewed_at = now or utcnow()
        violation.review_notes = review.notes
        await session.commit()

        logger.info("rule_violation_reviewed", violation_id=violation_id, reviewed=review.reviewed)
        await self._audit.record(
            session, actor_id, "REVIEW_VIOLATION", "RuleViolation", violation_id, review.notes
        )
        return violation
