"""Rule scan engine: enabled rules -> deduplicated rule violations."""

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import FraudRuleDB, RuleViolationDB, new_id
from src.db.statements import insert_or_ignore
from src.shared.clock import utcnow

from .alerts import AuditTrail
from .config import FraudEngineConfig, default_config
from .models import RuleDefinition, RuleFailure, RuleRunResult, RuleType
from .rules import EVALUATORS, EvaluationContext, RuleEvaluator
from .thresholds import current_thresholds

logger = structlog.get_logger()


class RulesEngine:
    """Evaluates every enabled fraud rule against the transaction store.

    Each rule runs in its own transaction: a rule that fails is rolled back,
    logged and reported in the result while the remaining rules still run.
    Violations are written with INSERT ... ON CONFLICT DO NOTHING on
    (rule_id, dedup_key), so a scan can be repeated or run concurrently
    without double counting.
    """

    def __init__(
        self,
        config: FraudEngineConfig | None = None,
        evaluators: dict[RuleType, RuleEvaluator] | None = None,
        audit: AuditTrail | None = None,
    ) -> None:
        self._config = config or default_config
        self._evaluators = evaluators if evaluators is not None else EVALUATORS
        self._audit = audit or AuditTrail()

    async def run(
        self,
        session: AsyncSession,
        actor_id: str = "system",
        now: datetime | None = None,
    ) -> RuleRunResult:
        now = now or utcnow()
        result = RuleRunResult()

        rows = (
            await session.execute(
                select(FraudRuleDB)
                .where(FraudRuleDB.enabled.is_(True))
                .order_by(FraudRuleDB.created_at)
            )
        ).scalars().all()

        # Snapshot before any per-rule rollback expires the loaded rows.
        rules: list[RuleDefinition] = []
        for row in rows:
            try:
                rules.append(RuleDefinition.from_row(row))
            except ValueError as exc:
                logger.error("rule_definition_invalid", rule_id=row.id, error=str(exc))
                result.rules_failed += 1
                result.failures.append(
                    RuleFailure(rule_id=row.id, rule_name=row.name, error=str(exc))
                )

        context = EvaluationContext(
            now=now,
            thresholds=await current_thresholds(session, self._config),
            config=self._config,
        )

        for rule in rules:
            try:
                created = await self._evaluate_rule(session, rule, context)
                await session.commit()
            except Exception as exc:
                await session.rollback()
                logger.exception("rule_evaluation_error", rule_id=rule.id, rule_type=rule.rule_type)
                result.rules_failed += 1
                result.failures.append(
                    RuleFailure(rule_id=rule.id, rule_name=rule.name, error=str(exc))
                )
                continue

            result.rules_evaluated += 1
            result.new_violations += created
            if created:
                await self._audit.record(
                    session,
                    actor_id,
                    "RECORD_RULE_VIOLATIONS",
                    "FraudRule",
                    rule.id,
                    f"{created} new violation(s) for rule {rule.name}",
                )

        logger.info(
            "rule_scan_completed",
            new_violations=result.new_violations,
            rules_evaluated=result.rules_evaluated,
            rules_failed=result.rules_failed,
        )
        await self._audit.record(
            session,
            actor_id,
            "RUN_FRAUD_RULES",
            "FraudRule",
            None,
            f"Scan completed: {result.new_violations} new violations",
        )
        return result

    async def _evaluate_rule(
        self,
        session: AsyncSession,
        rule: RuleDefinition,
        context: EvaluationContext,
    ) -> int:
        evaluator = self._evaluators.get(rule.rule_type)
        if evaluator is None:
            logger.warning("rule_type_without_evaluator", rule_id=rule.id, rule_type=rule.rule_type)
            return 0

        candidates = await evaluator.find_violations(session, rule, context)
        created = 0
        for candidate in candidates:
            inserted = await insert_or_ignore(
                session,
                RuleViolationDB,
                {
                    "id": new_id(),
                    "rule_id": rule.id,
                    "member_id": candidate.member_id,
                    "transaction_id": candidate.transaction_id,
                    "dedup_key": candidate.dedup_key,
                    "details": candidate.details,
                    "risk_points": rule.risk_points,
                    "reviewed": False,
                    "created_at": context.now,
                },
                index_elements=["rule_id", "dedup_key"],
            )
            if inserted:
                created += 1
                logger.info(
                    "rule_violation_recorded",
                    rule_id=rule.id,
                    rule_type=rule.rule_type.value,
                    member_id=candidate.member_id,
                    transaction_id=candidate.transaction_id,
                )

        logger.debug(
            "rule_evaluated",
            rule_id=rule.id,
            rule_type=rule.rule_type.value,
            candidates=len(candidates),
            created=created,
        )
        return created
