"""Extension point for operator-defined CUSTOM rules."""

from collections.abc import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import RuleDefinition, RuleType, ViolationCandidate
from .base import EvaluationContext, RuleEvaluator

logger = structlog.get_logger()

CustomHandler = Callable[
    [AsyncSession, RuleDefinition, EvaluationContext],
    Awaitable[list[ViolationCandidate]],
]


class CustomRuleEvaluator(RuleEvaluator):
    """Dispatches CUSTOM rules to handlers registered under the rule's name.

    A CUSTOM rule with no registered handler evaluates to nothing. Handler dedup
    keys are namespaced with ``custom:`` so they cannot collide with built-ins.
    """

    rule_type = RuleType.CUSTOM

    def __init__(self) -> None:
        self._handlers: dict[str, CustomHandler] = {}

    def register(self, rule_name: str, handler: CustomHandler) -> None:
        self._handlers[rule_name] = handler
        logger.info("custom_rule_handler_registered", rule_name=rule_name)

    def unregister(self, rule_name: str) -> None:
        self._handlers.pop(rule_name, None)

    async def find_violations(
        self,
        session: AsyncSession,
        rule: RuleDefinition,
        context: EvaluationContext,
    ) -> list[ViolationCandidate]:
        handler = self._handlers.get(rule.name)
        if handler is None:
            logger.debug("custom_rule_without_handler", rule_id=rule.id, rule_name=rule.name)
            return []

        candidates = await handler(session, rule, context)
        return [
            ViolationCandidate(
                member_id=c.member_id,
                dedup_key=c.dedup_key if c.dedup_key.startswith("custom:") else f"custom:{c.dedup_key}",
                details=c.details,
                transaction_id=c.transaction_id,
            )
            for c in candidates
        ]
