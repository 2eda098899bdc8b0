"""Fraud rule evaluators, one per rule type.

``EVALUATORS`` must cover every ``RuleType``; a missing entry fails at import.
"""

from ..models import RuleType
from .amount import AmountRuleEvaluator, effective_ceiling
from .base import EvaluationContext, RuleEvaluator
from .custom import CustomHandler, CustomRuleEvaluator
from .frequency import FrequencyRuleEvaluator, window_bucket
from .no_deposit import NoDepositRuleEvaluator

custom_rules = CustomRuleEvaluator()

EVALUATORS: dict[RuleType, RuleEvaluator] = {
    RuleType.FREQUENCY: FrequencyRuleEvaluator(),
    RuleType.AMOUNT: AmountRuleEvaluator(),
    RuleType.NO_DEPOSIT: NoDepositRuleEvaluator(),
    RuleType.CUSTOM: custom_rules,
}

_missing = set(RuleType) - EVALUATORS.keys()
if _missing:
    raise RuntimeError(f"No evaluator registered for rule types: {sorted(_missing)}")


def register_custom_evaluator(rule_name: str, handler: CustomHandler) -> None:
    """Attach an implementation to the CUSTOM rule named ``rule_name``."""
    custom_rules.register(rule_name, handler)


__all__ = [
    "EVALUATORS",
    "AmountRuleEvaluator",
    "CustomHandler",
    "CustomRuleEvaluator",
    "EvaluationContext",
    "FrequencyRuleEvaluator",
    "NoDepositRuleEvaluator",
    "RuleEvaluator",
    "effective_ceiling",
    "register_custom_evaluator",
    "custom_rules",
    "window_bucket",
]
