"""Fraud detection domain."""

from .catalog import RuleCatalog
from .decisions import DecisionEngine, EvaluationOutcome, plan_decisions
from .models import (
    DecisionAction,
    RiskBreakdown,
    RiskLevel,
    RuleRunResult,
    RuleType,
    ScreeningResult,
)
from .rules import EVALUATORS, register_custom_evaluator
from .rules_engine import RulesEngine
from .scorer import RiskScorer, classify_risk_level, compute_risk_breakdown
from .screening import screen_transaction
from .withdrawals import WithdrawalRequests

__all__ = [
    "EVALUATORS",
    "DecisionAction",
    "DecisionEngine",
    "EvaluationOutcome",
    "RiskBreakdown",
    "RiskLevel",
    "RiskScorer",
    "RuleCatalog",
    "RuleRunResult",
    "RuleType",
    "RulesEngine",
    "ScreeningResult",
    "WithdrawalRequests",
    "classify_risk_level",
    "compute_risk_breakdown",
    "plan_decisions",
    "register_custom_evaluator",
    "screen_transaction",
]
