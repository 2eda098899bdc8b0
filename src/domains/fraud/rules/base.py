"""Abstract base class for fraud rule evaluators."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import FraudEngineConfig
from ..models import RuleDefinition, RuleType, ThresholdSnapshot, ViolationCandidate


@dataclass(frozen=True)
class EvaluationContext:
    """State shared by every rule in one scan.

    ``now`` is taken once per scan so window checks line up across rules.
    """

    now: datetime
    thresholds: ThresholdSnapshot
    config: FraudEngineConfig


class RuleEvaluator(ABC):
    """One evaluation strategy per rule type.

    Evaluators only read. They return candidates carrying a dedup key, and the
    engine inserts them with ON CONFLICT DO NOTHING on (rule_id, dedup_key).
    """

    rule_type: RuleType

    @abstractmethod
    async def find_violations(
        self,
        session: AsyncSession,
        rule: RuleDefinition,
        context: EvaluationContext,
    ) -> list[ViolationCandidate]:
        """Return the violations this rule currently detects."""
        ...
