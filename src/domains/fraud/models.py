"""Pydantic models for the fraud engine domain."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from src.shared.errors import RuleValidationError


class RuleType(StrEnum):
    FREQUENCY = "FREQUENCY"
    AMOUNT = "AMOUNT"
    NO_DEPOSIT = "NO_DEPOSIT"
    CUSTOM = "CUSTOM"


class Severity(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class DecisionAction(StrEnum):
    ALERT_TRIGGERED = "ALERT_TRIGGERED"
    SECOND_APPROVAL_REQUIRED = "SECOND_APPROVAL_REQUIRED"
    TRANSACTION_BLOCKED = "TRANSACTION_BLOCKED"
    ACCOUNT_FLAGGED = "ACCOUNT_FLAGGED"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    AUTO_APPROVED = "AUTO_APPROVED"


class WithdrawalStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TransactionType(StrEnum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    LOAN_DISBURSEMENT = "LOAN_DISBURSEMENT"
    LOAN_REPAYMENT = "LOAN_REPAYMENT"


class TransactionStatus(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    FLAGGED = "FLAGGED"


class MemberStatus(StrEnum):
    ACTIVE = "ACTIVE"
    FLAGGED = "FLAGGED"
    SUSPENDED = "SUSPENDED"


def validate_rule_parameters(
    rule_type: RuleType,
    max_count: int | None,
    window_hours: int | None,
    min_amount: float | None,
    max_amount: float | None,
) -> None:
    """Enforce the per-type parameter invariants of a fraud rule."""
    if rule_type == RuleType.FREQUENCY and (max_count is None or window_hours is None):
        raise RuleValidationError("FREQUENCY rules require both max_count and window_hours")
    if rule_type == RuleType.AMOUNT and min_amount is None and max_amount is None:
        raise RuleValidationError("AMOUNT rules require min_amount or max_amount")
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise RuleValidationError("min_amount cannot exceed max_amount")


# --- Rule catalog ---


class RuleCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    rule_type: RuleType = RuleType.CUSTOM
    max_count: int | None = Field(default=None, ge=0)
    window_hours: int | None = Field(default=None, gt=0)
    min_amount: float | None = Field(default=None, ge=0)
    max_amount: float | None = Field(default=None, ge=0)
    severity: Severity = Severity.MEDIUM
    risk_points: int = Field(default=10, gt=0)
    enabled: bool = True

    @model_validator(mode="after")
    def _check_parameters(self) -> "RuleCreate":
        validate_rule_parameters(
            self.rule_type, self.max_count, self.window_hours, self.min_amount, self.max_amount
        )
        return self


class RuleUpdate(BaseModel):
    """Partial update. Fields left unset keep their stored value."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    rule_type: RuleType | None = None
    max_count: int | None = Field(default=None, ge=0)
    window_hours: int | None = Field(default=None, gt=0)
    min_amount: float | None = Field(default=None, ge=0)
    max_amount: float | None = Field(default=None, ge=0)
    severity: Severity | None = None
    risk_points: int | None = Field(default=None, gt=0)
    enabled: bool | None = None


@dataclass(frozen=True)
class RuleDefinition:
    """Detached snapshot of a stored rule, handed to the evaluators."""

    id: str
    name: str
    rule_type: RuleType
    severity: Severity
    risk_points: int
    enabled: bool = True
    max_count: int | None = None
    window_hours: int | None = None
    min_amount: float | None = None
    max_amount: float | None = None

    @classmethod
    def from_row(cls, row) -> "RuleDefinition":
        return cls(
            id=row.id,
            name=row.name,
            rule_type=RuleType(row.rule_type),
            severity=Severity(row.severity),
            risk_points=row.risk_points,
            enabled=row.enabled,
            max_count=row.max_count,
            window_hours=row.window_hours,
            min_amount=row.min_amount,
            max_amount=row.max_amount,
        )


@dataclass(frozen=True)
class ViolationCandidate:
    """A violation an evaluator wants recorded, keyed for storage-level dedup."""

    member_id: str
    dedup_key: str
    details: str
    transaction_id: str | None = None


class RuleFailure(BaseModel):
    rule_id: str
    rule_name: str
    error: str


class RuleRunResult(BaseModel):
    new_violations: int = 0
    rules_evaluated: int = 0
    rules_failed: int = 0
    failures: list[RuleFailure] = []


class ViolationReview(BaseModel):
    reviewed: bool = True
    notes: str | None = None


# --- Thresholds and withdrawal requests ---


class ThresholdUpdate(BaseModel):
    large_withdrawal_amount: float = Field(gt=0)
    daily_withdrawal_limit: float = Field(gt=0)
    max_withdrawals_per_day: int = Field(default=5, gt=0)
    require_approval_above: float = Field(gt=0)


@dataclass(frozen=True)
class ThresholdSnapshot:
    """Effective withdrawal limits; ``configured`` is False when defaults apply."""

    large_withdrawal_amount: float
    daily_withdrawal_limit: float
    max_withdrawals_per_day: int
    require_approval_above: float
    configured: bool = False


class WithdrawalRequestCreate(BaseModel):
    member_id: str
    amount: float = Field(gt=0)
    reason: str = Field(min_length=1)
    supporting_doc: str | None = None


class WithdrawalReview(BaseModel):
    status: Literal["APPROVED", "REJECTED"]
    notes: str | None = None


# --- Risk scoring and decisions ---


class RiskBreakdown(BaseModel):
    member_id: str
    frequency_points: int = 0
    amount_points: int = 0
    behavior_points: int = 0
    no_deposit_points: int = 0
    total_points: int = 0
    risk_level: RiskLevel = RiskLevel.LOW
    avg_transaction_amount: float = 0.0
    transaction_frequency: float = 0.0
    calculated_at: datetime


class EvaluateRequest(BaseModel):
    member_id: str
    transaction_id: str | None = None


class DecisionApproval(BaseModel):
    approved: bool


@dataclass(frozen=True)
class PlannedDecision:
    """One action the decision layer will record for a risk tier."""

    action: DecisionAction
    reason: str
    requires_approval: bool = False
    links_transaction: bool = True


class ScreeningSignal(BaseModel):
    signal: str
    severity: Severity
    description: str


class ScreeningResult(BaseModel):
    transaction_id: str
    flagged: bool
    requires_approval: bool = False
    signals: list[ScreeningSignal] = []
