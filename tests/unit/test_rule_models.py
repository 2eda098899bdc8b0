"""Unit tests for fraud rule request models and parameter validation."""

import pytest
from pydantic import ValidationError

from src.domains.fraud.models import (
    RuleCreate,
    RuleDefinition,
    RuleType,
    Severity,
    WithdrawalRequestCreate,
    WithdrawalReview,
    validate_rule_parameters,
)
from src.shared.errors import RuleValidationError


class TestRuleParameters:
    def test_frequency_requires_count_and_window(self):
        with pytest.raises(RuleValidationError, match="max_count and window_hours"):
            validate_rule_parameters(RuleType.FREQUENCY, 3, None, None, None)

    def test_amount_requires_a_bound(self):
        with pytest.raises(RuleValidationError):
            validate_rule_parameters(RuleType.AMOUNT, None, None, None, None)

    def test_amount_with_only_min(self):
        validate_rule_parameters(RuleType.AMOUNT, None, None, 1_000.0, None)

    def test_min_above_max(self):
        with pytest.raises(RuleValidationError):
            validate_rule_parameters(RuleType.AMOUNT, None, None, 5_000.0, 1_000.0)

    @pytest.mark.parametrize("rule_type", [RuleType.NO_DEPOSIT, RuleType.CUSTOM])
    def test_no_required_parameters(self, rule_type):
        validate_rule_parameters(rule_type, None, None, None, None)

    def test_rule_validation_error_is_a_value_error(self):
        assert issubclass(RuleValidationError, ValueError)


class TestRuleCreate:
    def test_valid_frequency_rule(self):
        spec = RuleCreate(
            name="Burst withdrawals",
            rule_type=RuleType.FREQUENCY,
            max_count=3,
            window_hours=24,
            severity=Severity.HIGH,
            risk_points=20,
        )
        assert spec.enabled is True

    def test_incomplete_frequency_rule_rejected(self):
        with pytest.raises(ValidationError):
            RuleCreate(name="Burst", rule_type=RuleType.FREQUENCY, max_count=3)

    def test_non_positive_risk_points_rejected(self):
        with pytest.raises(ValidationError):
            RuleCreate(name="No deposits", rule_type=RuleType.NO_DEPOSIT, risk_points=0)

    def test_no_deposit_accepts_window_hours(self):
        spec = RuleCreate(name="No deposits", rule_type=RuleType.NO_DEPOSIT, window_hours=72)
        assert spec.window_hours == 72


class TestRuleDefinition:
    def test_from_row(self):
        class Row:
            id = "r-1"
            name = "Big"
            rule_type = "AMOUNT"
            severity = "CRITICAL"
            risk_points = 15
            enabled = True
            max_count = None
            window_hours = None
            min_amount = None
            max_amount = 50_000.0

        rule = RuleDefinition.from_row(Row())
        assert rule.rule_type is RuleType.AMOUNT
        assert rule.severity is Severity.CRITICAL
        assert rule.max_amount == 50_000.0

    def test_unknown_rule_type(self):
        class Row:
            id = "r-2"
            name = "Weird"
            rule_type = "GEO"
            severity = "LOW"
            risk_points = 5
            enabled = True
            max_count = window_hours = min_amount = max_amount = None

        with pytest.raises(ValueError):
            RuleDefinition.from_row(Row())


class TestWithdrawalModels:
    def test_amount_must_be_positive(self):
        with pytest.raises(ValidationError):
            WithdrawalRequestCreate(member_id="m-1", amount=0, reason="School fees")

    def test_review_status_must_be_terminal(self):
        with pytest.raises(ValidationError):
            WithdrawalReview(status="PENDING")
        assert WithdrawalReview(status="APPROVED").status == "APPROVED"
