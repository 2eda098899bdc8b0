"""Unit tests for risk tier -> decision action mapping."""

import pytest

from src.domains.fraud.decisions import plan_decisions
from src.domains.fraud.models import DecisionAction, RiskLevel


class TestPlanDecisions:
    def test_critical_gets_three_actions(self):
        planned = plan_decisions(RiskLevel.CRITICAL, 70)

        assert [p.action for p in planned] == [
            DecisionAction.ALERT_TRIGGERED,
            DecisionAction.SECOND_APPROVAL_REQUIRED,
            DecisionAction.ACCOUNT_FLAGGED,
        ]

    def test_only_second_approval_requires_approval(self):
        planned = {p.action: p for p in plan_decisions(RiskLevel.CRITICAL, 70)}

        assert planned[DecisionAction.SECOND_APPROVAL_REQUIRED].requires_approval is True
        assert planned[DecisionAction.ALERT_TRIGGERED].requires_approval is False
        assert planned[DecisionAction.ACCOUNT_FLAGGED].requires_approval is False

    def test_account_flag_is_member_level(self):
        planned = {p.action: p for p in plan_decisions(RiskLevel.CRITICAL, 70)}
        assert planned[DecisionAction.ACCOUNT_FLAGGED].links_transaction is False

    def test_high_gets_alert_and_manual_review(self):
        planned = plan_decisions(RiskLevel.HIGH, 45)
        assert [p.action for p in planned] == [
            DecisionAction.ALERT_TRIGGERED,
            DecisionAction.MANUAL_REVIEW,
        ]
        assert not any(p.requires_approval for p in planned)

    @pytest.mark.parametrize("level,points", [(RiskLevel.LOW, 0), (RiskLevel.MEDIUM, 35)])
    def test_low_and_medium_are_auto_approved(self, level, points):
        planned = plan_decisions(level, points)
        assert len(planned) == 1
        assert planned[0].action == DecisionAction.AUTO_APPROVED
        assert str(points) in planned[0].reason

    def test_alert_reason_cites_level_and_score(self):
        alert = plan_decisions(RiskLevel.HIGH, 45)[0]
        assert alert.reason == "HIGH risk level detected (score: 45)"
