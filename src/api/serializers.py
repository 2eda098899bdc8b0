"""JSON shapes for fraud engine rows shared by several routers."""

from datetime import datetime

from src.db.models import (
    FraudDecisionDB,
    FraudRuleDB,
    Member,
    MemberRiskScoreDB,
    RuleViolationDB,
    WithdrawalRequestDB,
)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def member_ref(member: Member | None) -> dict | None:
    if member is None:
        return None
    return {
        "id": member.id,
        "member_number": member.member_number,
        "full_name": member.full_name,
        "status": member.status,
    }


def rule_dict(rule: FraudRuleDB, violation_count: int | None = None) -> dict:
    data = {
        "id": rule.id,
        "name": rule.name,
        "description": rule.description,
        "rule_type": rule.rule_type,
        "enabled": rule.enabled,
        "max_count": rule.max_count,
        "window_hours": rule.window_hours,
        "min_amount": rule.min_amount,
        "max_amount": rule.max_amount,
        "severity": rule.severity,
        "risk_points": rule.risk_points,
        "created_by": rule.created_by,
        "created_at": _iso(rule.created_at),
        "updated_at": _iso(rule.updated_at),
    }
    if violation_count is not None:
        data["violation_count"] = violation_count
    return data


def violation_dict(violation: RuleViolationDB, rule: FraudRuleDB | None = None) -> dict:
    data = {
        "id": violation.id,
        "rule_id": violation.rule_id,
        "member_id": violation.member_id,
        "transaction_id": violation.transaction_id,
        "details": violation.details,
        "risk_points": violation.risk_points,
        "reviewed": violation.reviewed,
        "reviewed_by": violation.reviewed_by,
        "reviewed_at": _iso(violation.reviewed_at),
        "review_notes": violation.review_notes,
        "created_at": _iso(violation.created_at),
    }
    if rule is not None:
        data["rule"] = {
            "name": rule.name,
            "rule_type": rule.rule_type,
            "severity": rule.severity,
        }
    return data


def withdrawal_request_dict(request: WithdrawalRequestDB, member: Member | None = None) -> dict:
    return {
        "id": request.id,
        "request_ref": request.request_ref,
        "member_id": request.member_id,
        "member": member_ref(member),
        "amount": request.amount,
        "reason": request.reason,
        "supporting_doc": request.supporting_doc,
        "status": request.status,
        "reviewed_by": request.reviewed_by,
        "reviewed_at": _iso(request.reviewed_at),
        "review_notes": request.review_notes,
        "created_at": _iso(request.created_at),
    }


def risk_score_dict(score: MemberRiskScoreDB, member: Member | None = None) -> dict:
    data = {
        "member_id": score.member_id,
        "total_points": score.total_points,
        "risk_level": score.risk_level,
        "frequency_points": score.frequency_points,
        "amount_points": score.amount_points,
        "behavior_points": score.behavior_points,
        "no_deposit_points": score.no_deposit_points,
        "avg_transaction_amount": score.avg_transaction_amount,
        "transaction_frequency": score.transaction_frequency,
        "last_calculated_at": _iso(score.last_calculated_at),
    }
    if member is not None:
        data["member"] = member_ref(member)
    return data


def decision_dict(decision: FraudDecisionDB, member: Member | None = None) -> dict:
    data = {
        "id": decision.id,
        "member_id": decision.member_id,
        "transaction_id": decision.transaction_id,
        "risk_score": decision.risk_score,
        "risk_level": decision.risk_level,
        "action": decision.action,
        "reason": decision.reason,
        "requires_approval": decision.requires_approval,
        "approved": decision.approved,
        "approved_by": decision.approved_by,
        "approved_at": _iso(decision.approved_at),
        "created_at": _iso(decision.created_at),
    }
    if member is not None:
        data["member"] = member_ref(member)
    return data
