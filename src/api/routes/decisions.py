"""Fraud decision endpoints: evaluation, listing and the approval workflow."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor_id
from src.api.serializers import decision_dict, risk_score_dict
from src.db.database import get_session
from src.domains.fraud.decisions import DecisionEngine
from src.domains.fraud.models import DecisionAction, DecisionApproval, EvaluateRequest, RiskLevel

router = APIRouter(prefix="/api/v1/fraud-engine/decisions", tags=["decisions"])

_decisions = DecisionEngine()


@router.post("/evaluate")
async def evaluate(
    request: EvaluateRequest,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    """Derive and record decisions from the member's current risk score."""
    outcome = await _decisions.evaluate(
        session, request.member_id, request.transaction_id, actor_id=actor_id
    )
    return {
        "risk_score": risk_score_dict(outcome.risk_score),
        "decisions": [decision_dict(d) for d in outcome.decisions],
    }


@router.get("")
async def list_decisions(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    action: DecisionAction | None = None,
    risk_level: RiskLevel | None = None,
    requires_approval: bool | None = None,
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> dict:
    rows, total, breakdown = await _decisions.list_decisions(
        session,
        action=action.value if action else None,
        risk_level=risk_level.value if risk_level else None,
        requires_approval=requires_approval,
        limit=limit,
        offset=offset,
    )
    return {
        "items": [decision_dict(d, m) for d, m in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
        "breakdown": breakdown,
    }


@router.get("/stats")
async def decision_stats(
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    stats = await _decisions.decision_stats(session)
    return {
        **{k: v for k, v in stats.items() if k != "recent_decisions"},
        "recent_decisions": [decision_dict(d, m) for d, m in stats["recent_decisions"]],
    }


@router.patch("/{decision_id}/approve")
async def approve_decision(
    decision_id: str,
    body: DecisionApproval,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    decision = await _decisions.approve_decision(session, decision_id, body.approved, actor_id)
    return decision_dict(decision)


@router.post("/{decision_id}/revoke")
async def revoke_decision_approval(
    decision_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    decision = await _decisions.revoke_approval(session, decision_id, actor_id)
    return decision_dict(decision)
