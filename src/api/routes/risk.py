"""Member risk score endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor_id
from src.api.serializers import decision_dict, member_ref, risk_score_dict, violation_dict
from src.db.database import get_session
from src.domains.fraud.models import RiskLevel
from src.domains.fraud.scorer import RiskScorer

router = APIRouter(prefix="/api/v1/fraud-engine/risk-scores", tags=["risk-scores"])

_scorer = RiskScorer()


@router.post("/recalculate")
async def recalculate_risk_scores(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    processed = await _scorer.recalculate_all(session, actor_id=actor_id)
    return {"members_processed": processed}


@router.get("")
async def list_risk_scores(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    risk_level: RiskLevel | None = None,
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> dict:
    rows, total, breakdown = await _scorer.list_scores(
        session,
        risk_level=risk_level.value if risk_level else None,
        limit=limit,
        offset=offset,
    )
    return {
        "items": [risk_score_dict(score, member) for score, member in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
        "breakdown": {level.value: breakdown.get(level.value, 0) for level in RiskLevel},
    }


@router.get("/{member_id}")
async def get_member_risk_detail(
    member_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    detail = await _scorer.member_detail(session, member_id)
    return {
        **risk_score_dict(detail["score"]),
        "member": member_ref(detail["member"]),
        "recent_violations": [violation_dict(v, r) for v, r in detail["violations"]],
        "recent_decisions": [decision_dict(d) for d in detail["decisions"]],
    }
