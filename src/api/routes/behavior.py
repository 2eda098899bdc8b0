"""Member behavior analysis endpoints. Read-only."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.database import get_session
from src.domains.behavior.analyzer import BehaviorAnalyzer

router = APIRouter(prefix="/api/v1/fraud-engine/behavior", tags=["behavior"])

_analyzer = BehaviorAnalyzer()


@router.get("")
async def analyze_behavior(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    member_id: str | None = None,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> dict:
    analyses, total = await _analyzer.analyze(
        session, member_id=member_id, limit=limit, offset=offset
    )
    return {
        "items": [a.model_dump() for a in analyses],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/summary")
async def summarize_behavior(
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    summary = await _analyzer.summarize(session)
    return summary.model_dump()


@router.get("/{member_id}")
async def analyze_member(
    member_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    analysis = await _analyzer.analyze_member(session, member_id)
    return analysis.model_dump()
