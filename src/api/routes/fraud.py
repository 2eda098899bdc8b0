"""Fraud rule catalog, rule scans and violation review endpoints."""

import structlog
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor_id
from src.api.serializers import rule_dict, violation_dict
from src.db.database import get_session
from src.domains.fraud.catalog import RuleCatalog
from src.domains.fraud.models import RuleCreate, RuleUpdate, ViolationReview
from src.domains.fraud.rules_engine import RulesEngine

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/fraud-engine", tags=["fraud-rules"])

_catalog = RuleCatalog()
_engine = RulesEngine()


@router.get("/rules")
async def list_rules(
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    rules = await _catalog.list_rules(session)
    return {
        "items": [rule_dict(rule, count) for rule, count in rules],
        "total": len(rules),
    }


@router.post("/rules", status_code=201)
async def create_rule(
    spec: RuleCreate,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    rule = await _catalog.create_rule(session, spec, actor_id)
    return rule_dict(rule)


@router.patch("/rules/{rule_id}")
async def update_rule(
    rule_id: str,
    patch: RuleUpdate,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    rule = await _catalog.update_rule(session, rule_id, patch, actor_id)
    return rule_dict(rule)


@router.delete("/rules/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> Response:
    await _catalog.delete_rule(session, rule_id, actor_id)
    return Response(status_code=204)


@router.post("/rules/run")
async def run_rules(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    """Evaluate every enabled rule against the transaction store."""
    result = await _engine.run(session, actor_id=actor_id)
    return result.model_dump()


@router.get("/violations")
async def list_violations(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    reviewed: bool | None = None,
    rule_id: str | None = None,
    member_id: str | None = None,
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> dict:
    rows, total = await _catalog.list_violations(
        session,
        reviewed=reviewed,
        rule_id=rule_id,
        member_id=member_id,
        limit=limit,
        offset=offset,
    )
    return {
        "items": [violation_dict(v, r) for v, r in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.patch("/violations/{violation_id}/review")
async def review_violation(
    violation_id: str,
    review: ViolationReview,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    violation = await _catalog.review_violation(session, violation_id, review, actor_id)
    return violation_dict(violation)
