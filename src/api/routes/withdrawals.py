"""Withdrawal threshold configuration and withdrawal request endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor_id
from src.api.serializers import withdrawal_request_dict
from src.db.database import get_session
from src.domains.fraud.models import (
    ThresholdUpdate,
    WithdrawalRequestCreate,
    WithdrawalReview,
    WithdrawalStatus,
)
from src.domains.fraud.thresholds import current_thresholds, set_thresholds
from src.domains.fraud.withdrawals import WithdrawalRequests

router = APIRouter(prefix="/api/v1/fraud-engine", tags=["withdrawals"])

_requests = WithdrawalRequests()


@router.get("/thresholds")
async def get_thresholds(
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    snapshot = await current_thresholds(session)
    return {
        "large_withdrawal_amount": snapshot.large_withdrawal_amount,
        "daily_withdrawal_limit": snapshot.daily_withdrawal_limit,
        "max_withdrawals_per_day": snapshot.max_withdrawals_per_day,
        "require_approval_above": snapshot.require_approval_above,
        "configured": snapshot.configured,
    }


@router.put("/thresholds")
async def update_thresholds(
    update: ThresholdUpdate,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    row = await set_thresholds(session, update, actor_id)
    return {
        "id": row.id,
        "large_withdrawal_amount": row.large_withdrawal_amount,
        "daily_withdrawal_limit": row.daily_withdrawal_limit,
        "max_withdrawals_per_day": row.max_withdrawals_per_day,
        "require_approval_above": row.require_approval_above,
        "updated_by": row.updated_by,
        "updated_at": row.updated_at.isoformat(),
    }


@router.get("/withdrawal-requests")
async def list_withdrawal_requests(
    session: AsyncSession = Depends(get_session),  # noqa: B008
    status: WithdrawalStatus | None = None,
    member_id: str | None = None,
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> dict:
    rows, total = await _requests.list_requests(
        session,
        status=status.value if status else None,
        member_id=member_id,
        limit=limit,
        offset=offset,
    )
    return {
        "items": [withdrawal_request_dict(req, member) for req, member in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("/withdrawal-requests", status_code=201)
async def create_withdrawal_request(
    spec: WithdrawalRequestCreate,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    request = await _requests.create_request(session, spec, actor_id)
    return withdrawal_request_dict(request)


@router.patch("/withdrawal-requests/{request_id}/review")
async def review_withdrawal_request(
    request_id: str,
    review: WithdrawalReview,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    request = await _requests.review_request(session, request_id, review, actor_id)
    return withdrawal_request_dict(request)
