"""Engine-wide counters and post-write transaction screening."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_actor_id
from src.db.database import get_session
from src.domains.fraud.screening import screen_transaction
from src.domains.fraud.stats import engine_stats

router = APIRouter(prefix="/api/v1/fraud-engine", tags=["fraud-engine"])


@router.get("/stats")
async def get_engine_stats(
    session: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict:
    return await engine_stats(session)


@router.post("/transactions/{transaction_id}/screen")
async def screen(
    transaction_id: str,
    session: AsyncSession = Depends(get_session),  # noqa: B008
    actor_id: str = Depends(get_actor_id),
) -> dict:
    result = await screen_transaction(session, transaction_id, actor_id=actor_id)
    return result.model_dump(mode="json")
