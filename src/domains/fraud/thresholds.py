"""Withdrawal threshold configuration: the latest row is authoritative."""

from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import WithdrawalThresholdDB
from src.shared.clock import utcnow

from .alerts import AuditTrail
from .config import (
    DEFAULT_DAILY_WITHDRAWAL_LIMIT,
    DEFAULT_MAX_WITHDRAWALS_PER_DAY,
    DEFAULT_REQUIRE_APPROVAL_ABOVE,
    FraudEngineConfig,
    default_config,
)
from .models import ThresholdSnapshot, ThresholdUpdate

logger = structlog.get_logger()


async def latest_threshold(session: AsyncSession) -> WithdrawalThresholdDB | None:
    stmt = (
        select(WithdrawalThresholdDB)
        .order_by(WithdrawalThresholdDB.updated_at.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def current_thresholds(
    session: AsyncSession,
    config: FraudEngineConfig | None = None,
) -> ThresholdSnapshot:
    """Effective limits, falling back to the configured defaults."""
    cfg = config or default_config
    row = await latest_threshold(session)
    if row is None:
        return ThresholdSnapshot(
            large_withdrawal_amount=cfg.default_large_withdrawal_amount,
            daily_withdrawal_limit=DEFAULT_DAILY_WITHDRAWAL_LIMIT,
            max_withdrawals_per_day=DEFAULT_MAX_WITHDRAWALS_PER_DAY,
            require_approval_above=DEFAULT_REQUIRE_APPROVAL_ABOVE,
            configured=False,
        )
    return ThresholdSnapshot(
        large_withdrawal_amount=row.large_withdrawal_amount,
        daily_withdrawal_limit=row.daily_withdrawal_limit,
        max_withdrawals_per_day=row.max_withdrawals_per_day,
        require_approval_above=row.require_approval_above,
        configured=True,
    )


async def set_thresholds(
    session: AsyncSession,
    update: ThresholdUpdate,
    actor_id: str,
    audit: AuditTrail | None = None,
    now: datetime | None = None,
) -> WithdrawalThresholdDB:
    """Overwrite the latest threshold row, creating it on first use."""
    now = now or utcnow()
    row = await latest_threshold(session)
    if row is None:
        row = WithdrawalThresholdDB()
        session.add(row)

    row.large_withdrawal_amount = update.large_withdrawal_amount
    row.daily_withdrawal_limit = update.daily_withdrawal_limit
    row.max_withdrawals_per_day = update.max_withdrawals_per_day
    row.require_approval_above = update.require_approval_above
    row.updated_by = actor_id
    row.updated_at = now
    await session.commit()

    logger.info(
        "withdrawal_thresholds_updated",
        threshold_id=row.id,
        large_withdrawal_amount=row.large_withdrawal_amount,
        updated_by=actor_id,
    )
    await (audit or AuditTrail()).record(
        session,
        actor_id,
        "UPDATE_THRESHOLDS",
        "WithdrawalThreshold",
        row.id,
        update.model_dump_json(),
    )
    return row
