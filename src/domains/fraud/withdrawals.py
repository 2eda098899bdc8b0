"""Large-withdrawal requests and their one-shot review."""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import Member, WithdrawalRequestDB
from src.shared.clock import utcnow
from src.shared.errors import InvalidStateError, NotFoundError

from .alerts import AuditTrail
from .models import WithdrawalRequestCreate, WithdrawalReview, WithdrawalStatus

logger = structlog.get_logger()


def new_request_ref() -> str:
    return f"WR-{uuid.uuid4().hex[:8].upper()}"


class WithdrawalRequests:
    def __init__(self, audit: AuditTrail | None = None) -> None:
        self._audit = audit or AuditTrail()

    async def list_requests(
        self,
        session: AsyncSession,
        status: str | None = None,
        member_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[tuple[WithdrawalRequestDB, Member]], int]:
        filters = []
        if status:
            filters.append(WithdrawalRequestDB.status == status)
        if member_id:
            filters.append(WithdrawalRequestDB.member_id == member_id)

        total = (
            await session.execute(
                select(func.count()).select_from(WithdrawalRequestDB).where(*filters)
            )
        ).scalar_one()
        rows = (
            await session.execute(
                select(WithdrawalRequestDB, Member)
                .join(Member, Member.id == WithdrawalRequestDB.member_id)
                .where(*filters)
                .order_by(WithdrawalRequestDB.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
        ).all()
        return [(req, member) for req, member in rows], total

    async def create_request(
        self, session: AsyncSession, spec: WithdrawalRequestCreate, actor_id: str
    ) -> WithdrawalRequestDB:
        if await session.get(Member, spec.member_id) is None:
            raise NotFoundError("Member", spec.member_id)

        request = WithdrawalRequestDB(
            request_ref=new_request_ref(),
            member_id=spec.member_id,
            amount=spec.amount,
            reason=spec.reason,
            supporting_doc=spec.supporting_doc,
            status=WithdrawalStatus.PENDING.value,
            created_at=utcnow(),
        )
        session.add(request)
        await session.commit()

        logger.info(
            "withdrawal_request_created",
            request_id=request.id,
            request_ref=request.request_ref,
            member_id=spec.member_id,
            amount=spec.amount,
        )
        await self._audit.record(
            session,
            actor_id,
            "CREATE_WITHDRAWAL_REQUEST",
            "WithdrawalRequest",
            request.id,
            f"Amount: {spec.amount:,.2f}",
        )
        return request

    async def review_request(
        self,
        session: AsyncSession,
        request_id: str,
        review: WithdrawalReview,
        actor_id: str,
        now: datetime | None = None,
    ) -> WithdrawalRequestDB:
        """PENDING -> APPROVED | REJECTED, applied as one conditional UPDATE."""
        stmt = (
            update(WithdrawalRequestDB)
            .where(
                WithdrawalRequestDB.id == request_id,
                WithdrawalRequestDB.status == WithdrawalStatus.PENDING.value,
            )
            .values(
                status=review.status,
                reviewed_by=actor_id,
                reviewed_at=now or utcnow(),
                review_notes=review.notes,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            await session.rollback()
            existing = await session.get(WithdrawalRequestDB, request_id)
            if existing is None:
                raise NotFoundError("WithdrawalRequest", request_id)
            raise InvalidStateError(
                f"Withdrawal request {existing.request_ref} is already {existing.status}"
            )
        await session.commit()

        logger.info(
            "withdrawal_request_reviewed",
            request_id=request_id,
            status=review.status,
            reviewed_by=actor_id,
        )
        await self._audit.record(
            session,
            actor_id,
            f"{review.status}_WITHDRAWAL_REQUEST",
            "WithdrawalRequest",
            request_id,
            review.notes,
        )
        return (
            await session.execute(
                select(WithdrawalRequestDB)
                .where(WithdrawalRequestDB.id == request_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
