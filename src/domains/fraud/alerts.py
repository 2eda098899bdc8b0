"""Audit and fraud-alert sinks."""

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import AuditLogDB, FraudAlertDB
from src.shared.clock import utcnow

logger = structlog.get_logger()


class AuditTrail:
    """Appends audit entries after the primary write has been committed.

    Entries are written through a short-lived session on the caller's engine,
    so a failed audit write is rolled back and logged without touching the
    caller's session: rows it already committed stay loaded and returnable.
    """

    async def record(
        self,
        session: AsyncSession,
        user_id: str,
        action: str,
        entity: str,
        entity_id: str | None = None,
        details: str | None = None,
    ) -> bool:
        entry = AuditLogDB(
            action=action,
            entity=entity,
            entity_id=entity_id,
            details=details,
            user_id=user_id,
            created_at=utcnow(),
        )
        try:
            async with AsyncSession(session.bind, expire_on_commit=False) as audit_session:
                audit_session.add(entry)
                await audit_session.commit()
        except SQLAlchemyError:
            logger.warning(
                "audit_write_failed",
                action=action,
                entity=entity,
                entity_id=entity_id,
                exc_info=True,
            )
            return False
        return True


def build_alert(
    alert_type: str,
    severity: str,
    description: str,
    member_id: str,
    transaction_id: str | None = None,
    details: dict | None = None,
) -> FraudAlertDB:
    """Create (but do not commit) a fraud alert for human triage."""
    alert = FraudAlertDB(
        alert_type=alert_type,
        severity=severity,
        description=description,
        member_id=member_id,
        transaction_id=transaction_id,
        details=details or {},
        status="OPEN",
        created_at=utcnow(),
    )
    logger.warning(
        "fraud_alert_created",
        alert_type=alert_type,
        severity=severity,
        member_id=member_id,
        transaction_id=transaction_id,
    )
    return alert
