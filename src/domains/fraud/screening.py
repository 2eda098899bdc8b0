"""Post-write transaction screening.

Runs against a single recorded transaction and raises one fraud alert per
signal that fires. Any signal flags the transaction; the flag is applied with a
conditional UPDATE so re-screening a flagged transaction reports the same
signals without writing duplicate alerts.
"""

from datetime import datetime, timedelta

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import Member, Transaction
from src.shared.clock import utcnow
from src.shared.errors import NotFoundError

from .alerts import AuditTrail, build_alert
from .config import FraudEngineConfig, default_config
from .models import (
    ScreeningResult,
    ScreeningSignal,
    Severity,
    ThresholdSnapshot,
    TransactionStatus,
    TransactionType,
)
from .thresholds import current_thresholds

logger = structlog.get_logger()


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def amount_signals(
    txn_type: str,
    amount: float,
    balance_after: float,
    thresholds: ThresholdSnapshot,
    config: FraudEngineConfig,
) -> list[ScreeningSignal]:
    """Signals that depend only on the transaction itself and the member balance."""
    limits = config.screening
    signals: list[ScreeningSignal] = []

    if txn_type == TransactionType.DEPOSIT and amount >= limits.large_deposit_amount:
        signals.append(
            ScreeningSignal(
                signal="LARGE_DEPOSIT",
                severity=Severity.HIGH,
                description=(
                    f"Unusually large deposit of {amount:,.2f} exceeds threshold of "
                    f"{limits.large_deposit_amount:,.2f}"
                ),
            )
        )

    if txn_type == TransactionType.WITHDRAWAL:
        if amount >= thresholds.large_withdrawal_amount:
            signals.append(
                ScreeningSignal(
                    signal="LARGE_WITHDRAWAL",
                    severity=Severity.HIGH,
                    description=(
                        f"Large withdrawal of {amount:,.2f} exceeds threshold of "
                        f"{thresholds.large_withdrawal_amount:,.2f}"
                    ),
                )
            )
        # balance is post-withdrawal; compare against what was there before
        before = balance_after + amount
        if before > 0:
            ratio = amount / before
            if ratio >= limits.near_total_withdrawal_ratio:
                signals.append(
                    ScreeningSignal(
                        signal="NEAR_TOTAL_WITHDRAWAL",
                        severity=Severity.CRITICAL,
                        description=(
                            f"Withdrawal of {round(ratio * 100)}% of total balance: "
                            "near-total account drainage"
                        ),
                    )
                )

    if txn_type == TransactionType.LOAN_DISBURSEMENT and amount >= limits.large_loan_amount:
        signals.append(
            ScreeningSignal(
                signal="LARGE_LOAN",
                severity=Severity.HIGH,
                description=f"High-value loan disbursement of {amount:,.2f}",
            )
        )

    return signals


async def screen_transaction(
    session: AsyncSession,
    transaction_id: str,
    actor_id: str = "system",
    config: FraudEngineConfig | None = None,
    audit: AuditTrail | None = None,
    now: datetime | None = None,
) -> ScreeningResult:
    cfg = config or default_config
    now = now or utcnow()

    txn = await session.get(Transaction, transaction_id)
    if txn is None:
        raise NotFoundError("Transaction", transaction_id)
    member = await session.get(Member, txn.member_id)
    if member is None:
        raise NotFoundError("Member", txn.member_id)

    thresholds = await current_thresholds(session, cfg)
    signals = amount_signals(txn.type, txn.amount, member.balance, thresholds, cfg)

    rapid_since = now - timedelta(minutes=cfg.screening.rapid_window_minutes)
    recent_count = (
        await session.execute(
            select(func.count())
            .select_from(Transaction)
            .where(Transaction.member_id == txn.member_id, Transaction.created_at >= rapid_since)
        )
    ).scalar_one()
    if recent_count >= cfg.screening.rapid_count:
        signals.append(
            ScreeningSignal(
                signal="RAPID_TRANSACTIONS",
                severity=Severity.MEDIUM,
                description=(
                    f"{recent_count} transactions in the last "
                    f"{cfg.screening.rapid_window_minutes} minutes: possible structuring "
                    "or automated activity"
                ),
            )
        )

    today = start_of_day(now)
    total_today = (
        await session.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0.0)).where(
                Transaction.member_id == txn.member_id, Transaction.created_at >= today
            )
        )
    ).scalar_one()
    if total_today >= thresholds.daily_withdrawal_limit:
        signals.append(
            ScreeningSignal(
                signal="DAILY_LIMIT_EXCEEDED",
                severity=Severity.HIGH,
                description=(
                    f"Daily transaction volume of {total_today:,.2f} exceeds limit of "
                    f"{thresholds.daily_withdrawal_limit:,.2f}"
                ),
            )
        )

    if txn.type == TransactionType.WITHDRAWAL:
        withdrawals_today = (
            await session.execute(
                select(func.count())
                .select_from(Transaction)
                .where(
                    Transaction.member_id == txn.member_id,
                    Transaction.type == TransactionType.WITHDRAWAL.value,
                    Transaction.status != TransactionStatus.FAILED.value,
                    Transaction.created_at >= today,
                )
            )
        ).scalar_one()
        if withdrawals_today > thresholds.max_withdrawals_per_day:
            signals.append(
                ScreeningSignal(
                    signal="MAX_DAILY_WITHDRAWALS_EXCEEDED",
                    severity=Severity.MEDIUM,
                    description=(
                        f"{withdrawals_today} withdrawals today (limit: "
                        f"{thresholds.max_withdrawals_per_day})"
                    ),
                )
            )

    requires_approval = (
        txn.type == TransactionType.WITHDRAWAL and txn.amount > thresholds.require_approval_above
    )

    if signals:
        try:
            flagged = await session.execute(
                update(Transaction)
                .where(
                    Transaction.id == transaction_id,
                    Transaction.status != TransactionStatus.FLAGGED.value,
                )
                .values(status=TransactionStatus.FLAGGED.value)
                .execution_options(synchronize_session=False)
            )
            if flagged.rowcount == 1:
                for signal in signals:
                    session.add(
                        build_alert(
                            alert_type=signal.signal,
                            severity=signal.severity.value,
                            description=signal.description,
                            member_id=txn.member_id,
                            transaction_id=transaction_id,
                        )
                    )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

        if flagged.rowcount == 1:
            logger.warning(
                "transaction_flagged",
                transaction_id=transaction_id,
                member_id=txn.member_id,
                signals=[s.signal for s in signals],
            )
            await (audit or AuditTrail()).record(
                session,
                actor_id,
                "FLAG_TRANSACTION",
                "Transaction",
                transaction_id,
                ", ".join(s.signal for s in signals),
            )

    return ScreeningResult(
        transaction_id=transaction_id,
        flagged=bool(signals),
        requires_approval=requires_approval,
        signals=signals,
    )
