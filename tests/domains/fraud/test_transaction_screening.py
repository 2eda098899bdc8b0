"""Post-write transaction screening."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from src.db.models import FraudAlertDB, Transaction
from src.domains.fraud.screening import screen_transaction
from src.shared.errors import NotFoundError
from tests.factories import NOW, add_member, add_transaction


async def _alert_types(session, transaction_id) -> list[str]:
    result = await session.execute(
        select(FraudAlertDB.alert_type).where(FraudAlertDB.transaction_id == transaction_id)
    )
    return sorted(result.scalars().all())


async def _status(session, transaction_id) -> str:
    result = await session.execute(
        select(Transaction.status).where(Transaction.id == transaction_id)
    )
    return result.scalar_one()


class TestScreenTransaction:
    @pytest.mark.asyncio
    async def test_clean_transaction(self, db_session):
        member = await add_member(db_session, balance=10_000)
        txn = await add_transaction(db_session, member, "DEPOSIT", 1_000, NOW - timedelta(hours=3))

        result = await screen_transaction(db_session, txn.id, now=NOW)

        assert result.flagged is False
        assert result.signals == []
        assert await _status(db_session, txn.id) == "COMPLETED"
        assert await _alert_types(db_session, txn.id) == []

    @pytest.mark.asyncio
    async def test_large_deposit(self, db_session):
        member = await add_member(db_session, balance=600_000)
        txn = await add_transaction(
            db_session, member, "DEPOSIT", 600_000, NOW - timedelta(hours=3)
        )

        result = await screen_transaction(db_session, txn.id, now=NOW)

        assert result.flagged is True
        assert [s.signal for s in result.signals] == ["LARGE_DEPOSIT"]
        assert await _status(db_session, txn.id) == "FLAGGED"
        assert await _alert_types(db_session, txn.id) == ["LARGE_DEPOSIT"]

    @pytest.mark.asyncio
    async def test_rescreening_does_not_duplicate_alerts(self, db_session):
        member = await add_member(db_session, balance=600_000)
        txn = await add_transaction(
            db_session, member, "DEPOSIT", 600_000, NOW - timedelta(hours=3)
        )
        txn_id = txn.id

        await screen_transaction(db_session, txn_id, now=NOW)
        again = await screen_transaction(db_session, txn_id, now=NOW)

        assert again.flagged is True
        assert await _alert_types(db_session, txn_id) == ["LARGE_DEPOSIT"]

    @pytest.mark.asyncio
    async def test_near_total_withdrawal(self, db_session):
        # balance is already net of the 95,000 withdrawal
        member = await add_member(db_session, balance=5_000)
        txn = await add_transaction(
            db_session, member, "WITHDRAWAL", 95_000, NOW - timedelta(hours=3)
        )

        result = await screen_transaction(db_session, txn.id, now=NOW)

        assert [s.signal for s in result.signals] == ["NEAR_TOTAL_WITHDRAWAL"]
        assert result.signals[0].severity == "CRITICAL"
        assert result.requires_approval is False

    @pytest.mark.asyncio
    async def test_large_withdrawal_requires_approval(self, db_session):
        member = await add_member(db_session, balance=1_000_000)
        txn = await add_transaction(
            db_session, member, "WITHDRAWAL", 150_000, NOW - timedelta(hours=3)
        )

        result = await screen_transaction(db_session, txn.id, now=NOW)

        assert [s.signal for s in result.signals] == ["LARGE_WITHDRAWAL"]
        assert result.requires_approval is True

    @pytest.mark.asyncio
    async def test_large_loan(self, db_session):
        member = await add_member(db_session, balance=1_200_000)
        txn = await add_transaction(
            db_session, member, "LOAN_DISBURSEMENT", 1_200_000, NOW - timedelta(hours=3)
        )

        result = await screen_transaction(db_session, txn.id, now=NOW)

        assert "LARGE_LOAN" in [s.signal for s in result.signals]

    @pytest.mark.asyncio
    async def test_rapid_transactions(self, db_session):
        member = await add_member(db_session, balance=50_000)
        txn = None
        for minutes in (50, 40, 30, 20, 10):
            txn = await add_transaction(
                db_session, member, "DEPOSIT", 100, NOW - timedelta(minutes=minutes)
            )

        result = await screen_transaction(db_session, txn.id, now=NOW)

        assert [s.signal for s in result.signals] == ["RAPID_TRANSACTIONS"]

    @pytest.mark.asyncio
    async def test_too_many_withdrawals_today(self, db_session):
        member = await add_member(db_session, balance=500_000)
        txn = None
        for hours in (7, 6, 5, 4, 3, 2):
            txn = await add_transaction(
                db_session, member, "WITHDRAWAL", 100, NOW - timedelta(hours=hours)
            )

        result = await screen_transaction(db_session, txn.id, now=NOW)

        assert [s.signal for s in result.signals] == ["MAX_DAILY_WITHDRAWALS_EXCEEDED"]

    @pytest.mark.asyncio
    async def test_daily_volume(self, db_session):
        member = await add_member(db_session, balance=5_000_000)
        await add_transaction(db_session, member, "DEPOSIT", 450_000, NOW - timedelta(hours=8))
        txn = await add_transaction(
            db_session, member, "DEPOSIT", 450_000, NOW - timedelta(hours=3)
        )
        await add_transaction(db_session, member, "DEPOSIT", 200_000, NOW - timedelta(hours=2))
        # yesterday's activity does not count
        await add_transaction(db_session, member, "DEPOSIT", 450_000, NOW - timedelta(days=1))

        result = await screen_transaction(db_session, txn.id, now=NOW)

        assert [s.signal for s in result.signals] == ["DAILY_LIMIT_EXCEEDED"]

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            await screen_transaction(db_session, "missing", now=NOW)
