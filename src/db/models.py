"""SQLAlchemy ORM models for the SACCO fraud engine.

``members``, ``transactions``, ``audit_logs`` and ``fraud_alerts`` belong to the
surrounding back-office; they are declared here because the engine reads from
and writes to them. Every other table is owned by the engine.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.shared.clock import utcnow

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class Member(Base):
    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    member_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    full_name: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default="ACTIVE")
    balance: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    tx_ref: Mapped[str] = mapped_column(String, unique=True, index=True)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), index=True)
    type: Mapped[str] = mapped_column(String, index=True)
    amount: Mapped[float] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String, default="COMPLETED")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )


class FraudRuleDB(Base):
    __tablename__ = "fraud_rules"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rule_type: Mapped[str] = mapped_column(String, default="CUSTOM")
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    max_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    window_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    severity: Mapped[str] = mapped_column(String, default="MEDIUM")
    risk_points: Mapped[int] = mapped_column(Integer, default=10)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class RuleViolationDB(Base):
    __tablename__ = "rule_violations"
    __table_args__ = (UniqueConstraint("rule_id", "dedup_key", name="uq_violation_dedup"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    rule_id: Mapped[str] = mapped_column(
        ForeignKey("fraud_rules.id", ondelete="CASCADE"), index=True
    )
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), index=True)
    transaction_id: Mapped[str | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True
    )
    dedup_key: Mapped[str] = mapped_column(String)
    details: Mapped[str] = mapped_column(Text)
    risk_points: Mapped[int] = mapped_column(Integer)
    reviewed: Mapped[bool] = mapped_column(Boolean, default=False)
    reviewed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )


class WithdrawalThresholdDB(Base):
    __tablename__ = "withdrawal_thresholds"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    large_withdrawal_amount: Mapped[float] = mapped_column(Float)
    daily_withdrawal_limit: Mapped[float] = mapped_column(Float)
    max_withdrawals_per_day: Mapped[int] = mapped_column(Integer, default=5)
    require_approval_above: Mapped[float] = mapped_column(Float)
    updated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )


class WithdrawalRequestDB(Base):
    __tablename__ = "withdrawal_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    request_ref: Mapped[str] = mapped_column(String, unique=True, index=True)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), index=True)
    amount: Mapped[float] = mapped_column(Float)
    reason: Mapped[str] = mapped_column(Text)
    supporting_doc: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, default="PENDING", index=True)
    reviewed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class MemberRiskScoreDB(Base):
    __tablename__ = "member_risk_scores"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), unique=True, index=True)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    risk_level: Mapped[str] = mapped_column(String, default="LOW", index=True)
    frequency_points: Mapped[int] = mapped_column(Integer, default=0)
    amount_points: Mapped[int] = mapped_column(Integer, default=0)
    behavior_points: Mapped[int] = mapped_column(Integer, default=0)
    no_deposit_points: Mapped[int] = mapped_column(Integer, default=0)
    avg_transaction_amount: Mapped[float] = mapped_column(Float, default=0.0)
    transaction_frequency: Mapped[float] = mapped_column(Float, default=0.0)
    last_calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class FraudDecisionDB(Base):
    __tablename__ = "fraud_decisions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), index=True)
    transaction_id: Mapped[str | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True
    )
    risk_score: Mapped[int] = mapped_column(Integer)
    risk_level: Mapped[str] = mapped_column(String, index=True)
    action: Mapped[str] = mapped_column(String, index=True)
    reason: Mapped[str] = mapped_column(Text)
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False)
    approved: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class FraudAlertDB(Base):
    __tablename__ = "fraud_alerts"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    alert_type: Mapped[str] = mapped_column(String, index=True)
    severity: Mapped[str] = mapped_column(String)
    description: Mapped[str] = mapped_column(Text)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), index=True)
    transaction_id: Mapped[str | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True
    )
    details: Mapped[dict] = mapped_column(JSONDocument, default=dict)
    status: Mapped[str] = mapped_column(String, default="OPEN")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class AuditLogDB(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    action: Mapped[str] = mapped_column(String, index=True)
    entity: Mapped[str] = mapped_column(String)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
