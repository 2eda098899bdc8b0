"""Create fraud engine tables and the back-office tables it reads.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("member_number", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="ACTIVE"),
        sa.Column("balance", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f("ix_members_member_number"), "members", ["member_number"], unique=True)

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tx_ref", sa.String(), nullable=False),
        sa.Column("member_id", sa.String(), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="COMPLETED"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f("ix_transactions_tx_ref"), "transactions", ["tx_ref"], unique=True)
    op.create_index(op.f("ix_transactions_member_id"), "transactions", ["member_id"])
    op.create_index(op.f("ix_transactions_type"), "transactions", ["type"])
    op.create_index(op.f("ix_transactions_created_at"), "transactions", ["created_at"])

    op.create_table(
        "fraud_rules",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rule_type", sa.String(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("max_count", sa.Integer(), nullable=True),
        sa.Column("window_hours", sa.Integer(), nullable=True),
        sa.Column("min_amount", sa.Float(), nullable=True),
        sa.Column("max_amount", sa.Float(), nullable=True),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("risk_points", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "rule_violations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "rule_id",
            sa.String(),
            sa.ForeignKey("fraud_rules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("member_id", sa.String(), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("transaction_id", sa.String(), sa.ForeignKey("transactions.id"), nullable=True),
        sa.Column("dedup_key", sa.String(), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("risk_points", sa.Integer(), nullable=False),
        sa.Column("reviewed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reviewed_by", sa.String(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("rule_id", "dedup_key", name="uq_violation_dedup"),
    )
    op.create_index(op.f("ix_rule_violations_rule_id"), "rule_violations", ["rule_id"])
    op.create_index(op.f("ix_rule_violations_member_id"), "rule_violations", ["member_id"])
    op.create_index(op.f("ix_rule_violations_created_at"), "rule_violations", ["created_at"])

    op.create_table(
        "withdrawal_thresholds",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("large_withdrawal_amount", sa.Float(), nullable=False),
        sa.Column("daily_withdrawal_limit", sa.Float(), nullable=False),
        sa.Column("max_withdrawals_per_day", sa.Integer(), nullable=False),
        sa.Column("require_approval_above", sa.Float(), nullable=False),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        op.f("ix_withdrawal_thresholds_updated_at"), "withdrawal_thresholds", ["updated_at"]
    )

    op.create_table(
        "withdrawal_requests",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("request_ref", sa.String(), nullable=False),
        sa.Column("member_id", sa.String(), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("supporting_doc", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="PENDING"),
        sa.Column("reviewed_by", sa.String(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        op.f("ix_withdrawal_requests_request_ref"),
        "withdrawal_requests",
        ["request_ref"],
        unique=True,
    )
    op.create_index(op.f("ix_withdrawal_requests_member_id"), "withdrawal_requests", ["member_id"])
    op.create_index(op.f("ix_withdrawal_requests_status"), "withdrawal_requests", ["status"])

    op.create_table(
        "member_risk_scores",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("member_id", sa.String(), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("total_points", sa.Integer(), nullable=False),
        sa.Column("risk_level", sa.String(), nullable=False),
        sa.Column("frequency_points", sa.Integer(), nullable=False),
        sa.Column("amount_points", sa.Integer(), nullable=False),
        sa.Column("behavior_points", sa.Integer(), nullable=False),
        sa.Column("no_deposit_points", sa.Integer(), nullable=False),
        sa.Column("avg_transaction_amount", sa.Float(), nullable=False),
        sa.Column("transaction_frequency", sa.Float(), nullable=False),
        sa.Column("last_calculated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        op.f("ix_member_risk_scores_member_id"), "member_risk_scores", ["member_id"], unique=True
    )
    op.create_index(op.f("ix_member_risk_scores_risk_level"), "member_risk_scores", ["risk_level"])

    op.create_table(
        "fraud_decisions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("member_id", sa.String(), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("transaction_id", sa.String(), sa.ForeignKey("transactions.id"), nullable=True),
        sa.Column("risk_score", sa.Integer(), nullable=False),
        sa.Column("risk_level", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approved", sa.Boolean(), nullable=True),
        sa.Column("approved_by", sa.String(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f("ix_fraud_decisions_member_id"), "fraud_decisions", ["member_id"])
    op.create_index(op.f("ix_fraud_decisions_risk_level"), "fraud_decisions", ["risk_level"])
    op.create_index(op.f("ix_fraud_decisions_action"), "fraud_decisions", ["action"])

    op.create_table(
        "fraud_alerts",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("alert_type", sa.String(), nullable=False),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("member_id", sa.String(), sa.ForeignKey("members.id"), nullable=False),
        sa.Column("transaction_id", sa.String(), sa.ForeignKey("transactions.id"), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="OPEN"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f("ix_fraud_alerts_alert_type"), "fraud_alerts", ["alert_type"])
    op.create_index(op.f("ix_fraud_alerts_member_id"), "fraud_alerts", ["member_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("entity", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(op.f("ix_audit_logs_action"), "audit_logs", ["action"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("fraud_alerts")
    op.drop_table("fraud_decisions")
    op.drop_table("member_risk_scores")
    op.drop_table("withdrawal_requests")
    op.drop_table("withdrawal_thresholds")
    op.drop_table("rule_violations")
    op.drop_table("fraud_rules")
    op.drop_table("transactions")
    op.drop_table("members")
