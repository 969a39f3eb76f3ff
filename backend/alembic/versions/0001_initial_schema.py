"""Initial leave ledger schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_TZ_NOW = {"server_default": sa.func.now(), "nullable": False}


def upgrade() -> None:
    op.create_table(
        "leave_type",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), **_TZ_NOW),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.UniqueConstraint("name", name="uq_leave_type_name"),
    )

    op.create_table(
        "leave_balance",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), **_TZ_NOW),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column(
            "leave_type_id",
            sa.Uuid(),
            sa.ForeignKey("leave_type.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("allocated_days", sa.Float(), server_default="0", nullable=False),
        sa.Column("used_days", sa.Float(), server_default="0", nullable=False),
        sa.Column("monthly_credit_rate", sa.Float(), server_default="0", nullable=False),
        sa.Column("carry_forward_from_previous_year", sa.Float(), server_default="0", nullable=False),
        sa.Column("anniversary_reset_date", sa.Date(), nullable=False),
        sa.Column("last_credited_period", sa.String(length=7), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), **_TZ_NOW),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.UniqueConstraint("user_id", "leave_type_id", "year", name="uq_balance_user_type_year"),
    )
    op.create_index("ix_leave_balance_user_id", "leave_balance", ["user_id"])
    op.create_index("ix_leave_balance_year", "leave_balance", ["year"])
    op.create_index("ix_balance_user_type", "leave_balance", ["user_id", "leave_type_id"])

    op.create_table(
        "leave_balance_adjustment",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), **_TZ_NOW),
        sa.Column(
            "balance_id",
            sa.Uuid(),
            sa.ForeignKey("leave_balance.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("adjustment_type", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=False),
        sa.Column("previous_allocated", sa.Float(), nullable=False),
        sa.Column("new_allocated", sa.Float(), nullable=False),
        sa.Column("adjusted_by", sa.Uuid(), nullable=False),
    )
    op.create_index("ix_leave_balance_adjustment_balance_id", "leave_balance_adjustment", ["balance_id"])
    op.create_index("ix_adjustment_user_created", "leave_balance_adjustment", ["user_id", "created_at"])

    op.create_table(
        "leave_application",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column(
            "leave_type_id",
            sa.Uuid(),
            sa.ForeignKey("leave_type.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days_count", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column(
            "balance_id",
            sa.Uuid(),
            sa.ForeignKey("leave_balance.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("decided_by", sa.Uuid(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_note", sa.String(length=1000), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), **_TZ_NOW),
        sa.CheckConstraint("days_count > 0", name="ck_application_days_positive"),
        sa.CheckConstraint("end_date >= start_date", name="ck_application_date_order"),
    )
    op.create_index("ix_leave_application_user_id", "leave_application", ["user_id"])
    op.create_index("ix_leave_application_status", "leave_application", ["status"])
    op.create_index("ix_application_user_status", "leave_application", ["user_id", "status"])
    op.create_index("ix_application_dates", "leave_application", ["start_date", "end_date"])

    op.create_table(
        "leave_withdrawal_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "application_id",
            sa.Uuid(),
            sa.ForeignKey("leave_application.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("previous_status", sa.String(length=20), nullable=False),
        sa.Column("withdrawal_reason", sa.String(length=1000), nullable=True),
        sa.Column("withdrawn_by", sa.Uuid(), nullable=False),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), **_TZ_NOW),
    )
    op.create_index("ix_leave_withdrawal_log_withdrawn_at", "leave_withdrawal_log", ["withdrawn_at"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), **_TZ_NOW),
    )
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("leave_withdrawal_log")
    op.drop_table("leave_application")
    op.drop_table("leave_balance_adjustment")
    op.drop_table("leave_balance")
    op.drop_table("leave_type")
