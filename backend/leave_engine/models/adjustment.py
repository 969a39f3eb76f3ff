# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase


class LeaveBalanceAdjustment(UUIDBase, TimestampMixin, table=True):
    """Immutable record of a manual change to a balance's allocated days."""

    __tablename__ = "leave_balance_adjustment"
    __table_args__ = (sa.Index("ix_adjustment_user_created", "user_id", "created_at"),)

    balance_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_balance.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    user_id: uuid.UUID
    adjustment_type: str = Field(max_length=20)
    amount: float
    reason: str = Field(max_length=1000)
    previous_allocated: float
    new_allocated: float
    adjusted_by: uuid.UUID
