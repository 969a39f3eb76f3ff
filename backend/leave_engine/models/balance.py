# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase, timestamp_field


class LeaveBalance(UUIDBase, TimestampMixin, table=True):
    """Per employee, leave type and leave year entitlement row.

    Mutated only through ``ledger.apply_delta``; ``version`` is the
    compare-and-swap counter bumped by every write.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "leave_type_id", "year", name="uq_balance_user_type_year"),
        sa.Index("ix_balance_user_type", "user_id", "leave_type_id"),
    )

    user_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    year: int = Field(index=True)
    allocated_days: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    used_days: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    monthly_credit_rate: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    carry_forward_from_previous_year: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    anniversary_reset_date: date
    last_credited_period: str | None = Field(default=None, max_length=7)
    closed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    updated_at: datetime = timestamp_field()
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})

    @property
    def remaining_days(self) -> float:
        # May be negative.
        return self.allocated_days - self.used_days
