# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import UUIDBase, timestamp_field
from leave_engine.models.enums import LeaveApplicationStatus


class LeaveApplication(UUIDBase, table=True):
    """An employee's leave application with its approval workflow state."""

    __tablename__ = "leave_application"
    __table_args__ = (
        sa.Index("ix_application_user_status", "user_id", "status"),
        sa.Index("ix_application_dates", "start_date", "end_date"),
    )

    user_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    start_date: date
    end_date: date
    days_count: float
    reason: str | None = Field(default=None, max_length=1000)
    status: str = Field(
        default=LeaveApplicationStatus.PENDING,
        max_length=20,
        index=True,
        sa_column_kwargs={"server_default": "pending"},
    )
    # Row charged at approval; withdrawal restores exactly this row.
    balance_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_balance.id", ondelete="SET NULL"), nullable=True),
    )
    decided_by: uuid.UUID | None = None
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    decision_note: str | None = Field(default=None, max_length=1000)
    applied_at: datetime = timestamp_field()
