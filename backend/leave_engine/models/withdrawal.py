# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import UUIDBase, timestamp_field


class LeaveWithdrawalLog(UUIDBase, table=True):
    """Append-only record written once per successful withdrawal."""

    __tablename__ = "leave_withdrawal_log"

    application_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid,
            sa.ForeignKey("leave_application.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
    )
    previous_status: str = Field(max_length=20)
    withdrawal_reason: str | None = Field(default=None, max_length=1000)
    withdrawn_by: uuid.UUID
    withdrawn_at: datetime = timestamp_field(index=True)
