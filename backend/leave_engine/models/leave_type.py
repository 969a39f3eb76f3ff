from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase


class LeaveType(UUIDBase, TimestampMixin, table=True):
    """Reference data: a kind of leave (Annual, Sick, ...)."""

    __tablename__ = "leave_type"
    __table_args__ = (sa.UniqueConstraint("name", name="uq_leave_type_name"),)

    name: str = Field(max_length=100)
    description: str | None = Field(default=None, max_length=500)
