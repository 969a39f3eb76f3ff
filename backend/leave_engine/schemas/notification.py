# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from leave_engine.models.enums import LeaveApplicationStatus


class StatusChangeEvent(BaseModel):
    """Published after a leave application changes status."""

    application_id: uuid.UUID
    new_status: LeaveApplicationStatus


class AdjustmentEvent(BaseModel):
    """Published after a manual adjustment. ``delta`` is signed."""

    balance_id: uuid.UUID
    delta: float
    reason: str
