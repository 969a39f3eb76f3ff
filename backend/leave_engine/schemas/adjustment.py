# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from leave_engine.models.enums import AdjustmentType


class CreateAdjustmentRequest(BaseModel):
    """Request body for a manual balance adjustment."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    adjustment_type: AdjustmentType
    amount: float = Field(gt=0, description="Days to add or subtract, always positive")
    reason: str = Field(min_length=1, max_length=1000)
    year: int | None = Field(default=None, description="Leave year; defaults to the current one")


class AdjustmentResponse(BaseModel):
    """A single adjustment record."""

    id: uuid.UUID
    balance_id: uuid.UUID
    user_id: uuid.UUID
    adjustment_type: AdjustmentType
    amount: float
    reason: str
    previous_allocated: float
    new_allocated: float
    adjusted_by: uuid.UUID
    created_at: datetime


class AdjustmentListResponse(BaseModel):
    items: list[AdjustmentResponse]
    total: int
