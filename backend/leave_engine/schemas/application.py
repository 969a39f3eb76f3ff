# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_engine.models.enums import LeaveApplicationStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitApplicationPayload(BaseModel):
    """Request body for submitting a leave application.

    ``days_count`` comes from the caller's business-day counter.
    """

    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    days_count: float = Field(gt=0)
    reason: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must be on or after start_date"
            raise ValueError(msg)
        return self


class DecisionPayload(BaseModel):
    """Request body for approve/reject actions."""

    note: str | None = Field(default=None, max_length=1000)


class WithdrawPayload(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApplicationResponse(BaseModel):
    """Response schema for a single leave application."""

    id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    days_count: float
    reason: str | None
    status: LeaveApplicationStatus
    balance_id: uuid.UUID | None
    decided_by: uuid.UUID | None
    decided_at: datetime | None
    decision_note: str | None
    applied_at: datetime


class SubmissionResponse(BaseModel):
    """A freshly submitted application plus the informational balance check."""

    application: ApplicationResponse
    remaining_days: float
    excess_days: float
    salary_deduction_days: float
    eligible_for_paid_leave: bool


class ApplicationListResponse(BaseModel):
    items: list[ApplicationResponse]
    total: int


class WithdrawalLogResponse(BaseModel):
    id: uuid.UUID
    application_id: uuid.UUID
    previous_status: LeaveApplicationStatus
    withdrawal_reason: str | None
    withdrawn_by: uuid.UUID
    withdrawn_at: datetime


class WithdrawalListResponse(BaseModel):
    items: list[WithdrawalLogResponse]
    total: int
