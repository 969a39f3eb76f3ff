# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """A single leave balance row."""

    id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_name: str | None = None
    year: int
    allocated_days: float
    used_days: float
    remaining_days: float  # may be negative
    monthly_credit_rate: float
    carry_forward_from_previous_year: float
    anniversary_reset_date: date
    last_credited_period: str | None
    is_closed: bool
    updated_at: datetime | None


class BalanceListResponse(BaseModel):
    """Balances for one employee or one leave year."""

    items: list[BalanceResponse]
    total: int


# ---------------------------------------------------------------------------
# Leave summary
# ---------------------------------------------------------------------------


class AccrualRuleResponse(BaseModel):
    monthly_rate: float
    eligible_for_paid_leave: bool
    can_carry_forward: bool


class LeaveSummaryResponse(BaseModel):
    """Tenure, active accrual rule and current balances for an employee."""

    employee_id: uuid.UUID
    date_of_joining: date
    as_of: date
    tenure_months: int
    rule: AccrualRuleResponse
    leave_year: int
    next_anniversary: date
    total_allocated_days: float
    total_used_days: float
    total_remaining_days: float
    balances: list[BalanceResponse]
