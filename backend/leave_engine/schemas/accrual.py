from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class AccrualRunResponse(BaseModel):
    """Response from the accrual maintenance trigger."""

    target_date: date
    processed: int
    credited: int
    resets: int
    skipped: int
    errors: int
