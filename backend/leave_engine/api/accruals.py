# ruff: noqa: B008
"""Manual trigger for the accrual scheduler."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Query

from leave_engine.api.deps import AdminDep
from leave_engine.db import SessionDep
from leave_engine.schemas.accrual import AccrualRunResponse
from leave_engine.services.accrual import run_accrual_sweep

accruals_router = APIRouter(prefix="/accruals", tags=["accruals"])


@accruals_router.post("/run", response_model=AccrualRunResponse)
async def run_accruals(
    session: SessionDep,
    auth: AdminDep,
    target_date: date | None = Query(default=None),
) -> AccrualRunResponse:
    """Run anniversary resets and monthly credits for a date (admin only).

    Useful for backfills. Safe to repeat: a month is never credited twice.
    """
    result = await run_accrual_sweep(session, target_date)
    return AccrualRunResponse(
        target_date=result.target_date,
        processed=result.processed,
        credited=result.credited,
        resets=result.resets,
        skipped=result.skipped,
        errors=result.errors,
    )
