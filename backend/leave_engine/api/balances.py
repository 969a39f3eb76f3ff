# ruff: noqa: B008
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Query

from leave_engine.api.deps import AdminDep
from leave_engine.db import SessionDep
from leave_engine.schemas.balance import BalanceListResponse
from leave_engine.services import ledger as ledger_service

balances_router = APIRouter(prefix="/balances", tags=["balances"])


@balances_router.get("", response_model=BalanceListResponse)
async def list_year_balances(
    session: SessionDep,
    auth: AdminDep,
    year: int | None = Query(default=None, ge=1900, le=9999),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> BalanceListResponse:
    """List every stored balance row for a leave year (HR only)."""
    if year is None:
        year = date.today().year
    return await ledger_service.list_year_balances(session, year, offset, limit)
