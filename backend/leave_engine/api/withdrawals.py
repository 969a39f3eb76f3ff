# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from leave_engine.api.deps import AdminDep
from leave_engine.db import SessionDep
from leave_engine.schemas.application import WithdrawalListResponse
from leave_engine.services import application as application_service

withdrawals_router = APIRouter(prefix="/withdrawals", tags=["applications"])


@withdrawals_router.get("", response_model=WithdrawalListResponse)
async def list_withdrawals(
    session: SessionDep,
    auth: AdminDep,
    application_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> WithdrawalListResponse:
    """Withdrawal log, newest first (admin only)."""
    return await application_service.list_withdrawals(session, application_id, offset, limit)
