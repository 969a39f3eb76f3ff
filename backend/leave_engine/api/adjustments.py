# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_engine.api.deps import AdminDep, AuthDep, require_self_or_admin
from leave_engine.db import SessionDep
from leave_engine.schemas.adjustment import AdjustmentListResponse, AdjustmentResponse, CreateAdjustmentRequest
from leave_engine.services import adjustment as adjustment_service

adjustments_router = APIRouter(prefix="/adjustments", tags=["adjustments"])


@adjustments_router.post("", response_model=AdjustmentResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    payload: CreateAdjustmentRequest,
    session: SessionDep,
    auth: AdminDep,
) -> AdjustmentResponse:
    """Manually add or subtract allocated days (admin only)."""
    return await adjustment_service.adjust_balance(session, auth, payload)


@adjustments_router.get("", response_model=AdjustmentListResponse)
async def list_adjustments(
    session: SessionDep,
    auth: AuthDep,
    employee_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> AdjustmentListResponse:
    """List adjustments. Employees only see their own."""
    if not auth.is_privileged:
        employee_id = employee_id or auth.user_id
        require_self_or_admin(auth, employee_id)
    return await adjustment_service.list_adjustments(session, employee_id, offset, limit)
