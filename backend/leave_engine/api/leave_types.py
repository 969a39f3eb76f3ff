from __future__ import annotations

from fastapi import APIRouter, status

from leave_engine.api.deps import AdminDep, AuthDep
from leave_engine.db import SessionDep
from leave_engine.schemas.leave_type import CreateLeaveTypeRequest, LeaveTypeListResponse, LeaveTypeResponse
from leave_engine.services import leave_type as leave_type_service

leave_types_router = APIRouter(prefix="/leave-types", tags=["leave-types"])


@leave_types_router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(session: SessionDep, auth: AuthDep) -> LeaveTypeListResponse:
    return await leave_type_service.list_leave_types(session)


@leave_types_router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypeRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    """Create a leave type (admin only)."""
    return await leave_type_service.create_leave_type(session, auth, payload)
