# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from leave_engine.api.deps import AdminDep, AuthDep, require_self_or_admin
from leave_engine.db import SessionDep
from leave_engine.models.enums import LeaveApplicationStatus
from leave_engine.schemas.application import (
    ApplicationListResponse,
    ApplicationResponse,
    DecisionPayload,
    SubmissionResponse,
    SubmitApplicationPayload,
    WithdrawPayload,
)
from leave_engine.services import application as application_service

applications_router = APIRouter(prefix="/applications", tags=["applications"])


@applications_router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_application(
    payload: SubmitApplicationPayload,
    session: SessionDep,
    auth: AuthDep,
) -> SubmissionResponse:
    """Submit a leave application.

    Never rejected for insufficient balance; the response carries the
    excess and salary-deduction counts instead.
    """
    return await application_service.submit_application(session, auth, payload)


@applications_router.get("", response_model=ApplicationListResponse)
async def list_applications(
    session: SessionDep,
    auth: AuthDep,
    status_filter: LeaveApplicationStatus | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ApplicationListResponse:
    """List leave applications. Employees only see their own."""
    if not auth.is_privileged:
        employee_id = employee_id or auth.user_id
        require_self_or_admin(auth, employee_id)
    return await application_service.list_applications(session, employee_id, status_filter, offset, limit)


@applications_router.get("/on-leave", response_model=ApplicationListResponse)
async def list_employees_on_leave(
    session: SessionDep,
    auth: AdminDep,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
) -> ApplicationListResponse:
    """Approved leave overlapping a date range (defaults to the coming week)."""
    return await application_service.list_employees_on_leave(session, start, end)


@applications_router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApplicationResponse:
    application = await application_service.get_application(session, application_id)
    require_self_or_admin(auth, application.user_id)
    return application


@applications_router.post("/{application_id}/approve", response_model=ApplicationResponse)
async def approve_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    payload: DecisionPayload | None = None,
) -> ApplicationResponse:
    """Approve a pending application (admin only)."""
    return await application_service.approve_application(session, auth, application_id, payload)


@applications_router.post("/{application_id}/reject", response_model=ApplicationResponse)
async def reject_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    payload: DecisionPayload | None = None,
) -> ApplicationResponse:
    """Reject a pending application (admin only)."""
    return await application_service.reject_application(session, auth, application_id, payload)


@applications_router.post("/{application_id}/cancel", response_model=ApplicationResponse)
async def cancel_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApplicationResponse:
    return await application_service.cancel_application(session, auth, application_id)


@applications_router.post("/{application_id}/withdraw", response_model=ApplicationResponse)
async def withdraw_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: WithdrawPayload | None = None,
) -> ApplicationResponse:
    """Withdraw a pending application, or an approved one that has not started."""
    return await application_service.withdraw_application(session, auth, application_id, payload)
