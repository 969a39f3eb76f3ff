# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from leave_engine.api.deps import AdminDep, AuthDep, require_self_or_admin
from leave_engine.db import SessionDep
from leave_engine.schemas.accrual import AccrualRunResponse
from leave_engine.schemas.balance import BalanceListResponse, LeaveSummaryResponse
from leave_engine.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from leave_engine.services import ledger as ledger_service
from leave_engine.services.accrual import run_accrual_sweep
from leave_engine.services.employee import EmployeeInfo, get_employee_service, require_employee
from leave_engine.services.summary import get_leave_summary

employees_router = APIRouter(prefix="/employees", tags=["employees"])


def _build_employee_response(employee: EmployeeInfo) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        full_name=employee.full_name,
        email=employee.email,
        date_of_joining=employee.date_of_joining,
    )


@employees_router.put("/{employee_id}", response_model=EmployeeResponse)
async def upsert_employee(
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    auth: AdminDep,
) -> EmployeeResponse:
    """Create or update an employee in the stub directory (admin only)."""
    svc = get_employee_service()
    employee = EmployeeInfo(
        id=employee_id,
        full_name=payload.full_name,
        email=payload.email,
        date_of_joining=payload.date_of_joining,
    )
    svc.seed(employee)  # ty: ignore[unresolved-attribute]
    return _build_employee_response(employee)


@employees_router.get("", response_model=EmployeeListResponse)
async def list_employees(auth: AdminDep) -> EmployeeListResponse:
    employees = await get_employee_service().list_employees()
    items = [_build_employee_response(e) for e in employees]
    return EmployeeListResponse(items=items, total=len(items))


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(employee_id: uuid.UUID, auth: AuthDep) -> EmployeeResponse:
    require_self_or_admin(auth, employee_id)
    return _build_employee_response(await require_employee(employee_id))


@employees_router.get("/{employee_id}/balances", response_model=BalanceListResponse)
async def get_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=1900, le=9999),
) -> BalanceListResponse:
    """Get the employee's balance for every leave type in a leave year."""
    require_self_or_admin(auth, employee_id)
    return await ledger_service.get_employee_balances(session, employee_id, year)


@employees_router.get("/{employee_id}/leave-summary", response_model=LeaveSummaryResponse)
async def leave_summary(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveSummaryResponse:
    require_self_or_admin(auth, employee_id)
    return await get_leave_summary(session, employee_id)


@employees_router.post("/{employee_id}/balances/recalculate", response_model=AccrualRunResponse)
async def recalculate_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> AccrualRunResponse:
    """Run pending resets and this month's credit for one employee (admin only)."""
    result = await run_accrual_sweep(session, employee_id=employee_id)
    return AccrualRunResponse(
        target_date=result.target_date,
        processed=result.processed,
        credited=result.credited,
        resets=result.resets,
        skipped=result.skipped,
        errors=result.errors,
    )
