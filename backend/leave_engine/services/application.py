# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlmodel import col

from leave_engine.exceptions import AppError, InvalidTransitionError, NotFoundError, ValidationError
from leave_engine.models.application import LeaveApplication
from leave_engine.models.enums import AuditAction, AuditEntityType, LeaveApplicationStatus
from leave_engine.models.withdrawal import LeaveWithdrawalLog
from leave_engine.schemas.application import (
    ApplicationListResponse,
    ApplicationResponse,
    SubmissionResponse,
    WithdrawalListResponse,
    WithdrawalLogResponse,
)
from leave_engine.services.audit import model_to_audit_dict, write_audit_log
from leave_engine.services.employee import require_employee
from leave_engine.services.leave_type import get_leave_type_or_404
from leave_engine.services.ledger import BalanceDelta, apply_delta, get_balance, round_days
from leave_engine.services.notification import notify_status_change
from leave_engine.services.rules import rules_for_employee, salary_deduction_days
from leave_engine.services.tenure import leave_year_for

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.application import DecisionPayload, SubmitApplicationPayload, WithdrawPayload
    from leave_engine.schemas.auth import AuthContext

logger = logging.getLogger(__name__)

_Status = LeaveApplicationStatus

ALLOWED_TRANSITIONS: dict[LeaveApplicationStatus, frozenset[LeaveApplicationStatus]] = {
    _Status.PENDING: frozenset({_Status.APPROVED, _Status.REJECTED, _Status.CANCELLED, _Status.WITHDRAWN}),
    _Status.APPROVED: frozenset({_Status.WITHDRAWN}),
    _Status.REJECTED: frozenset(),
    _Status.CANCELLED: frozenset(),
    _Status.WITHDRAWN: frozenset(),
}

ON_LEAVE_WINDOW_DAYS = 7


def can_transition(current: LeaveApplicationStatus, target: LeaveApplicationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class BalanceCheck:
    """Informational comparison of a request against the current balance."""

    remaining_days: float
    excess_days: float
    salary_deduction_days: float
    eligible_for_paid_leave: bool


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_application_response(application: LeaveApplication) -> ApplicationResponse:
    """Map an application model to its response schema."""
    return ApplicationResponse(
        id=application.id,
        user_id=application.user_id,
        leave_type_id=application.leave_type_id,
        start_date=application.start_date,
        end_date=application.end_date,
        days_count=application.days_count,
        reason=application.reason,
        status=LeaveApplicationStatus(application.status),
        balance_id=application.balance_id,
        decided_by=application.decided_by,
        decided_at=application.decided_at,
        decision_note=application.decision_note,
        applied_at=application.applied_at,
    )


def _build_withdrawal_response(entry: LeaveWithdrawalLog) -> WithdrawalLogResponse:
    return WithdrawalLogResponse(
        id=entry.id,
        application_id=entry.application_id,
        previous_status=LeaveApplicationStatus(entry.previous_status),
        withdrawal_reason=entry.withdrawal_reason,
        withdrawn_by=entry.withdrawn_by,
        withdrawn_at=entry.withdrawn_at,
    )


async def _get_application_or_404(session: AsyncSession, application_id: uuid.UUID) -> LeaveApplication:
    result = await session.execute(select(LeaveApplication).where(col(LeaveApplication.id) == application_id))
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFoundError("Leave application not found")
    return application


def _require_owner_or_privileged(auth: AuthContext, application: LeaveApplication, action: str) -> None:
    if auth.user_id != application.user_id and not auth.is_privileged:
        raise AppError(f"Not authorized to {action} this application", status_code=403)


def _check_transition(application: LeaveApplication, target: LeaveApplicationStatus) -> LeaveApplicationStatus:
    current = LeaveApplicationStatus(application.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Cannot move a {current.value} application to {target.value}")
    return current


async def _transition(
    session: AsyncSession,
    application: LeaveApplication,
    current: LeaveApplicationStatus,
    target: LeaveApplicationStatus,
    **values: Any,
) -> None:
    """Compare-and-swap the status column; the loser of a race gets a 409."""
    result = await session.execute(
        update(LeaveApplication)
        .where(
            col(LeaveApplication.id) == application.id,
            col(LeaveApplication.status) == current.value,
        )
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:  # type: ignore[attr-defined]
        raise InvalidTransitionError(f"Application is no longer {current.value}")
    await session.refresh(application)


def _charged_leave_year(date_of_joining: date, start_date: date, today: date) -> int:
    """Leave year whose row an approval charges.

    Past leave years are closed history, so leave that started in one is
    charged to the current year.
    """
    return max(leave_year_for(date_of_joining, start_date), leave_year_for(date_of_joining, today))


async def check_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    days_count: float,
    today: date,
) -> BalanceCheck:
    """Compare a request against the current leave year's balance. Never blocks."""
    employee = await require_employee(employee_id)
    balance = await get_balance(session, employee_id, leave_type_id, today=today)
    rule = rules_for_employee(employee.date_of_joining, today)
    remaining = round_days(balance.remaining_days)
    return BalanceCheck(
        remaining_days=remaining,
        excess_days=round_days(max(0.0, days_count - max(remaining, 0.0))),
        salary_deduction_days=round_days(
            salary_deduction_days(days_count, remaining, rule.eligible_for_paid_leave)
        ),
        eligible_for_paid_leave=rule.eligible_for_paid_leave,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def submit_application(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitApplicationPayload,
    *,
    today: date | None = None,
) -> SubmissionResponse:
    """Create a pending application.

    Insufficient balance never blocks submission: the excess and the days
    payroll should treat as unpaid are returned alongside the application.
    """
    if today is None:
        today = date.today()
    days_count = round_days(payload.days_count)
    if days_count <= 0:
        raise ValidationError("days_count must be positive", field="days_count")
    if payload.end_date < payload.start_date:
        raise ValidationError("end_date must be on or after start_date", field="end_date")
    if auth.user_id != payload.user_id and not auth.is_privileged:
        raise AppError("Not authorized to apply on behalf of another employee", status_code=403)

    await get_leave_type_or_404(session, payload.leave_type_id)
    check = await check_balance(session, payload.user_id, payload.leave_type_id, days_count, today)

    application = LeaveApplication(
        user_id=payload.user_id,
        leave_type_id=payload.leave_type_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days_count=days_count,
        reason=payload.reason,
        status=LeaveApplicationStatus.PENDING.value,
    )
    session.add(application)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.APPLICATION,
        entity_id=application.id,
        action=AuditAction.SUBMIT,
        after_json=model_to_audit_dict(application),
    )

    await session.commit()
    await session.refresh(application)

    if check.excess_days > 0 or check.salary_deduction_days > 0:
        logger.info(
            "Application %s exceeds paid balance: excess=%.2f deduction=%.2f",
            application.id,
            check.excess_days,
            check.salary_deduction_days,
        )
    return SubmissionResponse(
        application=_build_application_response(application),
        remaining_days=check.remaining_days,
        excess_days=check.excess_days,
        salary_deduction_days=check.salary_deduction_days,
        eligible_for_paid_leave=check.eligible_for_paid_leave,
    )


async def approve_application(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
    payload: DecisionPayload | None = None,
    *,
    today: date | None = None,
) -> ApplicationResponse:
    """Approve a pending application and charge its days to the leave year it falls in.

    Leave starting in a future leave year is charged to that year's row,
    which cannot be closed before the leave starts. The charged row is
    stored on the application so that a later withdrawal restores exactly
    that row.
    """
    if today is None:
        today = date.today()

    application = await _get_application_or_404(session, application_id)
    current = _check_transition(application, _Status.APPROVED)

    employee = await require_employee(application.user_id)
    balance = await get_balance(
        session,
        application.user_id,
        application.leave_type_id,
        _charged_leave_year(employee.date_of_joining, application.start_date, today),
        today=today,
    )
    before_dict = model_to_audit_dict(application)

    await _transition(
        session,
        application,
        current,
        _Status.APPROVED,
        balance_id=balance.id,
        decided_by=auth.user_id,
        decided_at=datetime.now(UTC),
        decision_note=payload.note if payload else None,
    )
    await apply_delta(session, balance.id, BalanceDelta(used_delta=application.days_count))

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.APPLICATION,
        entity_id=application.id,
        action=AuditAction.APPROVE,
        before_json=before_dict,
        after_json=model_to_audit_dict(application),
    )

    await session.commit()
    logger.info(
        "Approved application %s: %.2f days charged to balance %s",
        application.id,
        application.days_count,
        balance.id,
    )
    await notify_status_change(application.id, _Status.APPROVED)
    return _build_application_response(application)


async def reject_application(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
    payload: DecisionPayload | None = None,
) -> ApplicationResponse:
    """Reject a pending application. No balance change."""
    application = await _get_application_or_404(session, application_id)
    current = _check_transition(application, _Status.REJECTED)
    before_dict = model_to_audit_dict(application)

    await _transition(
        session,
        application,
        current,
        _Status.REJECTED,
        decided_by=auth.user_id,
        decided_at=datetime.now(UTC),
        decision_note=payload.note if payload else None,
    )

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.APPLICATION,
        entity_id=application.id,
        action=AuditAction.REJECT,
        before_json=before_dict,
        after_json=model_to_audit_dict(application),
    )

    await session.commit()
    await notify_status_change(application.id, _Status.REJECTED)
    return _build_application_response(application)


async def cancel_application(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
) -> ApplicationResponse:
    """Cancel a pending application.

    The applicant or an HR/admin user can cancel. No balance change.
    """
    application = await _get_application_or_404(session, application_id)
    _require_owner_or_privileged(auth, application, "cancel")
    current = _check_transition(application, _Status.CANCELLED)
    before_dict = model_to_audit_dict(application)

    await _transition(session, application, current, _Status.CANCELLED)

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.APPLICATION,
        entity_id=application.id,
        action=AuditAction.CANCEL,
        before_json=before_dict,
        after_json=model_to_audit_dict(application),
    )

    await session.commit()
    await notify_status_change(application.id, _Status.CANCELLED)
    return _build_application_response(application)


async def withdraw_application(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
    payload: WithdrawPayload | None = None,
    *,
    today: date | None = None,
) -> ApplicationResponse:
    """Withdraw a pending or approved application.

    Flow:
    1. Authorize (applicant or HR/admin) and validate the transition
    2. Approved leave that has already started cannot be withdrawn
    3. Swap the status
    4. For approved leave, give back exactly ``days_count`` on the row
       charged at approval
    5. Record the withdrawal, audit log and commit
    """
    if today is None:
        today = date.today()

    application = await _get_application_or_404(session, application_id)
    _require_owner_or_privileged(auth, application, "withdraw")
    previous = _check_transition(application, _Status.WITHDRAWN)

    if previous == _Status.APPROVED and application.start_date < today:
        raise ValidationError("Leave that has already started cannot be withdrawn", field="start_date")

    before_dict = model_to_audit_dict(application)
    await _transition(session, application, previous, _Status.WITHDRAWN)

    if previous == _Status.APPROVED:
        balance_id = application.balance_id
        if balance_id is None:
            balance = await get_balance(session, application.user_id, application.leave_type_id, today=today)
            balance_id = balance.id
        result = await apply_delta(session, balance_id, BalanceDelta(used_delta=-application.days_count))
        if result.clamped_days:
            logger.warning(
                "Withdrawal of application %s clamped %.2f days on balance %s",
                application.id,
                result.clamped_days,
                balance_id,
            )

    entry = LeaveWithdrawalLog(
        application_id=application.id,
        previous_status=previous.value,
        withdrawal_reason=payload.reason if payload else None,
        withdrawn_by=auth.user_id,
    )
    session.add(entry)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.APPLICATION,
        entity_id=application.id,
        action=AuditAction.WITHDRAW,
        before_json=before_dict,
        after_json=model_to_audit_dict(application),
    )

    await session.commit()
    logger.info("Withdrew application %s (was %s)", application.id, previous.value)
    await notify_status_change(application.id, _Status.WITHDRAWN)
    return _build_application_response(application)


async def get_application(session: AsyncSession, application_id: uuid.UUID) -> ApplicationResponse:
    """Get a single application by ID."""
    application = await _get_application_or_404(session, application_id)
    return _build_application_response(application)


async def list_applications(
    session: AsyncSession,
    employee_id: uuid.UUID | None = None,
    status_filter: LeaveApplicationStatus | None = None,
    offset: int = 0,
    limit: int = 50,
) -> ApplicationListResponse:
    """List applications with optional filters, newest first."""
    base_filters = []
    if employee_id is not None:
        base_filters.append(col(LeaveApplication.user_id) == employee_id)
    if status_filter is not None:
        base_filters.append(col(LeaveApplication.status) == status_filter.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveApplication).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveApplication)
        .where(*base_filters)
        .order_by(col(LeaveApplication.applied_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return ApplicationListResponse(
        items=[_build_application_response(a) for a in result.scalars().all()],
        total=total,
    )


async def list_employees_on_leave(
    session: AsyncSession,
    start: date | None = None,
    end: date | None = None,
) -> ApplicationListResponse:
    """Approved applications overlapping ``[start, end]`` (default: the coming week)."""
    if start is None:
        start = date.today()
    if end is None:
        end = start + timedelta(days=ON_LEAVE_WINDOW_DAYS)
    if end < start:
        raise ValidationError("end must be on or after start", field="end")

    result = await session.execute(
        select(LeaveApplication)
        .where(
            col(LeaveApplication.status) == _Status.APPROVED.value,
            col(LeaveApplication.start_date) <= end,
            col(LeaveApplication.end_date) >= start,
        )
        .order_by(col(LeaveApplication.start_date), col(LeaveApplication.user_id))
    )
    items = [_build_application_response(a) for a in result.scalars().all()]
    return ApplicationListResponse(items=items, total=len(items))


async def list_withdrawals(
    session: AsyncSession,
    application_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> WithdrawalListResponse:
    """List withdrawal log entries, newest first."""
    base_filters = []
    if application_id is not None:
        base_filters.append(col(LeaveWithdrawalLog.application_id) == application_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveWithdrawalLog).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveWithdrawalLog)
        .where(*base_filters)
        .order_by(col(LeaveWithdrawalLog.withdrawn_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return WithdrawalListResponse(
        items=[_build_withdrawal_response(e) for e in result.scalars().all()],
        total=total,
    )
