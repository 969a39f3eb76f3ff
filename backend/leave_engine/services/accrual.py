"""Accrual scheduler: monthly crediting and work-anniversary resets.

The sweep walks the employee directory against every leave type. Each
(employee, leave type) pair is an independent unit committed in its own
transaction, so one failing unit is logged and skipped without aborting
the rest; the next run picks it up again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_engine.models.balance import LeaveBalance
from leave_engine.models.enums import AuditAction, AuditEntityType
from leave_engine.services.audit import SYSTEM_ACTOR, model_to_audit_dict, write_audit_log
from leave_engine.services.employee import get_employee_service, require_employee
from leave_engine.services.leave_type import get_all_leave_types
from leave_engine.services.ledger import BalanceDelta, apply_delta, get_or_create_balance, round_days
from leave_engine.services.rules import rules_for_employee
from leave_engine.services.tenure import leave_year_for, period_key

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class AccrualRunResult:
    """Summary of one scheduler sweep."""

    target_date: date
    processed: int = 0
    credited: int = 0
    resets: int = 0
    skipped: int = 0
    errors: int = 0


@dataclass
class UnitOutcome:
    """What happened to one (employee, leave type) pair."""

    resets: int = 0
    credited: bool = False


# ---------------------------------------------------------------------------
# Anniversary reset
# ---------------------------------------------------------------------------


async def _next_row_due_for_reset(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    target_date: date,
) -> LeaveBalance | None:
    result = await session.execute(
        select(LeaveBalance)
        .where(
            col(LeaveBalance.user_id) == employee_id,
            col(LeaveBalance.leave_type_id) == leave_type_id,
            col(LeaveBalance.closed_at).is_(None),
            col(LeaveBalance.anniversary_reset_date) <= target_date,
        )
        .order_by(col(LeaveBalance.year))
        .limit(1)
    )
    return result.scalar_one_or_none()


def _later_period(first: str | None, second: str | None) -> str | None:
    if first is None:
        return second
    if second is None:
        return first
    return max(first, second)


async def process_anniversary_reset(
    session: AsyncSession,
    employee: EmployeeInfo,
    balance: LeaveBalance,
    today: date,
) -> bool:
    """Close ``balance`` at its anniversary and open the next leave year's row.

    Positive remaining days move into the new row when the rule active on
    the anniversary allows carry-forward; otherwise they are forfeited.
    A negative remainder is never carried. Returns False when the row had
    already been closed by a concurrent run.
    """
    old_year = balance.year
    new_balance = await get_or_create_balance(session, employee, balance.leave_type_id, old_year + 1, today)

    closing = await apply_delta(
        session,
        balance.id,
        BalanceDelta(close=True),
        precondition=lambda b: b.closed_at is None,
    )
    if not closing.applied:
        return False

    old = closing.balance
    rule = rules_for_employee(employee.date_of_joining, old.anniversary_reset_date)
    remaining = round_days(old.remaining_days)
    carried = remaining if rule.can_carry_forward and remaining > 0 else 0.0
    forfeited = max(remaining, 0.0) - carried

    inherited_period = _later_period(old.last_credited_period, new_balance.last_credited_period)
    opening = await apply_delta(
        session,
        new_balance.id,
        BalanceDelta(
            alloc_delta=carried,
            carry_forward_from_previous_year=carried,
            last_credited_period=inherited_period,
        ),
    )

    await write_audit_log(
        session,
        actor_id=SYSTEM_ACTOR,
        entity_type=AuditEntityType.BALANCE,
        entity_id=old.id,
        action=AuditAction.RESET,
        before_json=model_to_audit_dict(old),
        after_json={
            **model_to_audit_dict(opening.balance),
            "carried_days": carried,
            "forfeited_days": forfeited,
        },
    )

    logger.info(
        "Anniversary reset user=%s type=%s year=%d->%d carried=%.2f forfeited=%.2f",
        employee.id,
        balance.leave_type_id,
        old_year,
        old_year + 1,
        carried,
        forfeited,
    )
    return True


# ---------------------------------------------------------------------------
# Monthly credit
# ---------------------------------------------------------------------------


async def credit_monthly_accrual(
    session: AsyncSession,
    employee: EmployeeInfo,
    balance_id: uuid.UUID,
    target_date: date,
) -> bool:
    """Credit this month's rate into an open row, at most once per period.

    The rate is re-derived from tenure on ``target_date`` so that a bracket
    change mid-year takes effect on the next credit. A zero rate still
    marks the period as processed.
    """
    rule = rules_for_employee(employee.date_of_joining, target_date)
    period = period_key(target_date)

    result = await apply_delta(
        session,
        balance_id,
        BalanceDelta(
            alloc_delta=rule.monthly_rate,
            monthly_credit_rate=rule.monthly_rate,
            last_credited_period=period,
        ),
        precondition=lambda b: (
            b.closed_at is None and (b.last_credited_period is None or b.last_credited_period < period)
        ),
    )
    if result.applied:
        logger.debug(
            "Credited %.2f days to balance %s for %s (tenure rule %s)",
            rule.monthly_rate,
            balance_id,
            period,
            rule,
        )
    return result.applied


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def process_employee(
    session: AsyncSession,
    employee: EmployeeInfo,
    leave_type_id: uuid.UUID,
    target_date: date,
) -> UnitOutcome:
    """Bring one employee's balance for one leave type up to ``target_date``.

    Missed anniversaries are replayed in order before the current leave
    year's row is credited. Does not commit.
    """
    outcome = UnitOutcome()

    while True:
        due = await _next_row_due_for_reset(session, employee.id, leave_type_id, target_date)
        if due is None:
            break
        if await process_anniversary_reset(session, employee, due, target_date):
            outcome.resets += 1

    current_year = leave_year_for(employee.date_of_joining, target_date)
    balance = await get_or_create_balance(session, employee, leave_type_id, current_year, target_date)
    outcome.credited = await credit_monthly_accrual(session, employee, balance.id, target_date)
    return outcome


async def run_accrual_sweep(
    session: AsyncSession,
    target_date: date | None = None,
    *,
    employee_id: uuid.UUID | None = None,
) -> AccrualRunResult:
    """Run anniversary resets and monthly crediting for every employee.

    Idempotent: re-running within the same month credits nothing new and
    resets nothing twice.

    Args:
        session: Database session; committed per unit.
        target_date: Date to process (defaults to today).
        employee_id: If provided, only process this employee.
    """
    if target_date is None:
        target_date = date.today()

    result = AccrualRunResult(target_date=target_date)

    if employee_id is not None:
        employees = [await require_employee(employee_id)]
    else:
        employees = await get_employee_service().list_employees()
    leave_type_ids = [t.id for t in await get_all_leave_types(session)]

    for employee in employees:
        for leave_type_id in leave_type_ids:
            result.processed += 1
            try:
                outcome = await process_employee(session, employee, leave_type_id, target_date)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception(
                    "Error processing accrual for employee=%s leave_type=%s",
                    employee.id,
                    leave_type_id,
                )
                result.errors += 1
                continue

            result.resets += outcome.resets
            if outcome.credited:
                result.credited += 1
            else:
                result.skipped += 1

    logger.info(
        "Accrual sweep for %s: processed=%d credited=%d resets=%d skipped=%d errors=%d",
        target_date,
        result.processed,
        result.credited,
        result.resets,
        result.skipped,
        result.errors,
    )
    return result
