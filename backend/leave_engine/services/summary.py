"""Per-employee leave summary: tenure, active rule and current balances."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from leave_engine.schemas.balance import AccrualRuleResponse, LeaveSummaryResponse
from leave_engine.services.employee import require_employee
from leave_engine.services.ledger import get_employee_balances, round_days
from leave_engine.services.rules import rules_for_tenure
from leave_engine.services.tenure import leave_year_for, next_anniversary, tenure_months

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession


async def get_leave_summary(
    session: AsyncSession,
    employee_id: uuid.UUID,
    *,
    today: date | None = None,
) -> LeaveSummaryResponse:
    """Summarize an employee's entitlement as of ``today``."""
    if today is None:
        today = date.today()
    employee = await require_employee(employee_id)

    months = tenure_months(employee.date_of_joining, today)
    rule = rules_for_tenure(months)
    leave_year = leave_year_for(employee.date_of_joining, today)
    balances = await get_employee_balances(session, employee_id, leave_year, today=today)

    return LeaveSummaryResponse(
        employee_id=employee.id,
        date_of_joining=employee.date_of_joining,
        as_of=today,
        tenure_months=months,
        rule=AccrualRuleResponse(
            monthly_rate=rule.monthly_rate,
            eligible_for_paid_leave=rule.eligible_for_paid_leave,
            can_carry_forward=rule.can_carry_forward,
        ),
        leave_year=leave_year,
        next_anniversary=next_anniversary(employee.date_of_joining, leave_year),
        total_allocated_days=round_days(sum(b.allocated_days for b in balances.items)),
        total_used_days=round_days(sum(b.used_days for b in balances.items)),
        total_remaining_days=round_days(sum(b.remaining_days for b in balances.items)),
        balances=balances.items,
    )
