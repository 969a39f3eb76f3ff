"""Tenure-bracketed accrual rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from leave_engine.services.tenure import tenure_months

if TYPE_CHECKING:
    from datetime import date


@dataclass(frozen=True)
class AccrualRule:
    """Entitlement terms for one tenure bracket."""

    monthly_rate: float
    eligible_for_paid_leave: bool
    can_carry_forward: bool


PROBATION_RULE = AccrualRule(monthly_rate=0.0, eligible_for_paid_leave=False, can_carry_forward=False)

# (minimum tenure months, rule), highest bracket first.
_BRACKETS: tuple[tuple[int, AccrualRule], ...] = (
    (24, AccrualRule(monthly_rate=1.5, eligible_for_paid_leave=True, can_carry_forward=True)),
    (12, AccrualRule(monthly_rate=1.5, eligible_for_paid_leave=True, can_carry_forward=False)),
    (9, AccrualRule(monthly_rate=1.0, eligible_for_paid_leave=True, can_carry_forward=False)),
)


def rules_for_tenure(months: int) -> AccrualRule:
    """Return the accrual rule for a tenure in whole months."""
    for min_months, rule in _BRACKETS:
        if months >= min_months:
            return rule
    return PROBATION_RULE


def rules_for_employee(date_of_joining: date, on: date | None = None) -> AccrualRule:
    """Return the rule active for an employee on a given date (default today)."""
    return rules_for_tenure(tenure_months(date_of_joining, on))


def salary_deduction_days(days_count: float, remaining_days: float, eligible_for_paid_leave: bool) -> float:
    """Days of a request that payroll should treat as unpaid.

    Informational only: applications are never blocked on it.
    """
    if not eligible_for_paid_leave:
        return days_count
    return max(0.0, days_count - max(remaining_days, 0.0))
