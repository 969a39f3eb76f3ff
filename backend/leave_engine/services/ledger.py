"""Balance ledger: per leave-year rows and the single atomic write path.

Every mutation of ``allocated_days`` or ``used_days`` goes through
``apply_delta``, which performs an optimistic compare-and-swap on the
row's ``version`` (plus ``SELECT ... FOR UPDATE`` where the database
supports it) and retries lost updates against the fresh row.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_engine.config import get_settings
from leave_engine.exceptions import ConcurrencyConflictError, NotFoundError
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.leave_type import LeaveType
from leave_engine.schemas.balance import BalanceListResponse, BalanceResponse
from leave_engine.services.employee import require_employee
from leave_engine.services.leave_type import get_all_leave_types, get_leave_type_or_404
from leave_engine.services.rules import rules_for_employee
from leave_engine.services.tenure import leave_year_for, next_anniversary

if TYPE_CHECKING:
    import uuid
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

# Day amounts are kept at hundredth-of-a-day precision so that adding and
# removing the same amount restores the previous value exactly.
_DAY_PRECISION = 2


def round_days(value: float) -> float:
    return round(value, _DAY_PRECISION)


@dataclass
class BalanceDelta:
    """Change to apply to one balance row.

    ``alloc_delta``/``used_delta`` are signed increments; the remaining
    fields, when set, overwrite the column in the same write.
    """

    alloc_delta: float = 0.0
    used_delta: float = 0.0
    monthly_credit_rate: float | None = None
    last_credited_period: str | None = None
    carry_forward_from_previous_year: float | None = None
    close: bool = False


@dataclass
class DeltaResult:
    """Outcome of ``apply_delta`` with the values observed by the write."""

    balance: LeaveBalance
    applied: bool
    previous_allocated: float
    previous_used: float
    clamped_days: float = 0.0

    @property
    def new_allocated(self) -> float:
        return self.balance.allocated_days

    @property
    def new_used(self) -> float:
        return self.balance.used_days


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_balance_response(balance: LeaveBalance, leave_type_name: str | None = None) -> BalanceResponse:
    """Map a balance model to its response schema."""
    return BalanceResponse(
        id=balance.id,
        user_id=balance.user_id,
        leave_type_id=balance.leave_type_id,
        leave_type_name=leave_type_name,
        year=balance.year,
        allocated_days=balance.allocated_days,
        used_days=balance.used_days,
        remaining_days=round_days(balance.remaining_days),
        monthly_credit_rate=balance.monthly_credit_rate,
        carry_forward_from_previous_year=balance.carry_forward_from_previous_year,
        anniversary_reset_date=balance.anniversary_reset_date,
        last_credited_period=balance.last_credited_period,
        is_closed=balance.closed_at is not None,
        updated_at=balance.updated_at,
    )


async def _find_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance | None:
    result = await session.execute(
        select(LeaveBalance).where(
            col(LeaveBalance.user_id) == employee_id,
            col(LeaveBalance.leave_type_id) == leave_type_id,
            col(LeaveBalance.year) == year,
        )
    )
    return result.scalar_one_or_none()


async def _read_balance_for_update(session: AsyncSession, balance_id: uuid.UUID) -> LeaveBalance:
    """Read the current committed state of a row, bypassing the identity map."""
    result = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.id) == balance_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFoundError("Leave balance not found")
    return balance


async def get_or_create_balance(
    session: AsyncSession,
    employee: EmployeeInfo,
    leave_type_id: uuid.UUID,
    year: int,
    today: date,
) -> LeaveBalance:
    """Return the employee's row for a leave year, creating a zeroed one if absent.

    The insert runs in a savepoint so that losing a creation race to a
    concurrent caller only discards this insert.
    """
    existing = await _find_balance(session, employee.id, leave_type_id, year)
    if existing is not None:
        return existing

    rule = rules_for_employee(employee.date_of_joining, today)
    balance = LeaveBalance(
        user_id=employee.id,
        leave_type_id=leave_type_id,
        year=year,
        monthly_credit_rate=rule.monthly_rate,
        anniversary_reset_date=next_anniversary(employee.date_of_joining, year),
    )
    try:
        async with session.begin_nested():
            session.add(balance)
            await session.flush()
    except IntegrityError:
        # Lost the insert race; the winner's row is the one to use.
        existing = await _find_balance(session, employee.id, leave_type_id, year)
        if existing is None:
            raise ConcurrencyConflictError from None
        return existing

    logger.debug("Created balance row user=%s type=%s year=%d", employee.id, leave_type_id, year)
    return balance


async def _try_apply_delta(
    session: AsyncSession,
    balance_id: uuid.UUID,
    delta: BalanceDelta,
    precondition: Callable[[LeaveBalance], bool] | None,
    *,
    final_attempt: bool,
) -> DeltaResult:
    balance = await _read_balance_for_update(session, balance_id)
    previous_allocated = balance.allocated_days
    previous_used = balance.used_days

    if precondition is not None and not precondition(balance):
        return DeltaResult(
            balance=balance,
            applied=False,
            previous_allocated=previous_allocated,
            previous_used=previous_used,
        )

    new_allocated = round_days(previous_allocated + delta.alloc_delta)
    new_used = round_days(previous_used + delta.used_delta)
    clamped = 0.0
    if new_used < 0:
        if not final_attempt:
            # A negative result means we raced a writer we have not seen yet.
            raise ConcurrencyConflictError
        clamped = -new_used
        new_used = 0.0
        logger.warning(
            "used_days underflow on balance %s: clamped %.2f days (used=%.2f delta=%.2f)",
            balance_id,
            clamped,
            previous_used,
            delta.used_delta,
        )

    now = datetime.now(UTC)
    values: dict[str, Any] = {
        "allocated_days": new_allocated,
        "used_days": new_used,
        "version": balance.version + 1,
        "updated_at": now,
    }
    if delta.monthly_credit_rate is not None:
        values["monthly_credit_rate"] = delta.monthly_credit_rate
    if delta.last_credited_period is not None:
        values["last_credited_period"] = delta.last_credited_period
    if delta.carry_forward_from_previous_year is not None:
        values["carry_forward_from_previous_year"] = delta.carry_forward_from_previous_year
    if delta.close:
        values["closed_at"] = now

    result = await session.execute(
        update(LeaveBalance)
        .where(
            col(LeaveBalance.id) == balance_id,
            col(LeaveBalance.version) == balance.version,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:  # type: ignore[attr-defined]
        raise ConcurrencyConflictError

    await session.refresh(balance)
    return DeltaResult(
        balance=balance,
        applied=True,
        previous_allocated=previous_allocated,
        previous_used=previous_used,
        clamped_days=clamped,
    )


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


async def apply_delta(
    session: AsyncSession,
    balance_id: uuid.UUID,
    delta: BalanceDelta,
    *,
    precondition: Callable[[LeaveBalance], bool] | None = None,
) -> DeltaResult:
    """Atomically apply ``delta`` to one balance row.

    Runs inside the caller's transaction and does not commit. A lost
    update is retried against the fresh row with linear backoff up to
    ``conflict_max_attempts`` times before ``ConcurrencyConflictError``
    reaches the caller. When ``precondition`` rejects the fresh row the
    write is skipped and ``DeltaResult.applied`` is False.
    """
    settings = get_settings()
    max_attempts = max(settings.conflict_max_attempts, 1)
    attempt = 1
    while True:
        try:
            return await _try_apply_delta(
                session,
                balance_id,
                delta,
                precondition,
                final_attempt=attempt >= max_attempts,
            )
        except ConcurrencyConflictError:
            if attempt >= max_attempts:
                logger.warning("Balance %s still conflicting after %d attempts", balance_id, attempt)
                raise
            logger.info("Conflict on balance %s (attempt %d/%d), retrying", balance_id, attempt, max_attempts)
            await asyncio.sleep(settings.conflict_backoff_seconds * attempt)
            attempt += 1


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int | None = None,
    *,
    today: date | None = None,
) -> LeaveBalance:
    """Return the employee's balance for a leave type and leave year.

    A missing row for the current or a future leave year is not an error:
    it is created with rule-derived defaults. Past leave years are history
    and are only read. ``year`` defaults to the leave year containing
    ``today``.
    """
    if today is None:
        today = date.today()
    employee = await require_employee(employee_id)
    await get_leave_type_or_404(session, leave_type_id)

    current_year = leave_year_for(employee.date_of_joining, today)
    if year is None:
        year = current_year

    if year < current_year:
        existing = await _find_balance(session, employee.id, leave_type_id, year)
        if existing is None:
            raise NotFoundError(f"No balance recorded for leave year {year}")
        return existing

    return await get_or_create_balance(session, employee, leave_type_id, year, today)


async def get_employee_balances(
    session: AsyncSession,
    employee_id: uuid.UUID,
    year: int | None = None,
    *,
    today: date | None = None,
) -> BalanceListResponse:
    """Get the employee's balance for every leave type.

    Rows missing for the current or a future leave year are created;
    past leave years list only what was recorded.
    """
    if today is None:
        today = date.today()
    employee = await require_employee(employee_id)
    current_year = leave_year_for(employee.date_of_joining, today)
    if year is None:
        year = current_year

    leave_types = [(t.id, t.name) for t in await get_all_leave_types(session)]
    items: list[BalanceResponse] = []
    for leave_type_id, leave_type_name in leave_types:
        if year < current_year:
            balance = await _find_balance(session, employee.id, leave_type_id, year)
            if balance is None:
                continue
        else:
            balance = await get_or_create_balance(session, employee, leave_type_id, year, today)
        items.append(build_balance_response(balance, leave_type_name))

    await session.commit()
    return BalanceListResponse(items=items, total=len(items))


async def list_year_balances(
    session: AsyncSession,
    year: int,
    offset: int = 0,
    limit: int = 50,
) -> BalanceListResponse:
    """List every stored balance row for a leave year (HR overview)."""
    base_filter = [col(LeaveBalance.year) == year]

    count_result = await session.execute(select(func.count()).select_from(LeaveBalance).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveBalance, col(LeaveType.name))
        .join(LeaveType, col(LeaveType.id) == col(LeaveBalance.leave_type_id))
        .where(*base_filter)
        .order_by(col(LeaveBalance.user_id), col(LeaveType.name))
        .offset(offset)
        .limit(limit)
    )
    return BalanceListResponse(
        items=[build_balance_response(balance, name) for balance, name in result.all()],
        total=total,
    )
