"""Tests for manual balance adjustments."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import func, select

from leave_engine.exceptions import ValidationError
from leave_engine.models.adjustment import LeaveBalanceAdjustment
from leave_engine.models.enums import AdjustmentType
from leave_engine.models.leave_type import LeaveType
from leave_engine.schemas.adjustment import CreateAdjustmentRequest
from leave_engine.schemas.auth import AuthContext
from leave_engine.services.accrual import run_accrual_sweep
from leave_engine.services.adjustment import adjust_balance, list_adjustments
from leave_engine.services.ledger import BalanceDelta, apply_delta, get_balance
from leave_engine.services.notification import LoggingNotificationService, set_notification_service

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.notification import AdjustmentEvent, StatusChangeEvent
    from leave_engine.services.notification import InMemoryNotificationService

TODAY = date(2024, 3, 15)
ADMIN = AuthContext(user_id=uuid.uuid4(), role="admin")


def _payload(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    adjustment_type: AdjustmentType = AdjustmentType.ADD,
    amount: float = 5,
    reason: str = "bonus",
) -> CreateAdjustmentRequest:
    return CreateAdjustmentRequest(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        adjustment_type=adjustment_type,
        amount=amount,
        reason=reason,
    )


class _BrokenNotifications:
    async def publish_status_change(self, event: StatusChangeEvent) -> None:
        msg = "broker down"
        raise ConnectionError(msg)

    async def publish_adjustment(self, event: AdjustmentEvent) -> None:
        msg = "broker down"
        raise ConnectionError(msg)


class TestAdjustBalance:
    async def test_add_records_previous_and_new(
        self,
        db_session: AsyncSession,
        make_employee: Any,
        annual_leave: LeaveType,
        notifications: InMemoryNotificationService,
    ) -> None:
        employee = make_employee(date(2022, 1, 10))
        balance = await get_balance(db_session, employee.id, annual_leave.id, today=TODAY)
        await apply_delta(db_session, balance.id, BalanceDelta(alloc_delta=10))
        await db_session.commit()

        result = await adjust_balance(db_session, ADMIN, _payload(employee.id, annual_leave.id), today=TODAY)

        assert result.previous_allocated == 10
        assert result.new_allocated == 15
        assert result.balance_id == balance.id
        assert result.adjusted_by == ADMIN.user_id

        await db_session.refresh(balance)
        assert balance.allocated_days == 15
        count = await db_session.execute(select(func.count()).select_from(LeaveBalanceAdjustment))
        assert count.scalar_one() == 1

        assert len(notifications.adjustments) == 1
        event = notifications.adjustments[0]
        assert event.balance_id == balance.id
        assert event.delta == 5
        assert event.reason == "bonus"

    async def test_creates_missing_row(
        self, db_session: AsyncSession, make_employee: Any, annual_leave: LeaveType
    ) -> None:
        employee = make_employee(date(2022, 1, 10))
        result = await adjust_balance(db_session, ADMIN, _payload(employee.id, annual_leave.id, amount=2), today=TODAY)
        assert result.previous_allocated == 0
        assert result.new_allocated == 2

    async def test_subtract_may_go_negative(
        self,
        db_session: AsyncSession,
        make_employee: Any,
        annual_leave: LeaveType,
        notifications: InMemoryNotificationService,
    ) -> None:
        employee = make_employee(date(2022, 1, 10))
        result = await adjust_balance(
            db_session,
            ADMIN,
            _payload(employee.id, annual_leave.id, AdjustmentType.SUBTRACT, amount=3, reason="correction"),
            today=TODAY,
        )
        assert result.new_allocated == -3
        assert notifications.adjustments[0].delta == -3

    async def test_non_positive_amount_rejected(
        self, db_session: AsyncSession, make_employee: Any, annual_leave: LeaveType
    ) -> None:
        employee = make_employee(date(2022, 1, 10))
        payload = CreateAdjustmentRequest.model_construct(
            employee_id=employee.id,
            leave_type_id=annual_leave.id,
            adjustment_type=AdjustmentType.ADD,
            amount=0,
            reason="bonus",
            year=None,
        )
        with pytest.raises(ValidationError) as exc_info:
            await adjust_balance(db_session, ADMIN, payload, today=TODAY)
        assert exc_info.value.field == "amount"

    async def test_blank_reason_rejected(
        self, db_session: AsyncSession, make_employee: Any, annual_leave: LeaveType
    ) -> None:
        employee = make_employee(date(2022, 1, 10))
        with pytest.raises(ValidationError) as exc_info:
            await adjust_balance(db_session, ADMIN, _payload(employee.id, annual_leave.id, reason="   "), today=TODAY)
        assert exc_info.value.field == "reason"

        count = await db_session.execute(select(func.count()).select_from(LeaveBalanceAdjustment))
        assert count.scalar_one() == 0

    async def test_amount_rounding_to_zero_rejected(
        self, db_session: AsyncSession, make_employee: Any, annual_leave: LeaveType
    ) -> None:
        employee = make_employee(date(2022, 1, 10))
        with pytest.raises(ValidationError) as exc_info:
            await adjust_balance(db_session, ADMIN, _payload(employee.id, annual_leave.id, amount=0.004), today=TODAY)
        assert exc_info.value.field == "amount"

        count = await db_session.execute(select(func.count()).select_from(LeaveBalanceAdjustment))
        assert count.scalar_one() == 0

    async def test_closed_leave_year_rejected(
        self, db_session: AsyncSession, make_employee: Any, annual_leave: LeaveType
    ) -> None:
        employee = make_employee(date(2022, 1, 10))
        last_year = await get_balance(db_session, employee.id, annual_leave.id, today=date(2023, 3, 1))
        await apply_delta(db_session, last_year.id, BalanceDelta(alloc_delta=4))
        await db_session.commit()
        last_year_id = last_year.id

        await run_accrual_sweep(db_session, TODAY)

        payload = CreateAdjustmentRequest(
            employee_id=employee.id,
            leave_type_id=annual_leave.id,
            adjustment_type=AdjustmentType.ADD,
            amount=2,
            reason="late correction",
            year=2023,
        )
        with pytest.raises(ValidationError) as exc_info:
            await adjust_balance(db_session, ADMIN, payload, today=TODAY)
        assert exc_info.value.field == "year"

        closed = await get_balance(db_session, employee.id, annual_leave.id, 2023, today=TODAY)
        assert closed.id == last_year_id
        assert closed.allocated_days == 4
        count = await db_session.execute(select(func.count()).select_from(LeaveBalanceAdjustment))
        assert count.scalar_one() == 0

    async def test_notification_failure_keeps_adjustment(
        self, db_session: AsyncSession, make_employee: Any, annual_leave: LeaveType
    ) -> None:
        employee = make_employee(date(2022, 1, 10))
        set_notification_service(_BrokenNotifications())
        try:
            result = await adjust_balance(db_session, ADMIN, _payload(employee.id, annual_leave.id), today=TODAY)
        finally:
            set_notification_service(LoggingNotificationService())

        assert result.new_allocated == 5
        balance = await get_balance(db_session, employee.id, annual_leave.id, today=TODAY)
        assert balance.allocated_days == 5


class TestListAdjustments:
    async def test_filters_by_employee(
        self, db_session: AsyncSession, make_employee: Any, annual_leave: LeaveType
    ) -> None:
        first = make_employee(date(2022, 1, 10))
        second = make_employee(date(2021, 1, 10))
        await adjust_balance(db_session, ADMIN, _payload(first.id, annual_leave.id), today=TODAY)
        await adjust_balance(db_session, ADMIN, _payload(first.id, annual_leave.id, amount=1), today=TODAY)
        await adjust_balance(db_session, ADMIN, _payload(second.id, annual_leave.id), today=TODAY)

        everything = await list_adjustments(db_session)
        assert everything.total == 3

        mine = await list_adjustments(db_session, first.id)
        assert mine.total == 2
        assert {a.user_id for a in mine.items} == {first.id}
