# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leave_engine.exceptions import ValidationError
from leave_engine.models.adjustment import LeaveBalanceAdjustment
from leave_engine.models.enums import AdjustmentType, AuditAction, AuditEntityType
from leave_engine.schemas.adjustment import AdjustmentListResponse, AdjustmentResponse
from leave_engine.services.audit import model_to_audit_dict, write_audit_log
from leave_engine.services.ledger import BalanceDelta, apply_delta, get_balance, round_days
from leave_engine.services.notification import notify_adjustment

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.adjustment import CreateAdjustmentRequest
    from leave_engine.schemas.auth import AuthContext

logger = logging.getLogger(__name__)


def _build_adjustment_response(adjustment: LeaveBalanceAdjustment) -> AdjustmentResponse:
    return AdjustmentResponse(
        id=adjustment.id,
        balance_id=adjustment.balance_id,
        user_id=adjustment.user_id,
        adjustment_type=AdjustmentType(adjustment.adjustment_type),
        amount=adjustment.amount,
        reason=adjustment.reason,
        previous_allocated=adjustment.previous_allocated,
        new_allocated=adjustment.new_allocated,
        adjusted_by=adjustment.adjusted_by,
        created_at=adjustment.created_at,
    )


async def adjust_balance(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateAdjustmentRequest,
    *,
    today: date | None = None,
) -> AdjustmentResponse:
    """Manually add or subtract allocated days on an employee's balance.

    Flow:
    1. Validate amount and reason
    2. Get (or lazily create) the target leave-year row; closed years are
       rejected
    3. Apply the signed delta through the ledger
    4. Record the adjustment with the values seen by that write
    5. Audit log and commit
    6. Publish the adjustment event

    Subtracting may leave ``allocated_days`` negative.
    """
    amount = round_days(payload.amount)
    if amount <= 0:
        raise ValidationError("Adjustment amount must be positive", field="amount")
    reason = payload.reason.strip()
    if not reason:
        raise ValidationError("A reason is required for manual adjustments", field="reason")

    signed = amount if payload.adjustment_type == AdjustmentType.ADD else -amount

    balance = await get_balance(session, payload.employee_id, payload.leave_type_id, payload.year, today=today)
    if balance.closed_at is not None:
        raise ValidationError(f"Leave year {balance.year} is closed", field="year")
    result = await apply_delta(session, balance.id, BalanceDelta(alloc_delta=signed))

    adjustment = LeaveBalanceAdjustment(
        balance_id=balance.id,
        user_id=payload.employee_id,
        adjustment_type=payload.adjustment_type.value,
        amount=amount,
        reason=reason,
        previous_allocated=result.previous_allocated,
        new_allocated=result.new_allocated,
        adjusted_by=auth.user_id,
    )
    session.add(adjustment)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.ADJUSTMENT,
        entity_id=adjustment.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(adjustment),
    )

    await session.commit()
    await session.refresh(adjustment)

    logger.info(
        "Adjusted balance %s by %+.2f (%.2f -> %.2f) by %s",
        balance.id,
        signed,
        result.previous_allocated,
        result.new_allocated,
        auth.user_id,
    )
    await notify_adjustment(balance.id, signed, reason)
    return _build_adjustment_response(adjustment)


async def list_adjustments(
    session: AsyncSession,
    employee_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> AdjustmentListResponse:
    """List adjustments, newest first."""
    base_filters = []
    if employee_id is not None:
        base_filters.append(col(LeaveBalanceAdjustment.user_id) == employee_id)

    count_result = await session.execute(
        select(func.count()).select_from(LeaveBalanceAdjustment).where(*base_filters)
    )
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveBalanceAdjustment)
        .where(*base_filters)
        .order_by(col(LeaveBalanceAdjustment.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return AdjustmentListResponse(
        items=[_build_adjustment_response(a) for a in result.scalars().all()],
        total=total,
    )
