from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_engine.exceptions import AppError, NotFoundError
from leave_engine.models.enums import AuditAction, AuditEntityType
from leave_engine.models.leave_type import LeaveType
from leave_engine.schemas.leave_type import LeaveTypeListResponse, LeaveTypeResponse
from leave_engine.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.leave_type import CreateLeaveTypeRequest


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        name=leave_type.name,
        description=leave_type.description,
        created_at=leave_type.created_at,
    )


async def get_leave_type_or_404(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
    """Fetch a leave type by ID. Raises 404 if not found."""
    result = await session.execute(select(LeaveType).where(col(LeaveType.id) == leave_type_id))
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise NotFoundError("Leave type not found")
    return leave_type


async def get_all_leave_types(session: AsyncSession) -> list[LeaveType]:
    result = await session.execute(select(LeaveType).order_by(col(LeaveType.name)))
    return list(result.scalars().all())


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Create a leave type."""
    leave_type = LeaveType(name=payload.name.strip(), description=payload.description)
    session.add(leave_type)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AppError("Leave type already exists", status_code=409) from None

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    return _build_leave_type_response(leave_type)


async def list_leave_types(session: AsyncSession) -> LeaveTypeListResponse:
    """List all leave types ordered by name."""
    leave_types = await get_all_leave_types(session)
    return LeaveTypeListResponse(
        items=[_build_leave_type_response(t) for t in leave_types],
        total=len(leave_types),
    )
