from sqlmodel import SQLModel

from leave_engine.models.adjustment import LeaveBalanceAdjustment
from leave_engine.models.application import LeaveApplication
from leave_engine.models.audit import AuditLog
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.base import TimestampMixin, UUIDBase
from leave_engine.models.enums import (
    AdjustmentType,
    AuditAction,
    AuditEntityType,
    LeaveApplicationStatus,
)
from leave_engine.models.leave_type import LeaveType
from leave_engine.models.withdrawal import LeaveWithdrawalLog

__all__ = [
    "AdjustmentType",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "LeaveApplication",
    "LeaveApplicationStatus",
    "LeaveBalance",
    "LeaveBalanceAdjustment",
    "LeaveType",
    "LeaveWithdrawalLog",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
]
