from __future__ import annotations

import enum


class LeaveApplicationStatus(enum.StrEnum):
    """State machine for leave applications."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    WITHDRAWN = "withdrawn"


class AdjustmentType(enum.StrEnum):
    """Direction of a manual balance adjustment."""

    ADD = "add"
    SUBTRACT = "subtract"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    APPLICATION = "APPLICATION"
    ADJUSTMENT = "ADJUSTMENT"
    BALANCE = "BALANCE"
    LEAVE_TYPE = "LEAVE_TYPE"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    WITHDRAW = "WITHDRAW"
    RESET = "RESET"
