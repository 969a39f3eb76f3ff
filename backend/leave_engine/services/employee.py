# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from leave_engine.exceptions import NotFoundError


class EmployeeInfo(BaseModel):
    """Employee metadata from the Employee Directory."""

    id: uuid.UUID
    full_name: str
    email: str | None = None
    date_of_joining: date


@runtime_checkable
class EmployeeService(Protocol):
    """Read-only interface to the Employee Directory."""

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        ...

    async def list_employees(self) -> list[EmployeeInfo]:
        """List all active employees."""
        ...


class InMemoryEmployeeService:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee for testing."""
        self._employees[employee.id] = employee

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch employee metadata. Returns None if not found."""
        return self._employees.get(employee_id)

    async def list_employees(self) -> list[EmployeeInfo]:
        """List all employees ordered by join date."""
        return sorted(self._employees.values(), key=lambda e: (e.date_of_joining, str(e.id)))


_employee_service: EmployeeService = InMemoryEmployeeService()


def get_employee_service() -> EmployeeService:
    """FastAPI dependency for the Employee Directory."""
    return _employee_service


def set_employee_service(service: EmployeeService) -> None:
    """Override the service (for testing or production wiring)."""
    global _employee_service
    _employee_service = service


async def require_employee(employee_id: uuid.UUID) -> EmployeeInfo:
    """Fetch an employee from the directory or raise 404."""
    employee = await get_employee_service().get_employee(employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee
