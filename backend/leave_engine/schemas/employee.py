# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


class UpsertEmployeeRequest(BaseModel):
    """Request body for upserting an employee in the stub directory."""

    full_name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    date_of_joining: date


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    id: uuid.UUID
    full_name: str
    email: str | None
    date_of_joining: date


class EmployeeListResponse(BaseModel):
    """List of employees."""

    items: list[EmployeeResponse]
    total: int
