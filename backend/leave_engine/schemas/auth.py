# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

PRIVILEGED_ROLES = frozenset({"admin", "hr"})


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    user_id: uuid.UUID
    role: str = "employee"

    @property
    def is_privileged(self) -> bool:
        """HR and admins may act on other employees' leave."""
        return self.role in PRIVILEGED_ROLES
