from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def timestamp_field(*, index: bool = False) -> Any:
    """Timezone-aware timestamp column defaulting to now, in Python and in the database."""
    return Field(
        default_factory=utc_now,
        index=index,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class UUIDBase(SQLModel):
    """Base model with a client-generated UUID primary key."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, sa_type=sa.Uuid)


class TimestampMixin(SQLModel):
    """Adds the row's creation time."""

    created_at: datetime = timestamp_field()
