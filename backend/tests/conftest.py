from __future__ import annotations

import os
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leave_engine.db import get_session
from leave_engine.main import app
from leave_engine.models import LeaveType, SQLModel
from leave_engine.services.employee import EmployeeInfo, InMemoryEmployeeService, set_employee_service
from leave_engine.services.notification import (
    InMemoryNotificationService,
    LoggingNotificationService,
    set_notification_service,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let pysqlite/aiosqlite run real BEGIN/SAVEPOINT statements."""

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Per-test engine with a fresh schema.

    Defaults to in-memory SQLite; set TEST_DATABASE_URL to run against Postgres.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        _engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
        _enable_sqlite_savepoints(_engine)
    else:
        _engine = create_async_engine(TEST_DATABASE_URL)

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def directory() -> Iterator[InMemoryEmployeeService]:
    """A fresh in-memory employee directory for the test."""
    svc = InMemoryEmployeeService()
    set_employee_service(svc)
    yield svc
    set_employee_service(InMemoryEmployeeService())


@pytest.fixture
def notifications() -> Iterator[InMemoryNotificationService]:
    svc = InMemoryNotificationService()
    set_notification_service(svc)
    yield svc
    set_notification_service(LoggingNotificationService())


@pytest.fixture
def make_employee(directory: InMemoryEmployeeService) -> Any:
    """Factory seeding an employee who joined on the given date."""

    def _make(date_of_joining: date, name: str = "Test Employee") -> EmployeeInfo:
        employee = EmployeeInfo(
            id=uuid.uuid4(),
            full_name=name,
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            date_of_joining=date_of_joining,
        )
        directory.seed(employee)
        return employee

    return _make


@pytest.fixture
async def annual_leave(db_session: AsyncSession) -> LeaveType:
    leave_type = LeaveType(name="Annual", description="Paid annual leave")
    db_session.add(leave_type)
    await db_session.commit()
    return leave_type
