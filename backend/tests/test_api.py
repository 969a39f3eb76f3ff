"""HTTP-level tests: routing, auth headers, error envelope and end-to-end flows."""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from httpx import AsyncClient

    from leave_engine.services.employee import InMemoryEmployeeService

ADMIN_ID = uuid.uuid4()
ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "admin"}
EMPLOYEE_ID = uuid.uuid4()
EMPLOYEE_HEADERS = {"X-User-Id": str(EMPLOYEE_ID), "X-Role": "employee"}
# Anniversary about six months out, so near-term leave stays in the current leave year.
JOINED = date.today() - timedelta(days=3 * 365 + 180)


# ---------------------------------------------------------------------------
# Fixtures and helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _directory(directory: InMemoryEmployeeService) -> None:
    """Every API test gets a fresh, empty employee directory."""


async def _create_leave_type(client: AsyncClient, name: str = "Annual") -> str:
    resp = await client.post("/leave-types", json={"name": name}, headers=ADMIN_HEADERS)
    assert resp.status_code == 201
    result: str = resp.json()["id"]
    return result


async def _upsert_employee(
    client: AsyncClient,
    employee_id: uuid.UUID = EMPLOYEE_ID,
    date_of_joining: date = JOINED,
) -> None:
    resp = await client.put(
        f"/employees/{employee_id}",
        json={
            "full_name": "Test Employee",
            "email": "test@example.com",
            "date_of_joining": date_of_joining.isoformat(),
        },
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200


async def _grant(client: AsyncClient, leave_type_id: str, amount: float = 10) -> dict[str, Any]:
    resp = await client.post(
        "/adjustments",
        json={
            "employee_id": str(EMPLOYEE_ID),
            "leave_type_id": leave_type_id,
            "adjustment_type": "add",
            "amount": amount,
            "reason": "Opening balance",
        },
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 201
    result: dict[str, Any] = resp.json()
    return result


async def _submit(client: AsyncClient, leave_type_id: str, start: date, days: float = 2) -> dict[str, Any]:
    resp = await client.post(
        "/applications",
        json={
            "user_id": str(EMPLOYEE_ID),
            "leave_type_id": leave_type_id,
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=int(days) - 1)).isoformat(),
            "days_count": days,
            "reason": "Holiday",
        },
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 201
    result: dict[str, Any] = resp.json()
    return result


async def _balance(client: AsyncClient, leave_type_id: str) -> dict[str, Any]:
    resp = await client.get(f"/employees/{EMPLOYEE_ID}/balances", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    items = [b for b in resp.json()["items"] if b["leave_type_id"] == leave_type_id]
    assert len(items) == 1
    return items[0]


# ---------------------------------------------------------------------------
# Auth and errors
# ---------------------------------------------------------------------------


class TestAuth:
    async def test_missing_user_header_is_422(self, async_client: AsyncClient) -> None:
        resp = await async_client.get("/leave-types")
        assert resp.status_code == 422
        assert resp.json()["error"] == "ValidationError"

    async def test_employee_cannot_create_leave_type(self, async_client: AsyncClient) -> None:
        resp = await async_client.post("/leave-types", json={"name": "Sick"}, headers=EMPLOYEE_HEADERS)
        assert resp.status_code == 403

    async def test_hr_can_create_leave_type(self, async_client: AsyncClient) -> None:
        headers = {"X-User-Id": str(uuid.uuid4()), "X-Role": "hr"}
        resp = await async_client.post("/leave-types", json={"name": "Sick"}, headers=headers)
        assert resp.status_code == 201

    async def test_employee_cannot_read_colleague_balances(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        colleague = uuid.uuid4()
        await _upsert_employee(async_client, colleague)
        resp = await async_client.get(f"/employees/{colleague}/balances", headers=EMPLOYEE_HEADERS)
        assert resp.status_code == 403


class TestErrorEnvelope:
    async def test_duplicate_leave_type_is_409(self, async_client: AsyncClient) -> None:
        await _create_leave_type(async_client)
        resp = await async_client.post("/leave-types", json={"name": "Annual"}, headers=ADMIN_HEADERS)
        assert resp.status_code == 409

    async def test_unknown_employee_is_404(self, async_client: AsyncClient) -> None:
        resp = await async_client.get(f"/employees/{uuid.uuid4()}/balances", headers=ADMIN_HEADERS)
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "NotFoundError"
        assert body["status_code"] == 404

    async def test_body_validation_reports_field(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        resp = await async_client.post(
            "/adjustments",
            json={
                "employee_id": str(EMPLOYEE_ID),
                "leave_type_id": leave_type_id,
                "adjustment_type": "add",
                "amount": -1,
                "reason": "oops",
            },
            headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 422
        assert resp.json()["field"] == "amount"

    async def test_blank_reason_reports_field(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        resp = await async_client.post(
            "/adjustments",
            json={
                "employee_id": str(EMPLOYEE_ID),
                "leave_type_id": leave_type_id,
                "adjustment_type": "add",
                "amount": 1,
                "reason": "  ",
            },
            headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 422
        assert resp.json()["field"] == "reason"


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


class TestBalancesApi:
    async def test_balances_created_on_first_read(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)

        balance = await _balance(async_client, leave_type_id)

        assert balance["allocated_days"] == 0
        assert balance["used_days"] == 0
        assert balance["remaining_days"] == 0
        assert balance["monthly_credit_rate"] == 1.5
        assert balance["leave_type_name"] == "Annual"
        assert balance["is_closed"] is False

    async def test_adjustment_updates_balance(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)

        first = await _grant(async_client, leave_type_id, 10)
        second = await _grant(async_client, leave_type_id, 5)

        assert first["previous_allocated"] == 0
        assert second["previous_allocated"] == 10
        assert second["new_allocated"] == 15
        balance = await _balance(async_client, leave_type_id)
        assert balance["allocated_days"] == 15

        resp = await async_client.get("/adjustments", headers=EMPLOYEE_HEADERS)
        assert resp.json()["total"] == 2

    async def test_leave_summary(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        await _grant(async_client, leave_type_id, 4)

        resp = await async_client.get(f"/employees/{EMPLOYEE_ID}/leave-summary", headers=EMPLOYEE_HEADERS)

        assert resp.status_code == 200
        body = resp.json()
        assert body["tenure_months"] >= 24
        assert body["rule"] == {"monthly_rate": 1.5, "eligible_for_paid_leave": True, "can_carry_forward": True}
        assert body["total_allocated_days"] == 4
        assert body["total_remaining_days"] == 4
        assert len(body["balances"]) == 1

    async def test_year_overview_is_admin_only(self, async_client: AsyncClient) -> None:
        resp = await async_client.get("/balances", headers=EMPLOYEE_HEADERS)
        assert resp.status_code == 403
        resp = await async_client.get("/balances", params={"year": 2024}, headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["total"] == 0


class TestApplicationsApi:
    async def test_approve_then_withdraw_round_trip(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        await _grant(async_client, leave_type_id, 10)

        submitted = await _submit(async_client, leave_type_id, date.today() + timedelta(days=30), days=3)
        application_id = submitted["application"]["id"]
        assert submitted["excess_days"] == 0

        resp = await async_client.post(f"/applications/{application_id}/approve", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"
        assert (await _balance(async_client, leave_type_id))["used_days"] == 3

        resp = await async_client.post(
            f"/applications/{application_id}/withdraw",
            json={"reason": "Cancelled trip"},
            headers=EMPLOYEE_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "withdrawn"
        assert (await _balance(async_client, leave_type_id))["used_days"] == 0

        resp = await async_client.get(
            "/withdrawals", params={"application_id": application_id}, headers=ADMIN_HEADERS
        )
        assert resp.json()["total"] == 1
        assert resp.json()["items"][0]["previous_status"] == "approved"

    async def test_employee_cannot_approve(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        submitted = await _submit(async_client, leave_type_id, date.today() + timedelta(days=5))

        resp = await async_client.post(
            f"/applications/{submitted['application']['id']}/approve", headers=EMPLOYEE_HEADERS
        )
        assert resp.status_code == 403

    async def test_invalid_transition_is_409(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        submitted = await _submit(async_client, leave_type_id, date.today() + timedelta(days=5))
        application_id = submitted["application"]["id"]

        resp = await async_client.post(f"/applications/{application_id}/reject", headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        resp = await async_client.post(f"/applications/{application_id}/approve", headers=ADMIN_HEADERS)
        assert resp.status_code == 409
        assert resp.json()["error"] == "InvalidTransitionError"

    async def test_past_dated_withdrawal_is_422(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        submitted = await _submit(async_client, leave_type_id, date.today() - timedelta(days=1), days=1)
        application_id = submitted["application"]["id"]
        await async_client.post(f"/applications/{application_id}/approve", headers=ADMIN_HEADERS)

        resp = await async_client.post(f"/applications/{application_id}/withdraw", headers=EMPLOYEE_HEADERS)

        assert resp.status_code == 422
        assert resp.json()["field"] == "start_date"
        assert (await _balance(async_client, leave_type_id))["used_days"] == 1

    async def test_end_before_start_is_422(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        resp = await async_client.post(
            "/applications",
            json={
                "user_id": str(EMPLOYEE_ID),
                "leave_type_id": leave_type_id,
                "start_date": "2030-01-10",
                "end_date": "2030-01-05",
                "days_count": 1,
            },
            headers=EMPLOYEE_HEADERS,
        )
        assert resp.status_code == 422

    async def test_employee_sees_only_own_applications(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        await _submit(async_client, leave_type_id, date.today() + timedelta(days=5))

        resp = await async_client.get("/applications", headers=EMPLOYEE_HEADERS)
        assert resp.json()["total"] == 1

        stranger = {"X-User-Id": str(uuid.uuid4()), "X-Role": "employee"}
        resp = await async_client.get("/applications", headers=stranger)
        assert resp.json()["total"] == 0

    async def test_on_leave_listing(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)
        submitted = await _submit(async_client, leave_type_id, date.today() + timedelta(days=2), days=2)
        await async_client.post(f"/applications/{submitted['application']['id']}/approve", headers=ADMIN_HEADERS)

        resp = await async_client.get("/applications/on-leave", headers=ADMIN_HEADERS)

        assert resp.status_code == 200
        assert [a["id"] for a in resp.json()["items"]] == [submitted["application"]["id"]]


class TestAccrualsApi:
    async def test_manual_run_is_idempotent(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        leave_type_id = await _create_leave_type(async_client)

        first = await async_client.post("/accruals/run", params={"target_date": "2024-03-15"}, headers=ADMIN_HEADERS)
        second = await async_client.post("/accruals/run", params={"target_date": "2024-03-20"}, headers=ADMIN_HEADERS)

        assert first.status_code == 200
        assert first.json()["credited"] == 1
        assert second.json()["credited"] == 0
        assert second.json()["skipped"] == 1

        resp = await async_client.get(
            f"/employees/{EMPLOYEE_ID}/balances", params={"year": 2024}, headers=ADMIN_HEADERS
        )
        items = [b for b in resp.json()["items"] if b["leave_type_id"] == leave_type_id]
        assert items[0]["allocated_days"] == 1.5

    async def test_recalculate_one_employee(self, async_client: AsyncClient) -> None:
        await _upsert_employee(async_client)
        await _upsert_employee(async_client, uuid.uuid4())
        await _create_leave_type(async_client)

        resp = await async_client.post(f"/employees/{EMPLOYEE_ID}/balances/recalculate", headers=ADMIN_HEADERS)

        assert resp.status_code == 200
        assert resp.json()["processed"] == 1

    async def test_run_requires_admin(self, async_client: AsyncClient) -> None:
        resp = await async_client.post("/accruals/run", headers=EMPLOYEE_HEADERS)
        assert resp.status_code == 403
