"""Integration test fixtures: the API over a per-test SQLite database."""

from collections.abc import AsyncGenerator
from datetime import date, timedelta
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from attendance_payroll.api.app import create_app

PERIOD_START = date(2026, 3, 1)
PERIOD_END = date(2026, 3, 15)


@pytest_asyncio.fixture
async def client(settings, session_factory, catalog) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app(settings, session_factory, catalog)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def employee_payload(employee_id: str = "EMP-002", with_shift: bool = True) -> dict[str, Any]:
    """Monthly 26,000, regularized, present 08:00-17:00 every weekday."""
    attendance = []
    day = PERIOD_START
    while day <= PERIOD_END:
        if day.weekday() < 5:
            attendance.append(
                {
                    "work_date": day.isoformat(),
                    "actual_in": f"{day.isoformat()}T08:00:00",
                    "actual_out": f"{day.isoformat()}T17:00:00",
                }
            )
        day += timedelta(days=1)

    payload: dict[str, Any] = {
        "employee_id": employee_id,
        "wage_type": "MONTHLY",
        "base_rate": "26000",
        "regularization_date": "2025-06-01",
        "attendance": attendance,
    }
    if with_shift:
        payload["default_shift"] = {"start_time": "08:00:00", "end_time": "17:00:00"}
    return payload


@pytest.fixture
def make_employee_payload():
    """Factory for employee request bodies."""
    return employee_payload


@pytest_asyncio.fixture
async def draft_run(client: AsyncClient) -> dict[str, Any]:
    response = await client.post(
        "/api/v1/payroll-runs",
        json={
            "name": "March 1-15",
            "period_start": PERIOD_START.isoformat(),
            "period_end": PERIOD_END.isoformat(),
            "pay_frequency": "SEMI_MONTHLY",
            "actor": "hr",
        },
    )
    assert response.status_code == 201
    return response.json()
