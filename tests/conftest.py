"""Pytest fixtures for attendance payroll tests."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from attendance_payroll.calculators.engine import EmployeePayrollInput
from attendance_payroll.calculators.rulesets import (
    Ruleset,
    RulesetCatalog,
    build_default_catalog,
    build_default_ruleset,
)
from attendance_payroll.calculators.types import (
    AttendanceDay,
    EmployeeWageProfile,
    LateUndertimeBasis,
    MonthlyPayBasis,
    NegativeNetPayPolicy,
    PayFrequency,
    PayPeriodRange,
    PayrollPolicy,
    ShiftWindow,
    WageType,
)
from attendance_payroll.config import Settings
from attendance_payroll.database import create_tables, make_session_factory


def at(d: date, hour: int, minute: int = 0) -> datetime:
    """Naive company-local timestamp."""
    return datetime.combine(d, time(hour, minute))


def attendance(
    employee_id: str,
    work_date: date,
    clock_in: tuple[int, int] | None = (8, 0),
    clock_out: tuple[int, int] | None = (17, 0),
    **flags: bool,
) -> AttendanceDay:
    return AttendanceDay(
        employee_id=employee_id,
        work_date=work_date,
        actual_in=at(work_date, *clock_in) if clock_in else None,
        actual_out=at(work_date, *clock_out) if clock_out else None,
        **flags,
    )


def workdays(start: date, end: date) -> list[date]:
    period = PayPeriodRange(start, end)
    return [d for d in period.dates() if d.weekday() < 5]


@pytest.fixture
def make_attendance():
    """Factory for attendance days with HH:MM clock events."""
    return attendance


@pytest.fixture
def make_workdays():
    """Factory listing Monday-Friday dates in a range."""
    return workdays


@pytest.fixture
def day_shift() -> ShiftWindow:
    """08:00-17:00 with a one-hour unpaid break."""
    return ShiftWindow(start_time=time(8, 0), end_time=time(17, 0))


@pytest.fixture
def night_shift() -> ShiftWindow:
    """22:00-07:00 next day with a one-hour unpaid break."""
    return ShiftWindow(start_time=time(22, 0), end_time=time(7, 0), overnight=True)


@pytest.fixture
def policy() -> PayrollPolicy:
    return PayrollPolicy()


@pytest.fixture
def ruleset() -> Ruleset:
    return build_default_ruleset()


@pytest.fixture
def catalog() -> RulesetCatalog:
    return build_default_catalog()


@pytest.fixture
def settings() -> Settings:
    """Explicit settings so tests never read the environment."""
    return Settings(
        database_url="sqlite+aiosqlite://",
        engine_version="1.0.0",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        create_tables=False,
        worker_count=2,
        timezone="Asia/Manila",
        working_days_per_month=Decimal("26"),
        hours_per_day=Decimal("8"),
        night_start=time(22, 0),
        night_end=time(6, 0),
        rest_days=frozenset({5, 6}),
        late_undertime_basis=LateUndertimeBasis.FLAT,
        negative_net_pay_policy=NegativeNetPayPolicy.FLAG,
        minimum_net_pay=Decimal("0"),
        pay_unworked_regular_holidays=True,
        monthly_pay_basis=MonthlyPayBasis.ATTENDANCE,
    )


@pytest.fixture
def monthly_profile(day_shift: ShiftWindow) -> EmployeeWageProfile:
    """Monthly 26,000: 1,000 a day, 1000/480 a minute. Not yet regularized."""
    return EmployeeWageProfile(
        employee_id="EMP-001",
        wage_type=WageType.MONTHLY,
        base_rate=Decimal("26000"),
        default_shift=day_shift,
    )


@pytest.fixture
def regular_profile(day_shift: ShiftWindow) -> EmployeeWageProfile:
    """Monthly 26,000 regularized before 2026."""
    return EmployeeWageProfile(
        employee_id="EMP-002",
        wage_type=WageType.MONTHLY,
        base_rate=Decimal("26000"),
        regularization_date=date(2025, 6, 1),
        default_shift=day_shift,
    )


@pytest.fixture
def first_half_march() -> PayPeriodRange:
    return PayPeriodRange(date(2026, 3, 1), date(2026, 3, 15), PayFrequency.SEMI_MONTHLY)


@pytest.fixture
def full_attendance_input(regular_profile: EmployeeWageProfile) -> EmployeePayrollInput:
    """Ten full workdays in 2026-03-01..15."""
    return EmployeePayrollInput(
        profile=regular_profile,
        attendance_days=tuple(
            attendance(regular_profile.employee_id, d)
            for d in workdays(date(2026, 3, 1), date(2026, 3, 15))
        ),
    )


# ===== Database =====


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite file database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}", echo=False)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()
