"""Pytest fixtures for HR payroll engine tests."""

from __future__ import annotations

from datetime import date
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll_engine.database import create_all, create_engine_for_url, make_session_factory
from hr_payroll_engine.models import Employee, WorkCalendar, WorkCalendarHoliday

# In-memory SQLite shared across one test through StaticPool
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_engine_for_url(TEST_DATABASE_URL)
    await create_all(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_employee(session: AsyncSession):
    """Factory inserting employees with sensible defaults."""

    async def _make(**overrides) -> Employee:
        values = {
            "name": "Ravi Kumar",
            "category": "Technician",
            "branch_id": 1,
            "assigned_site": None,
            "status": "active",
        }
        values.update(overrides)
        employee = Employee(**values)
        session.add(employee)
        await session.flush()
        return employee

    return _make


@pytest.fixture
async def employee(make_employee) -> Employee:
    """An active branch-1 technician without a site."""
    return await make_employee()


@pytest.fixture
def make_calendar(session: AsyncSession):
    """Factory inserting a work calendar and its holiday rows."""

    async def _make(
        branch_id: int = 1,
        site_id: str | None = None,
        weekend_days: list[int] | None = None,
        effective_from: date = date(2025, 1, 1),
        effective_to: date | None = None,
        holidays: list[date] | None = None,
        overrides: list[date] | None = None,
        is_active: bool = True,
    ) -> WorkCalendar:
        calendar = WorkCalendar(
            branch_id=branch_id,
            site_id=site_id,
            name=f"Branch {branch_id} calendar",
            effective_from=effective_from,
            effective_to=effective_to,
            weekend_days=[5, 6] if weekend_days is None else weekend_days,
            is_active=is_active,
        )
        session.add(calendar)
        await session.flush()

        entries = [
            WorkCalendarHoliday(calendar_id=calendar.id, holiday_date=day)
            for day in holidays or []
        ] + [
            WorkCalendarHoliday(
                calendar_id=calendar.id,
                holiday_date=day,
                is_working_day_override=True,
            )
            for day in overrides or []
        ]
        if entries:
            session.add_all(entries)
            await session.flush()
        return calendar

    return _make
