"""Integration test fixtures: the FastAPI app over an in-memory database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.api.app import create_app
from hr_payroll_engine.api.dependencies import get_db_session
from hr_payroll_engine.models import Employee


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client bound to the test database."""
    app = create_app()

    async def _test_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _test_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def seeded(session_factory) -> dict[str, int]:
    """Two branch-1 employees, committed so every request session sees them."""
    async with session_factory() as session:
        ravi = Employee(name="Ravi Kumar", category="Technician", branch_id=1)
        meena = Employee(name="Meena Iyer", category="Engineer", branch_id=1)
        session.add_all([ravi, meena])
        await session.flush()
        ids = {"ravi": ravi.id, "meena": meena.id}
        await session.commit()
    return ids
