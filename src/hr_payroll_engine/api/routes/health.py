"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from hr_payroll_engine.api.dependencies import DbSession
from hr_payroll_engine.config import get_settings
from hr_payroll_engine.models import PayrollRun

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    engine_version: str


async def check_database(db: DbSession) -> str:
    """``healthy``, ``schema-missing`` when tables were never created, else ``unhealthy``."""
    try:
        await db.execute(select(PayrollRun.id).limit(1))
    except OperationalError as exc:
        if "no such table" in str(exc):
            return "schema-missing"
        return "unhealthy"
    except SQLAlchemyError:
        return "unhealthy"
    return "healthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check API, database and schema health."""
    db_status = await check_database(db)
    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        engine_version=get_settings().engine_version,
    )


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
