"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hr_payroll_engine.api.routes import (
    attendance_router,
    health_router,
    leaves_router,
    payroll_router,
)
from hr_payroll_engine.config import get_settings
from hr_payroll_engine.database import dispose_db, init_db
from hr_payroll_engine.errors import (
    DuplicateAttendanceError,
    DuplicatePayrollRunError,
    HRError,
    InvalidLeaveTransitionError,
    InvalidTransitionError,
    LeaveAlreadyStartedError,
    LockedRecordError,
    NoOpenCheckInError,
    RecordNotFoundError,
    SalarySetupMissingError,
)

logger = logging.getLogger(__name__)

# Most specific first; anything else rooted at HRError is a 400
ERROR_STATUS: list[tuple[type[HRError], int]] = [
    (RecordNotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateAttendanceError, status.HTTP_409_CONFLICT),
    (DuplicatePayrollRunError, status.HTTP_409_CONFLICT),
    (NoOpenCheckInError, status.HTTP_409_CONFLICT),
    (LockedRecordError, status.HTTP_409_CONFLICT),
    (InvalidLeaveTransitionError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (LeaveAlreadyStartedError, status.HTTP_409_CONFLICT),
    (SalarySetupMissingError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def status_for(exc: HRError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    await init_db()
    yield
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="HR Payroll Engine API",
        description="Attendance, leave and payroll engine",
        version=settings.engine_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HRError)
    async def hr_error_handler(request: Request, exc: HRError) -> JSONResponse:
        """Surface HR engine errors verbatim."""
        code = status_for(exc)
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(
            status_code=code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "code": "INVALID_INPUT"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(attendance_router, prefix="/api/v1")
    app.include_router(leaves_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
