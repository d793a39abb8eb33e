"""Attendance API endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from hr_payroll_engine.api.dependencies import DbSession
from hr_payroll_engine.api.schemas import (
    ApproveAttendanceRequest,
    AttendanceCreate,
    AttendanceResponse,
    AttendanceSummaryResponse,
    AttendanceUpdate,
    CheckInRequest,
    CheckOutRequest,
    ErrorResponse,
)
from hr_payroll_engine.services.attendance_service import AttendanceService

router = APIRouter(prefix="/attendance", tags=["attendance"])

Month = Annotated[int, Query(ge=1, le=12)]


@router.post(
    "/check-in",
    response_model=AttendanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def check_in(db: DbSession, payload: CheckInRequest) -> AttendanceResponse:
    """Check an employee in for today."""
    record = await AttendanceService(db).check_in(payload.employee_id, payload.site_id, payload.at)
    await db.commit()
    return AttendanceResponse.model_validate(record)


@router.post(
    "/check-out",
    response_model=AttendanceResponse,
    responses={409: {"model": ErrorResponse}},
)
async def check_out(db: DbSession, payload: CheckOutRequest) -> AttendanceResponse:
    """Close today's open check-in."""
    record = await AttendanceService(db).check_out(payload.employee_id, payload.at)
    await db.commit()
    return AttendanceResponse.model_validate(record)


@router.post(
    "",
    response_model=AttendanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def record_attendance(db: DbSession, payload: AttendanceCreate) -> AttendanceResponse:
    fields = payload.model_dump(exclude={"employee_id", "attendance_date", "status"})
    record = await AttendanceService(db).record_attendance(
        payload.employee_id, payload.attendance_date, payload.status, **fields
    )
    await db.commit()
    return AttendanceResponse.model_validate(record)


@router.patch(
    "/{record_id}",
    response_model=AttendanceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_attendance(
    db: DbSession,
    payload: AttendanceUpdate,
    record_id: Annotated[int, Path()],
) -> AttendanceResponse:
    patch = payload.model_dump(exclude_unset=True, exclude={"actor"})
    record = await AttendanceService(db).update_attendance(record_id, patch, payload.actor)
    await db.commit()
    return AttendanceResponse.model_validate(record)


@router.post(
    "/{record_id}/approve",
    response_model=AttendanceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_attendance(
    db: DbSession,
    payload: ApproveAttendanceRequest,
    record_id: Annotated[int, Path()],
) -> AttendanceResponse:
    record = await AttendanceService(db).approve_attendance(record_id, payload.approver)
    await db.commit()
    return AttendanceResponse.model_validate(record)


@router.get("/today", response_model=list[AttendanceResponse])
async def get_today_attendance(
    db: DbSession,
    on_date: Annotated[date | None, Query()] = None,
) -> list[AttendanceResponse]:
    records = await AttendanceService(db).get_today_attendance(on_date)
    return [AttendanceResponse.model_validate(r) for r in records]


@router.get("/absent", response_model=list[int])
async def get_absent_employees(
    db: DbSession,
    on_date: Annotated[date, Query()],
) -> list[int]:
    """Active employees with no attendance row on a date."""
    return await AttendanceService(db).get_absent_employees(on_date)


@router.get("/employees/{employee_id}", response_model=list[AttendanceResponse])
async def get_attendance(
    db: DbSession,
    employee_id: Annotated[int, Path()],
    month: Month,
    year: Annotated[int, Query()],
) -> list[AttendanceResponse]:
    records = await AttendanceService(db).get_attendance(employee_id, month, year)
    return [AttendanceResponse.model_validate(r) for r in records]


@router.get(
    "/employees/{employee_id}/summary",
    response_model=AttendanceSummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_attendance_summary(
    db: DbSession,
    employee_id: Annotated[int, Path()],
    month: Month,
    year: Annotated[int, Query()],
) -> AttendanceSummaryResponse:
    summary = await AttendanceService(db).get_attendance_summary(employee_id, month, year)
    return AttendanceSummaryResponse.model_validate(summary)
