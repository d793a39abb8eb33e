"""Leave API endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from hr_payroll_engine.api.dependencies import DbSession
from hr_payroll_engine.api.schemas import (
    ErrorResponse,
    LeaveBalanceResponse,
    LeaveCreate,
    LeaveDecisionRequest,
    LeaveResponse,
)
from hr_payroll_engine.models.enums import LeaveType
from hr_payroll_engine.services.leave_service import LeaveService

router = APIRouter(prefix="/leaves", tags=["leaves"])


@router.post(
    "",
    response_model=LeaveResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def apply_leave(db: DbSession, payload: LeaveCreate) -> LeaveResponse:
    """Apply for leave (always created as Applied)."""
    leave = await LeaveService(db).apply_leave(
        payload.employee_id,
        payload.leave_type,
        payload.from_date,
        payload.to_date,
        number_of_days=payload.number_of_days,
        entitlement=payload.entitlement,
        reason=payload.reason,
        applied_by=payload.applied_by,
    )
    await db.commit()
    return LeaveResponse.model_validate(leave)


@router.post(
    "/{leave_id}/approve",
    response_model=LeaveResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_leave(
    db: DbSession,
    payload: LeaveDecisionRequest,
    leave_id: Annotated[int, Path()],
) -> LeaveResponse:
    leave = await LeaveService(db).approve_leave(leave_id, payload.actor, payload.remarks)
    await db.commit()
    return LeaveResponse.model_validate(leave)


@router.post(
    "/{leave_id}/reject",
    response_model=LeaveResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reject_leave(
    db: DbSession,
    payload: LeaveDecisionRequest,
    leave_id: Annotated[int, Path()],
) -> LeaveResponse:
    leave = await LeaveService(db).reject_leave(leave_id, payload.remarks, payload.actor)
    await db.commit()
    return LeaveResponse.model_validate(leave)


@router.post(
    "/{leave_id}/cancel",
    response_model=LeaveResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def cancel_leave(
    db: DbSession,
    payload: LeaveDecisionRequest,
    leave_id: Annotated[int, Path()],
) -> LeaveResponse:
    leave = await LeaveService(db).cancel_leave(leave_id, actor=payload.actor)
    await db.commit()
    return LeaveResponse.model_validate(leave)


@router.get("/pending", response_model=list[LeaveResponse])
async def get_pending_leaves(db: DbSession) -> list[LeaveResponse]:
    leaves = await LeaveService(db).get_pending_leaves()
    return [LeaveResponse.model_validate(leave) for leave in leaves]


@router.get("/on-leave", response_model=list[int])
async def get_on_leave_employees(
    db: DbSession,
    on_date: Annotated[date, Query()],
) -> list[int]:
    return await LeaveService(db).get_on_leave_employees(on_date)


@router.get("/employees/{employee_id}", response_model=list[LeaveResponse])
async def get_employee_leaves(
    db: DbSession,
    employee_id: Annotated[int, Path()],
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    year: Annotated[int | None, Query()] = None,
) -> list[LeaveResponse]:
    leaves = await LeaveService(db).get_employee_leaves(employee_id, month, year)
    return [LeaveResponse.model_validate(leave) for leave in leaves]


@router.get("/employees/{employee_id}/history", response_model=list[LeaveResponse])
async def get_leave_history(
    db: DbSession,
    employee_id: Annotated[int, Path()],
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> list[LeaveResponse]:
    leaves = await LeaveService(db).get_leave_history(employee_id, limit)
    return [LeaveResponse.model_validate(leave) for leave in leaves]


@router.get("/employees/{employee_id}/balance", response_model=LeaveBalanceResponse)
async def get_leave_balance(
    db: DbSession,
    employee_id: Annotated[int, Path()],
    leave_type: Annotated[LeaveType, Query()],
    year: Annotated[int, Query()],
) -> LeaveBalanceResponse:
    balance = await LeaveService(db).get_leave_balance(employee_id, leave_type, year)
    return LeaveBalanceResponse.model_validate(balance)
