"""Salary setup, payroll run and salary sheet endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from hr_payroll_engine.api.dependencies import DbSession
from hr_payroll_engine.api.schemas import (
    DeductionCreate,
    DeductionResponse,
    ErrorResponse,
    PayrollRunCreate,
    PayrollRunResponse,
    RunActionRequest,
    SalarySetupCreate,
    SalarySetupResponse,
    SalarySheetResponse,
    SheetGenerateRequest,
    SheetPayRequest,
    SheetUpdateRequest,
    WorkingDaysResponse,
)
from hr_payroll_engine.calculators.engine import PayrollCalculator
from hr_payroll_engine.calculators.policy_resolver import PolicyResolver, count_working_days
from hr_payroll_engine.services.payroll_run_service import PayrollRunService
from hr_payroll_engine.services.salary_service import SalaryService

router = APIRouter(prefix="/payroll", tags=["payroll"])

Month = Annotated[int, Query(ge=1, le=12)]
Year = Annotated[int, Query()]


# ============================================================================
# Salary setup and deductions
# ============================================================================


@router.post(
    "/setups",
    response_model=SalarySetupResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def setup_salary(db: DbSession, payload: SalarySetupCreate) -> SalarySetupResponse:
    fields = payload.model_dump(exclude={"employee_id", "salary_type", "effective_date"})
    setup = await SalaryService(db).setup_salary(
        payload.employee_id, payload.salary_type, payload.effective_date, **fields
    )
    await db.commit()
    return SalarySetupResponse.model_validate(setup)


@router.post(
    "/deductions",
    response_model=DeductionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_deduction(db: DbSession, payload: DeductionCreate) -> DeductionResponse:
    deduction = await SalaryService(db).record_deduction(
        payload.employee_id,
        payload.deduction_type,
        payload.amount,
        payload.deduction_date,
        description=payload.description,
        branch_id=payload.branch_id,
        actor=payload.actor,
    )
    await db.commit()
    return DeductionResponse.model_validate(deduction)


@router.post(
    "/deductions/{deduction_id}/approve",
    response_model=DeductionResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_deduction(
    db: DbSession,
    payload: RunActionRequest,
    deduction_id: Annotated[int, Path()],
) -> DeductionResponse:
    deduction = await SalaryService(db).approve_deduction(deduction_id, payload.actor)
    await db.commit()
    return DeductionResponse.model_validate(deduction)


# ============================================================================
# Policy and calculation previews
# ============================================================================


@router.get("/working-days", response_model=WorkingDaysResponse)
async def get_working_days(
    db: DbSession,
    month: Month,
    year: Year,
    branch_id: Annotated[int, Query()] = 0,
    site_id: Annotated[str | None, Query()] = None,
) -> WorkingDaysResponse:
    """Working days in a month under the governing calendar."""
    resolved = await PolicyResolver(db).resolve_calendar(branch_id, site_id, month, year)
    return WorkingDaysResponse(
        branch_id=branch_id,
        site_id=site_id,
        month=month,
        year=year,
        working_days=count_working_days(resolved, month, year),
        calendar_id=resolved.calendar_id,
        fallback=resolved.fallback is not None,
    )


@router.get(
    "/employees/{employee_id}/calculation",
    response_model=SalarySheetResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def preview_salary(
    db: DbSession,
    employee_id: Annotated[int, Path()],
    month: Month,
    year: Year,
) -> SalarySheetResponse:
    """Calculate a month's salary without persisting it."""
    calc = await PayrollCalculator(db).calculate_monthly_salary(employee_id, month, year)
    return SalarySheetResponse.model_validate(calc)


# ============================================================================
# Payroll runs
# ============================================================================


@router.post(
    "/runs",
    response_model=PayrollRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_payroll_run(db: DbSession, payload: PayrollRunCreate) -> PayrollRunResponse:
    run = await PayrollRunService(db).create_payroll_run(
        payload.month, payload.year, payload.branch_id, payload.site_id, payload.actor
    )
    await db.commit()
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/runs/generate",
    response_model=PayrollRunResponse,
    responses={409: {"model": ErrorResponse}},
)
async def generate_run_items(db: DbSession, payload: PayrollRunCreate) -> PayrollRunResponse:
    """Generate sheets for all active employees of the branch/site."""
    run = await PayrollRunService(db).generate_run_items(
        payload.month, payload.year, payload.branch_id, payload.site_id, payload.actor
    )
    await db.commit()
    return PayrollRunResponse.model_validate(run)


@router.get(
    "/runs/{run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(db: DbSession, run_id: Annotated[int, Path()]) -> PayrollRunResponse:
    run = await PayrollRunService(db).get_payroll_run(run_id)
    return PayrollRunResponse.model_validate(run)


@router.get("/runs/{run_id}/sheets", response_model=list[SalarySheetResponse])
async def get_run_sheets(db: DbSession, run_id: Annotated[int, Path()]) -> list[SalarySheetResponse]:
    sheets = await PayrollRunService(db).get_run_sheets(run_id)
    return [SalarySheetResponse.model_validate(s) for s in sheets]


@router.post(
    "/runs/{run_id}/review",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def review_run(
    db: DbSession,
    payload: RunActionRequest,
    run_id: Annotated[int, Path()],
) -> PayrollRunResponse:
    run = await PayrollRunService(db).review_run(run_id, payload.actor)
    await db.commit()
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/runs/{run_id}/lock",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def lock_run(
    db: DbSession,
    payload: RunActionRequest,
    run_id: Annotated[int, Path()],
) -> PayrollRunResponse:
    run = await PayrollRunService(db).lock_run(run_id, payload.actor, payload.reason)
    await db.commit()
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/runs/{run_id}/paid",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_run_paid(
    db: DbSession,
    payload: RunActionRequest,
    run_id: Annotated[int, Path()],
) -> PayrollRunResponse:
    run = await PayrollRunService(db).mark_run_paid(run_id, payload.actor)
    await db.commit()
    return PayrollRunResponse.model_validate(run)


@router.post(
    "/runs/{run_id}/archive",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def archive_run(
    db: DbSession,
    payload: RunActionRequest,
    run_id: Annotated[int, Path()],
) -> PayrollRunResponse:
    run = await PayrollRunService(db).archive_run(run_id, payload.actor)
    await db.commit()
    return PayrollRunResponse.model_validate(run)


# ============================================================================
# Salary sheets
# ============================================================================


@router.post(
    "/sheets/generate",
    response_model=SalarySheetResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def generate_salary_sheet(db: DbSession, payload: SheetGenerateRequest) -> SalarySheetResponse:
    sheet = await PayrollRunService(db).generate_salary_sheet(
        payload.employee_id, payload.month, payload.year, payload.actor
    )
    await db.commit()
    return SalarySheetResponse.model_validate(sheet)


@router.get("/sheets/pending", response_model=list[SalarySheetResponse])
async def get_pending_approvals(db: DbSession) -> list[SalarySheetResponse]:
    sheets = await PayrollRunService(db).get_pending_approvals()
    return [SalarySheetResponse.model_validate(s) for s in sheets]


@router.patch(
    "/sheets/{sheet_id}",
    response_model=SalarySheetResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_salary_sheet(
    db: DbSession,
    payload: SheetUpdateRequest,
    sheet_id: Annotated[int, Path()],
) -> SalarySheetResponse:
    sheet = await PayrollRunService(db).update_salary_sheet(
        sheet_id, payload.changes, payload.actor, payload.reason
    )
    await db.commit()
    return SalarySheetResponse.model_validate(sheet)


@router.post(
    "/sheets/{sheet_id}/approve",
    response_model=SalarySheetResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_salary_sheet(
    db: DbSession,
    payload: RunActionRequest,
    sheet_id: Annotated[int, Path()],
) -> SalarySheetResponse:
    sheet = await PayrollRunService(db).approve_salary_sheet(sheet_id, payload.actor, payload.reason)
    await db.commit()
    return SalarySheetResponse.model_validate(sheet)


@router.post(
    "/sheets/{sheet_id}/pay",
    response_model=SalarySheetResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_sheet_paid(
    db: DbSession,
    payload: SheetPayRequest,
    sheet_id: Annotated[int, Path()],
) -> SalarySheetResponse:
    sheet = await PayrollRunService(db).mark_sheet_paid(
        sheet_id, payload.payment_ref, payload.actor, payload.reason
    )
    await db.commit()
    return SalarySheetResponse.model_validate(sheet)
