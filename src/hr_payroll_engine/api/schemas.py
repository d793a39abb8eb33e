"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hr_payroll_engine.models.enums import (
    AttendanceStatus,
    DeductionType,
    LeaveEntitlement,
    LeaveType,
    SalaryType,
)


class ErrorResponse(BaseModel):
    """Error body for every HR engine failure."""

    detail: str
    code: str


# ============================================================================
# Attendance schemas
# ============================================================================


class CheckInRequest(BaseModel):
    employee_id: int
    site_id: str | None = None
    at: datetime | None = None


class CheckOutRequest(BaseModel):
    employee_id: int
    at: datetime | None = None


class AttendanceCreate(BaseModel):
    """Direct attendance entry for a date."""

    employee_id: int
    attendance_date: date
    status: AttendanceStatus
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    working_hours: float | None = Field(default=None, ge=0)
    site_id: str | None = None
    branch_id: int | None = None
    remarks: str | None = None
    actor: int | None = None


class AttendanceUpdate(BaseModel):
    """Partial attendance patch; only supplied fields are applied."""

    attendance_date: date | None = None
    status: AttendanceStatus | None = None
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    working_hours: float | None = Field(default=None, ge=0)
    site_id: str | None = None
    branch_id: int | None = None
    remarks: str | None = None
    actor: int | None = None


class ApproveAttendanceRequest(BaseModel):
    approver: int


class AttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    attendance_date: date
    status: str
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    working_hours: float | None = None
    site_id: str | None = None
    branch_id: int | None = None
    remarks: str | None = None
    approved_by: int | None = None
    approved_at: datetime | None = None


class AttendanceSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    month: int
    year: int
    total_working_days: int
    present_days: int
    absent_days: int
    half_days: int
    leave_days: int
    total_working_hours: float


# ============================================================================
# Leave schemas
# ============================================================================


class LeaveCreate(BaseModel):
    employee_id: int
    leave_type: LeaveType
    from_date: date
    to_date: date
    number_of_days: Decimal | None = Field(default=None, ge=0)
    entitlement: LeaveEntitlement | None = None
    reason: str | None = None
    applied_by: int | None = None


class LeaveDecisionRequest(BaseModel):
    actor: int | None = None
    remarks: str | None = None


class LeaveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    leave_type: str
    from_date: date
    to_date: date
    number_of_days: Decimal
    entitlement: str
    status: str
    reason: str | None = None
    applied_on: datetime
    approved_by: int | None = None
    approved_on: datetime | None = None
    approval_remarks: str | None = None
    rejection_reason: str | None = None


class LeaveBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: int
    leave_type: str
    year: int
    total: Decimal
    used: Decimal
    available: Decimal


# ============================================================================
# Salary setup / deduction schemas
# ============================================================================


class SalarySetupCreate(BaseModel):
    employee_id: int
    salary_type: SalaryType
    effective_date: date
    base_salary: Decimal | None = None
    daily_rate: Decimal | None = None
    da: Decimal = Decimal("0")
    hra: Decimal = Decimal("0")
    conveyance: Decimal = Decimal("0")
    other_allowance: Decimal = Decimal("0")
    actor: int | None = None


class SalarySetupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    salary_type: str
    base_salary: Decimal | None = None
    daily_rate: Decimal | None = None
    da: Decimal
    hra: Decimal
    conveyance: Decimal
    other_allowance: Decimal
    effective_date: date
    is_active: bool


class DeductionCreate(BaseModel):
    employee_id: int
    deduction_type: DeductionType
    amount: Decimal = Field(ge=0)
    deduction_date: date
    description: str | None = None
    branch_id: int | None = None
    actor: int | None = None


class DeductionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    deduction_type: str
    amount: Decimal
    deduction_date: date
    status: str
    approved_by: int | None = None


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int
    branch_id: int | None = None
    site_id: str | None = None
    actor: int | None = None


class RunActionRequest(BaseModel):
    actor: int | None = None
    reason: str | None = None


class PayrollRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    branch_id: int
    site_id: str | None = None
    month: int
    year: int
    status: str
    employee_count: int
    total_net_pay: Decimal
    generated_by: int | None = None
    generated_at: datetime
    locked_by: int | None = None
    locked_at: datetime | None = None
    paid_at: datetime | None = None


class SheetGenerateRequest(BaseModel):
    employee_id: int
    month: int = Field(ge=1, le=12)
    year: int
    actor: int | None = None


class SheetUpdateRequest(BaseModel):
    changes: dict[str, Any]
    actor: int | None = None
    reason: str | None = None


class SheetPayRequest(BaseModel):
    payment_ref: str
    actor: int | None = None
    reason: str | None = None


class PolicyFallbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    policy: str
    reason: str
    branch_id: int | None = None
    site_id: str | None = None


class SalarySheetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    employee_id: int
    branch_id: int
    payroll_run_id: int | None = None
    month: int
    year: int
    total_working_days: int
    present_days: int
    absent_days: int
    half_day_count: int
    paid_leave_days: Decimal
    unpaid_leave_days: Decimal
    base_salary: Decimal
    da: Decimal
    hra: Decimal
    conveyance: Decimal
    other_allowance: Decimal
    total_earnings: Decimal
    advance: Decimal
    loan: Decimal
    fine: Decimal
    other_deduction: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    status: str
    payment_mode: str | None = None
    payment_ref: str | None = None
    integrity_hash: str | None = None
    hash_algorithm: str | None = None
    # Set only on unsaved calculation previews
    fallbacks: list[PolicyFallbackResponse] = Field(default_factory=list)


class WorkingDaysResponse(BaseModel):
    branch_id: int
    site_id: str | None = None
    month: int
    year: int
    working_days: int
    calendar_id: int | None = None
    fallback: bool
