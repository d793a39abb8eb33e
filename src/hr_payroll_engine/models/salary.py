"""Salary setup, advance deduction and salary sheet models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll_engine.models.base import Base, TimestampMixin
from hr_payroll_engine.models.enums import (
    DeductionStatus,
    DeductionType,
    SalarySheetStatus,
    SalaryType,
    sql_in,
)

ZERO = Decimal("0")


def _money(nullable: bool = False, default: Decimal | None = ZERO) -> Any:
    return mapped_column(Numeric(12, 2), nullable=nullable, default=default)


class SalarySetup(Base, TimestampMixin):
    """Per-employee compensation configuration, versioned by effective date."""

    __tablename__ = "salary_setup"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    salary_type: Mapped[str] = mapped_column(String, nullable=False)
    base_salary: Mapped[Decimal | None] = _money(nullable=True, default=None)
    daily_rate: Mapped[Decimal | None] = _money(nullable=True, default=None)
    da: Mapped[Decimal] = _money()
    hra: Mapped[Decimal] = _money()
    conveyance: Mapped[Decimal] = _money()
    other_allowance: Mapped[Decimal] = _money()
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(f"salary_type IN ({sql_in(SalaryType)})", name="salary_setup_type_check"),
    )

    @property
    def total_allowances(self) -> Decimal:
        return (
            (self.da or ZERO)
            + (self.hra or ZERO)
            + (self.conveyance or ZERO)
            + (self.other_allowance or ZERO)
        )


class AdvanceDeduction(Base, TimestampMixin):
    """Advance, loan, fine or other deduction against an employee's pay."""

    __tablename__ = "advance_deduction"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    deduction_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = _money(default=None)
    deduction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=DeductionStatus.PENDING.value
    )
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint(
            f"deduction_type IN ({sql_in(DeductionType)})",
            name="advance_deduction_type_check",
        ),
        CheckConstraint(
            f"status IN ({sql_in(DeductionStatus)})",
            name="advance_deduction_status_check",
        ),
        CheckConstraint("amount >= 0", name="advance_deduction_amount_check"),
    )


class SalarySheet(Base, TimestampMixin):
    """Computed payroll result for one employee for one month."""

    __tablename__ = "salary_sheet"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    branch_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Nullable for legacy rows created before payroll runs existed
    payroll_run_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("payroll_run.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Attendance/leave breakdown
    total_working_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    present_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    absent_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    half_day_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    paid_leave_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=ZERO)
    unpaid_leave_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=ZERO)

    # Earnings
    base_salary: Mapped[Decimal] = _money()
    da: Mapped[Decimal] = _money()
    hra: Mapped[Decimal] = _money()
    conveyance: Mapped[Decimal] = _money()
    other_allowance: Mapped[Decimal] = _money()
    overtime_amount: Mapped[Decimal] = _money()
    incentive_amount: Mapped[Decimal] = _money()
    bonus_amount: Mapped[Decimal] = _money()
    arrears_amount: Mapped[Decimal] = _money()
    total_earnings: Mapped[Decimal] = _money()

    # Deductions
    advance: Mapped[Decimal] = _money()
    loan: Mapped[Decimal] = _money()
    fine: Mapped[Decimal] = _money()
    other_deduction: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()

    net_salary: Mapped[Decimal] = _money()

    status: Mapped[str] = mapped_column(
        String, nullable=False, default=SalarySheetStatus.CALCULATED.value
    )
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    payment_mode: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Integrity metadata (never part of the hashed payload)
    integrity_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    hash_algorithm: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "year", "month", name="salary_sheet_employee_period_unique"),
        CheckConstraint(
            f"status IN ({sql_in(SalarySheetStatus)})",
            name="salary_sheet_status_check",
        ),
        CheckConstraint("month BETWEEN 1 AND 12", name="salary_sheet_month_check"),
    )

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict of financial facts for integrity hashing."""
        return canonical_sheet_payload(self)


SHEET_HASHED_FIELDS: tuple[str, ...] = (
    "payroll_run_id",
    "employee_id",
    "month",
    "year",
    "total_working_days",
    "present_days",
    "absent_days",
    "half_day_count",
    "paid_leave_days",
    "unpaid_leave_days",
    "base_salary",
    "da",
    "hra",
    "conveyance",
    "other_allowance",
    "overtime_amount",
    "incentive_amount",
    "bonus_amount",
    "arrears_amount",
    "total_earnings",
    "advance",
    "loan",
    "fine",
    "other_deduction",
    "total_deductions",
    "net_salary",
    "status",
    "branch_id",
)


def _canonical_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value.quantize(Decimal("0.01")))
    return value


def canonical_sheet_payload(sheet: Any) -> dict[str, Any]:
    """Canonical payload over every financial field of a sheet-like object.

    Works for ORM rows and for plain snapshots exposing the same attributes.
    """
    return {name: _canonical_value(getattr(sheet, name, None)) for name in SHEET_HASHED_FIELDS}
