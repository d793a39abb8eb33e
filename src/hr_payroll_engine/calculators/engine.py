"""Payroll calculation engine - monthly salary for one employee."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.calculators.policy_resolver import month_bounds
from hr_payroll_engine.calculators.types import PolicyResolutionFallback, SalaryCalculation
from hr_payroll_engine.config import get_settings
from hr_payroll_engine.errors import SalarySetupMissingError
from hr_payroll_engine.models import AdvanceDeduction, Leave, SalarySetup
from hr_payroll_engine.models.enums import DeductionType, LeaveEntitlement, SalaryType
from hr_payroll_engine.services.attendance_service import AttendanceService
from hr_payroll_engine.services.employee_directory import EmployeeDirectory
from hr_payroll_engine.services.leave_service import LeaveService
from hr_payroll_engine.services.salary_service import SalaryService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def leave_days_in_month(leave: Leave, month: int, year: int) -> Decimal:
    """Days of a leave that fall in a month.

    A leave wholly inside the month counts its recorded ``number_of_days``;
    a leave spanning months counts its calendar-day overlap with the month.
    """
    first, last = month_bounds(month, year)
    if leave.from_date >= first and leave.to_date <= last:
        return Decimal(leave.number_of_days)
    start = max(leave.from_date, first)
    end = min(leave.to_date, last)
    if end < start:
        return ZERO
    return Decimal((end - start).days + 1)


def split_leave_days(leaves: list[Leave], month: int, year: int) -> tuple[Decimal, Decimal]:
    """Sum (paid, unpaid) leave days in a month by entitlement."""
    paid = ZERO
    unpaid = ZERO
    for leave in leaves:
        days = leave_days_in_month(leave, month, year)
        if leave.entitlement == LeaveEntitlement.UNPAID.value:
            unpaid += days
        else:
            paid += days
    return paid, unpaid


def sum_deductions(deductions: list[AdvanceDeduction]) -> dict[str, Decimal]:
    """Approved deduction amounts summed per type."""
    totals = {member.value: ZERO for member in DeductionType}
    for deduction in deductions:
        key = deduction.deduction_type if deduction.deduction_type in totals else DeductionType.OTHER.value
        totals[key] += Decimal(deduction.amount)
    return totals


class PayrollCalculator:
    """Computes an unsaved salary calculation for one employee and month.

    Calculation pipeline:
    1) Latest active salary setup
    2) Attendance summary (working days from the policy resolver)
    3) Approved leaves overlapping the month, split paid/unpaid
    4) Approved deductions dated in the month, per type
    5) Earnings by salary type
    6) Net = max(0, earnings - deductions), rounded half-up to cents
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = EmployeeDirectory(session)
        self.attendance = AttendanceService(session)
        self.leaves = LeaveService(session)
        self.salaries = SalaryService(session)
        self.settings = get_settings()

    async def calculate_monthly_salary(
        self,
        employee_id: int,
        month: int,
        year: int,
    ) -> SalaryCalculation:
        """Calculate the month's salary without persisting anything.

        Raises:
            EmployeeNotFoundError: If the employee does not exist
            SalarySetupMissingError: If no active salary setup exists
        """
        employee = await self.directory.get_employee(employee_id)

        setup = await self.salaries.get_salary_setup(employee_id)
        if setup is None:
            raise SalarySetupMissingError(employee_id)

        summary = await self.attendance.get_attendance_summary(employee_id, month, year)

        first, last = month_bounds(month, year)
        leaves = await self.leaves.get_approved_leaves_in_range(employee_id, first, last)
        paid_leave_days, unpaid_leave_days = split_leave_days(leaves, month, year)

        deductions = sum_deductions(
            await self.salaries.get_approved_deductions(employee_id, month, year)
        )

        calc = SalaryCalculation(
            employee_id=employee_id,
            month=month,
            year=year,
            branch_id=employee.branch_id or 0,
            total_working_days=summary.total_working_days,
            present_days=summary.present_days,
            absent_days=summary.absent_days,
            half_day_count=summary.half_days,
            paid_leave_days=paid_leave_days,
            unpaid_leave_days=unpaid_leave_days,
        )
        if summary.fallback is not None:
            calc.fallbacks.append(summary.fallback)

        self._apply_earnings(calc, setup, summary.total_working_days)

        calc.advance = quantize_money(deductions[DeductionType.ADVANCE.value])
        calc.loan = quantize_money(deductions[DeductionType.LOAN.value])
        calc.fine = quantize_money(deductions[DeductionType.FINE.value])
        calc.other_deduction = quantize_money(deductions[DeductionType.OTHER.value])
        calc.total_deductions = calc.advance + calc.loan + calc.fine + calc.other_deduction

        calc.net_salary = quantize_money(max(ZERO, calc.total_earnings - calc.total_deductions))

        logger.debug(
            "Calculated salary for employee %s %04d-%02d: earnings=%s deductions=%s net=%s",
            employee_id,
            year,
            month,
            calc.total_earnings,
            calc.total_deductions,
            calc.net_salary,
        )
        return calc

    def _apply_earnings(
        self,
        calc: SalaryCalculation,
        setup: SalarySetup,
        total_working_days: int,
    ) -> None:
        if setup.salary_type == SalaryType.MONTHLY.value:
            base = Decimal(setup.base_salary or ZERO)
            earnings = base
            if calc.unpaid_leave_days > 0:
                working_days = total_working_days
                if not working_days:
                    working_days = self.settings.default_monthly_working_days
                    calc.fallbacks.append(
                        PolicyResolutionFallback(
                            policy="monthly_working_days",
                            reason=f"no working days in the month; pro-rating over {working_days} days",
                            branch_id=calc.branch_id,
                        )
                    )
                earnings -= calc.unpaid_leave_days * (base / Decimal(working_days))

            calc.base_salary = quantize_money(base)
            calc.da = quantize_money(Decimal(setup.da or ZERO))
            calc.hra = quantize_money(Decimal(setup.hra or ZERO))
            calc.conveyance = quantize_money(Decimal(setup.conveyance or ZERO))
            calc.other_allowance = quantize_money(Decimal(setup.other_allowance or ZERO))
            calc.total_earnings = quantize_money(earnings + setup.total_allowances)
            return

        # Daily: paid for days present plus paid leave, no allowances
        rate = Decimal(setup.daily_rate or ZERO)
        base = (Decimal(calc.present_days) + calc.paid_leave_days) * rate
        calc.base_salary = quantize_money(base)
        calc.total_earnings = calc.base_salary
