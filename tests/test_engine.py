"""Tests for the payroll calculation engine."""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll_engine.calculators.engine import (
    PayrollCalculator,
    leave_days_in_month,
    quantize_money,
    split_leave_days,
    sum_deductions,
)
from hr_payroll_engine.errors import EmployeeNotFoundError, SalarySetupMissingError
from hr_payroll_engine.models import AdvanceDeduction, Leave
from hr_payroll_engine.services.attendance_service import AttendanceService
from hr_payroll_engine.services.integrity import hash_payload
from hr_payroll_engine.services.leave_service import LeaveService
from hr_payroll_engine.services.salary_service import SalaryService


async def _approved_leave(session, employee_id, leave_type, start, end, **kwargs):
    service = LeaveService(session)
    leave = await service.apply_leave(employee_id, leave_type, start, end, **kwargs)
    return await service.approve_leave(leave.id, approver=50)


async def _approved_deduction(session, employee_id, deduction_type, amount, on):
    service = SalaryService(session)
    deduction = await service.record_deduction(employee_id, deduction_type, amount, on)
    return await service.approve_deduction(deduction.id, approver=50)


class TestHelpers:
    def test_quantize_rounds_half_up(self):
        assert quantize_money(Decimal("10.005")) == Decimal("10.01")
        assert quantize_money(Decimal("10.004")) == Decimal("10.00")

    def test_leave_inside_month_uses_recorded_days(self):
        leave = Leave(from_date=date(2025, 4, 10), to_date=date(2025, 4, 10), number_of_days=Decimal("0.5"))
        assert leave_days_in_month(leave, 4, 2025) == Decimal("0.5")

    def test_leave_spanning_months_counts_overlap(self):
        leave = Leave(from_date=date(2025, 3, 30), to_date=date(2025, 4, 2), number_of_days=Decimal("4"))
        assert leave_days_in_month(leave, 4, 2025) == Decimal("2")
        assert leave_days_in_month(leave, 3, 2025) == Decimal("2")
        assert leave_days_in_month(leave, 5, 2025) == Decimal("0")

    def test_split_by_entitlement(self):
        leaves = [
            Leave(from_date=date(2025, 4, 1), to_date=date(2025, 4, 2), number_of_days=Decimal("2"), entitlement="Paid"),
            Leave(from_date=date(2025, 4, 7), to_date=date(2025, 4, 7), number_of_days=Decimal("1"), entitlement="Unpaid"),
        ]
        assert split_leave_days(leaves, 4, 2025) == (Decimal("2"), Decimal("1"))

    def test_sum_deductions_per_type(self):
        totals = sum_deductions(
            [
                AdvanceDeduction(deduction_type="Advance", amount=Decimal("100")),
                AdvanceDeduction(deduction_type="Advance", amount=Decimal("50")),
                AdvanceDeduction(deduction_type="Fine", amount=Decimal("20")),
            ]
        )
        assert totals == {
            "Advance": Decimal("150"),
            "Loan": Decimal("0"),
            "Fine": Decimal("20"),
            "Other": Decimal("0"),
        }


class TestMonthlySalary:
    """Monthly setups: base less unpaid leave, plus allowances."""

    async def test_unpaid_leave_is_pro_rated(self, session, employee, make_calendar):
        # Sunday-only weekend: 26 working days in April 2025
        await make_calendar(weekend_days=[6])
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("30000")
        )
        await _approved_leave(session, employee.id, "Loss of Pay", date(2025, 4, 10), date(2025, 4, 11))

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert calc.total_working_days == 26
        assert calc.unpaid_leave_days == Decimal("2")
        assert calc.paid_leave_days == Decimal("0")
        assert calc.base_salary == Decimal("30000.00")
        assert calc.total_earnings == Decimal("27692.31")
        assert calc.net_salary == Decimal("27692.31")
        assert calc.status == "Calculated"
        assert calc.branch_id == employee.branch_id

    async def test_allowances_and_deductions(self, session, employee, make_calendar):
        await make_calendar(weekend_days=[6])
        await SalaryService(session).setup_salary(
            employee.id,
            "Monthly",
            date(2025, 1, 1),
            base_salary=Decimal("30000"),
            da=Decimal("2000"),
            hra=Decimal("3000"),
        )
        await _approved_leave(session, employee.id, "Loss of Pay", date(2025, 4, 10), date(2025, 4, 11))
        await _approved_deduction(session, employee.id, "Advance", Decimal("1000"), date(2025, 4, 15))
        await _approved_deduction(session, employee.id, "Loan", Decimal("500"), date(2025, 4, 20))
        # Ignored: pending, rejected and out-of-month deductions
        salaries = SalaryService(session)
        await salaries.record_deduction(employee.id, "Fine", Decimal("200"), date(2025, 4, 21))
        rejected = await salaries.record_deduction(employee.id, "Other", Decimal("300"), date(2025, 4, 22))
        await salaries.reject_deduction(rejected.id)
        await _approved_deduction(session, employee.id, "Advance", Decimal("700"), date(2025, 5, 2))

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert calc.da == Decimal("2000.00")
        assert calc.hra == Decimal("3000.00")
        assert calc.total_earnings == Decimal("32692.31")
        assert calc.advance == Decimal("1000.00")
        assert calc.loan == Decimal("500.00")
        assert calc.fine == Decimal("0.00")
        assert calc.total_deductions == Decimal("1500.00")
        assert calc.net_salary == Decimal("31192.31")

    async def test_paid_leave_does_not_reduce_pay(self, session, employee):
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("22000")
        )
        await _approved_leave(session, employee.id, "Casual", date(2025, 4, 10), date(2025, 4, 11))

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert calc.paid_leave_days == Decimal("2")
        assert calc.net_salary == Decimal("22000.00")

    async def test_cross_month_unpaid_leave(self, session, employee):
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("22000")
        )
        await _approved_leave(session, employee.id, "Loss of Pay", date(2025, 3, 30), date(2025, 4, 2))

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        # Default weekend: 22 working days, 2 unpaid days in April
        assert calc.unpaid_leave_days == Decimal("2")
        assert calc.net_salary == Decimal("20000.00")

    async def test_zero_working_days_uses_default_divisor(self, session, employee, make_calendar):
        await make_calendar(weekend_days=[0, 1, 2, 3, 4, 5, 6])
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("30000")
        )
        await _approved_leave(session, employee.id, "Loss of Pay", date(2025, 4, 10), date(2025, 4, 11))

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert calc.total_working_days == 0
        assert calc.net_salary == Decimal("28000.00")
        assert [f.policy for f in calc.fallbacks] == ["monthly_working_days"]

    async def test_net_never_negative(self, session, employee):
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("1000")
        )
        await _approved_deduction(session, employee.id, "Loan", Decimal("5000"), date(2025, 4, 5))

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert calc.total_deductions == Decimal("5000.00")
        assert calc.net_salary == Decimal("0.00")

    async def test_latest_setup_wins(self, session, employee):
        salaries = SalaryService(session)
        await salaries.setup_salary(employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("20000"))
        await salaries.setup_salary(employee.id, "Monthly", date(2025, 3, 1), base_salary=Decimal("25000"))

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert calc.base_salary == Decimal("25000.00")


class TestDailySalary:
    async def test_present_plus_paid_leave_times_rate(self, session, employee):
        await SalaryService(session).setup_salary(
            employee.id,
            "Daily",
            date(2025, 1, 1),
            daily_rate=Decimal("1000"),
            da=Decimal("500"),
        )
        attendance = AttendanceService(session)
        for day in (1, 2, 3):
            await attendance.record_attendance(employee.id, date(2025, 4, day), "Present")
        await attendance.record_attendance(employee.id, date(2025, 4, 4), "Half-day")
        await _approved_leave(session, employee.id, "Casual", date(2025, 4, 15), date(2025, 4, 15))

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert calc.present_days == 3
        assert calc.half_day_count == 1
        assert calc.paid_leave_days == Decimal("1")
        assert calc.base_salary == Decimal("4000.00")
        # Daily setups earn no allowances
        assert calc.da == Decimal("0")
        assert calc.total_earnings == Decimal("4000.00")
        assert calc.net_salary == Decimal("4000.00")


class TestCalculationContract:
    async def test_missing_setup(self, session, employee):
        with pytest.raises(SalarySetupMissingError) as exc_info:
            await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)
        assert str(employee.id) in exc_info.value.message

    async def test_unknown_employee(self, session):
        with pytest.raises(EmployeeNotFoundError):
            await PayrollCalculator(session).calculate_monthly_salary(999, 4, 2025)

    async def test_repeat_calculation_is_identical(self, session, employee, make_calendar):
        await make_calendar(weekend_days=[6])
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("30000"), hra=Decimal("1200")
        )
        await _approved_leave(session, employee.id, "Loss of Pay", date(2025, 4, 10), date(2025, 4, 11))
        calculator = PayrollCalculator(session)

        first = await calculator.calculate_monthly_salary(employee.id, 4, 2025)
        second = await calculator.calculate_monthly_salary(employee.id, 4, 2025)

        assert first == second
        assert first.to_canonical_dict() == second.to_canonical_dict()
        assert hash_payload(first.to_canonical_dict()) == hash_payload(second.to_canonical_dict())

    async def test_default_calendar_is_reported(self, session, employee):
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("30000")
        )

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        (fallback,) = calc.fallbacks
        assert fallback.policy == "work_calendar"
        assert fallback.branch_id == 1
        assert calc.total_working_days == 22

    async def test_configured_calendar_reports_no_fallback(self, session, employee, make_calendar):
        await make_calendar()
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("30000")
        )

        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert calc.fallbacks == []
        assert "fallbacks" not in calc.sheet_values()

    async def test_calculation_is_not_attached_to_a_run(self, session, employee):
        await SalaryService(session).setup_salary(
            employee.id, "Monthly", date(2025, 1, 1), base_salary=Decimal("30000")
        )
        calc = await PayrollCalculator(session).calculate_monthly_salary(employee.id, 4, 2025)

        assert "payroll_run_id" not in calc.sheet_values()
        assert calc.to_canonical_dict()["payroll_run_id"] is None

    async def test_monthly_setup_requires_base_salary(self, session, employee):
        with pytest.raises(ValueError):
            await SalaryService(session).setup_salary(employee.id, "Monthly", date(2025, 1, 1))
