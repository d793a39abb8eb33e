"""Tests for the mutation guards."""

from datetime import date, datetime

import pytest

from hr_payroll_engine.errors import (
    AttendanceLockedError,
    InvalidLeaveTransitionError,
    LockedRecordError,
    PayrollRunLockedError,
    PayrollRunNotLockableError,
    SalarySheetLockedError,
    SalarySheetNotPayableError,
)
from hr_payroll_engine.models import AttendanceRecord, Leave, PayrollRun, SalarySheet
from hr_payroll_engine.services.guards import (
    assert_attendance_mutable,
    assert_leave_status_change_allowed,
    assert_payroll_run_lockable,
    assert_payroll_run_mutable,
    assert_salary_sheet_mutable,
    assert_salary_sheet_payable,
)


def _sheet(status: str) -> SalarySheet:
    return SalarySheet(id=11, employee_id=1, month=4, year=2025, status=status)


def _run(status: str) -> PayrollRun:
    return PayrollRun(id=3, branch_id=1, month=4, year=2025, status=status)


class TestSalarySheetGuards:
    def test_calculated_sheet_is_mutable(self):
        assert_salary_sheet_mutable(_sheet("Calculated"), "update salary sheet")

    @pytest.mark.parametrize("status", ["Approved", "Paid"])
    def test_finalised_sheet_rejects_mutation(self, status):
        with pytest.raises(SalarySheetLockedError) as exc_info:
            assert_salary_sheet_mutable(_sheet(status), "update salary sheet")

        assert isinstance(exc_info.value, LockedRecordError)
        assert status in exc_info.value.message
        assert "salary sheet 11" in exc_info.value.message

    def test_only_approved_sheet_is_payable(self):
        assert_salary_sheet_payable(_sheet("Approved"))

        with pytest.raises(SalarySheetNotPayableError) as exc_info:
            assert_salary_sheet_payable(_sheet("Calculated"))
        assert "must be Approved" in exc_info.value.message
        assert "Calculated" in exc_info.value.message


class TestPayrollRunGuards:
    @pytest.mark.parametrize("status", ["Draft", "Reviewed"])
    def test_open_run_is_mutable(self, status):
        assert_payroll_run_mutable(_run(status), "regenerate salary sheet")

    @pytest.mark.parametrize("status", ["Locked", "Paid", "Archived"])
    def test_closed_run_rejects_mutation(self, status):
        with pytest.raises(PayrollRunLockedError) as exc_info:
            assert_payroll_run_mutable(_run(status), "regenerate salary sheet")
        assert status in exc_info.value.message

    @pytest.mark.parametrize("status", ["Paid", "Archived"])
    def test_paid_or_archived_run_is_not_lockable(self, status):
        with pytest.raises(PayrollRunNotLockableError):
            assert_payroll_run_lockable(_run(status))

    def test_draft_run_is_lockable(self):
        assert_payroll_run_lockable(_run("Draft"))


class TestAttendanceGuard:
    def test_unapproved_record_is_mutable(self):
        record = AttendanceRecord(id=5, employee_id=1, attendance_date=date(2025, 4, 1), status="Present")
        assert_attendance_mutable(record, "update attendance")

    def test_either_marker_locks_the_record(self):
        by_approver = AttendanceRecord(id=5, status="Present", approved_by=9)
        by_timestamp = AttendanceRecord(id=6, status="Present", approved_at=datetime(2025, 4, 2, 10, 0))

        with pytest.raises(AttendanceLockedError):
            assert_attendance_mutable(by_approver, "update attendance")
        with pytest.raises(AttendanceLockedError):
            assert_attendance_mutable(by_timestamp, "update attendance")


class TestLeaveGuard:
    def test_applied_leave_can_be_decided(self):
        leave = Leave(id=2, status="Applied")
        assert_leave_status_change_allowed(leave, "Approved")

    def test_decided_leave_cannot_change(self):
        leave = Leave(id=2, status="Rejected")
        with pytest.raises(InvalidLeaveTransitionError) as exc_info:
            assert_leave_status_change_allowed(leave, "Approved")

        assert exc_info.value.from_status == "Rejected"
        assert exc_info.value.to_status == "Approved"
