"""Error taxonomy for the HR engine.

Every error carries a human-readable message naming the offending entity and
its current state; callers surface it verbatim. ``code`` is a stable
machine-readable tag used by the API layer.
"""

from __future__ import annotations

from datetime import date
from typing import Any


class HRError(Exception):
    """Base class for all recoverable HR engine errors."""

    code = "HR_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RecordNotFoundError(HRError):
    """Raised when a referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class EmployeeNotFoundError(RecordNotFoundError):
    """Raised when the employee directory has no such employee."""

    def __init__(self, employee_id: int):
        super().__init__("Employee", employee_id)


# ===== Attendance =====


class DuplicateAttendanceError(HRError):
    """Raised when an attendance row already exists for (employee, date)."""

    code = "DUPLICATE_ATTENDANCE"

    def __init__(self, employee_id: int, attendance_date: date, message: str | None = None):
        self.employee_id = employee_id
        self.attendance_date = attendance_date
        super().__init__(
            message
            or f"Attendance for employee {employee_id} on {attendance_date.isoformat()} already exists"
        )


class DuplicateCheckInError(DuplicateAttendanceError):
    """Raised on a second check-in for the same employee and day."""

    code = "DUPLICATE_CHECK_IN"

    def __init__(self, employee_id: int, attendance_date: date):
        super().__init__(
            employee_id,
            attendance_date,
            f"Employee {employee_id} already checked in on {attendance_date.isoformat()}",
        )


class NoOpenCheckInError(HRError):
    """Raised on check-out without an open check-in for the day."""

    code = "NO_OPEN_CHECK_IN"

    def __init__(self, employee_id: int, attendance_date: date):
        self.employee_id = employee_id
        self.attendance_date = attendance_date
        super().__init__(
            f"No open check-in found for employee {employee_id} on {attendance_date.isoformat()}"
        )


# ===== Locked records (one kind per guard) =====


class LockedRecordError(HRError):
    """Raised when a record's state forbids the requested mutation."""

    code = "LOCKED_RECORD"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        status: str,
        action: str,
        message: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.status = status
        self.action = action
        super().__init__(
            message or f"Cannot {action}: {entity_type} {entity_id} is {status}"
        )


class AttendanceLockedError(LockedRecordError):
    """Attendance row carries approval markers."""

    code = "ATTENDANCE_LOCKED"

    def __init__(self, record_id: Any, action: str):
        super().__init__("attendance record", record_id, "Approved", action)


class SalarySheetLockedError(LockedRecordError):
    """Salary sheet is past Calculated."""

    code = "SALARY_SHEET_LOCKED"

    def __init__(self, sheet_id: Any, status: str, action: str):
        super().__init__("salary sheet", sheet_id, status, action)


class SalarySheetNotPayableError(LockedRecordError):
    """Salary sheet is not Approved and cannot be paid."""

    code = "SALARY_SHEET_NOT_PAYABLE"

    def __init__(self, sheet_id: Any, status: str):
        super().__init__(
            "salary sheet",
            sheet_id,
            status,
            "mark salary sheet paid",
            f"Salary sheet {sheet_id} must be Approved before marking as Paid (current: {status})",
        )


class PayrollRunLockedError(LockedRecordError):
    """Payroll run is Locked, Paid or Archived."""

    code = "PAYROLL_RUN_LOCKED"

    def __init__(self, run_id: Any, status: str, action: str):
        super().__init__("payroll run", run_id, status, action)


class PayrollRunNotLockableError(LockedRecordError):
    """Payroll run cannot be locked in its current state."""

    code = "PAYROLL_RUN_NOT_LOCKABLE"

    def __init__(self, run_id: Any, status: str, detail: str | None = None):
        message = f"Cannot lock payroll run {run_id} in status {status}"
        if detail:
            message += f": {detail}"
        super().__init__("payroll run", run_id, status, "lock payroll run", message)


# ===== Leave =====


class InvalidLeaveTransitionError(HRError):
    """Raised when a leave status change is attempted from a terminal state."""

    code = "INVALID_LEAVE_TRANSITION"

    def __init__(self, leave_id: Any, from_status: str, to_status: str):
        self.leave_id = leave_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot change leave {leave_id} status from {from_status} to {to_status}"
        )


class LeaveAlreadyStartedError(HRError):
    """Raised when cancelling a leave whose start date has passed."""

    code = "LEAVE_ALREADY_STARTED"

    def __init__(self, leave_id: Any, from_date: date):
        self.leave_id = leave_id
        self.from_date = from_date
        super().__init__(
            f"Cannot cancel leave {leave_id}: it already started on {from_date.isoformat()}"
        )


# ===== Payroll =====


class SalarySetupMissingError(HRError):
    """Raised when an employee has no active salary setup."""

    code = "SALARY_SETUP_MISSING"

    def __init__(self, employee_id: int):
        self.employee_id = employee_id
        super().__init__(f"Salary setup not configured for employee {employee_id}")


class InvalidTransitionError(HRError):
    """Raised when a state machine transition is not in the transition table."""

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        from_status: str,
        to_status: str,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid {entity_type} transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class DuplicatePayrollRunError(HRError):
    """Raised when a payroll run already exists for (branch, year, month)."""

    code = "DUPLICATE_PAYROLL_RUN"

    def __init__(self, branch_id: int, year: int, month: int):
        self.branch_id = branch_id
        self.year = year
        self.month = month
        super().__init__(
            f"Payroll run already exists for branch {branch_id}, {year}-{month:02d}"
        )
