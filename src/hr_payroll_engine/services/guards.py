"""Guard layer: invariant checks consulted before every mutating operation.

Guards never swallow a violation; each raises its own error kind whose
message names the entity and its current state.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from hr_payroll_engine.errors import (
    AttendanceLockedError,
    InvalidLeaveTransitionError,
    PayrollRunLockedError,
    PayrollRunNotLockableError,
    SalarySheetLockedError,
    SalarySheetNotPayableError,
)
from hr_payroll_engine.services.state_machine import (
    AttendanceLockStateMachine,
    LeaveStateMachine,
    PayrollRunStateMachine,
    SalarySheetStateMachine,
)

if TYPE_CHECKING:
    from hr_payroll_engine.models import AttendanceRecord, Leave, PayrollRun, SalarySheet


def assert_salary_sheet_mutable(sheet: SalarySheet, action: str) -> None:
    """Salary sheet is mutable only while Calculated."""
    if not SalarySheetStateMachine.is_mutable(sheet.status):
        raise SalarySheetLockedError(sheet.id, sheet.status, action)


def assert_salary_sheet_payable(sheet: SalarySheet) -> None:
    """Salary sheet may be paid only from Approved."""
    if not SalarySheetStateMachine.is_payable(sheet.status):
        raise SalarySheetNotPayableError(sheet.id, sheet.status)


def assert_payroll_run_mutable(run: PayrollRun, action: str) -> None:
    """Payroll run is mutable only while Draft or Reviewed."""
    if not PayrollRunStateMachine.is_mutable(run.status):
        raise PayrollRunLockedError(run.id, run.status, action)


def assert_payroll_run_lockable(run: PayrollRun) -> None:
    """Payroll run can be locked unless already Paid or Archived."""
    if not PayrollRunStateMachine.is_lockable(run.status):
        raise PayrollRunNotLockableError(run.id, run.status)


def assert_attendance_mutable(record: AttendanceRecord, action: str) -> None:
    """Attendance is mutable only while unapproved."""
    state = AttendanceLockStateMachine.state_of(record.approved_by, record.approved_at)
    if not AttendanceLockStateMachine.is_mutable(state):
        raise AttendanceLockedError(record.id, action)


def assert_leave_status_change_allowed(leave: Leave, next_status: str | Enum) -> None:
    """Leave status may change only from Applied."""
    target = next_status.value if isinstance(next_status, Enum) else next_status
    if not LeaveStateMachine.can_transition(leave.status, target):
        raise InvalidLeaveTransitionError(leave.id, leave.status, target)
