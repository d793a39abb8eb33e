"""HR engine services.

``PayrollRunService`` is imported from its module directly; it depends on the
calculation engine, which itself builds on the ledger services exported here.
"""

from hr_payroll_engine.services.attendance_service import AttendanceService
from hr_payroll_engine.services.audit_service import AuditTrail
from hr_payroll_engine.services.employee_directory import EmployeeDirectory
from hr_payroll_engine.services.leave_service import LeaveService
from hr_payroll_engine.services.salary_service import SalaryService
from hr_payroll_engine.services.state_machine import (
    AttendanceLockStateMachine,
    LeaveStateMachine,
    PayrollRunStateMachine,
    SalarySheetStateMachine,
)

__all__ = [
    "AttendanceService",
    "AuditTrail",
    "EmployeeDirectory",
    "LeaveService",
    "SalaryService",
    "AttendanceLockStateMachine",
    "LeaveStateMachine",
    "PayrollRunStateMachine",
    "SalarySheetStateMachine",
]
