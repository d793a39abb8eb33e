"""ORM models for the HR engine."""

from hr_payroll_engine.models.base import Base, TimestampMixin, now_naive
from hr_payroll_engine.models.employee import Employee
from hr_payroll_engine.models.attendance import AttendanceRecord
from hr_payroll_engine.models.leave import Leave, LeavePolicyEntitlement
from hr_payroll_engine.models.calendar import WorkCalendar, WorkCalendarHoliday
from hr_payroll_engine.models.salary import (
    AdvanceDeduction,
    SalarySetup,
    SalarySheet,
    canonical_sheet_payload,
)
from hr_payroll_engine.models.payroll import AuditLogEntry, PayrollRun

__all__ = [
    "Base",
    "TimestampMixin",
    "now_naive",
    "Employee",
    "AttendanceRecord",
    "Leave",
    "LeavePolicyEntitlement",
    "WorkCalendar",
    "WorkCalendarHoliday",
    "AdvanceDeduction",
    "SalarySetup",
    "SalarySheet",
    "canonical_sheet_payload",
    "AuditLogEntry",
    "PayrollRun",
]
