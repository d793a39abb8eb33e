"""Policy resolution and calculation types.

The calculation engine lives in ``hr_payroll_engine.calculators.engine``; it
depends on the ledger services, which in turn import the resolver from here.
"""

from hr_payroll_engine.calculators.policy_resolver import (
    PolicyResolver,
    count_working_days,
    select_calendar,
    select_entitlement,
)
from hr_payroll_engine.calculators.types import (
    AttendanceSummary,
    LeaveBalance,
    PolicyResolutionFallback,
    ResolvedCalendar,
    ResolvedEntitlement,
    SalaryCalculation,
)

__all__ = [
    "PolicyResolver",
    "count_working_days",
    "select_calendar",
    "select_entitlement",
    "AttendanceSummary",
    "LeaveBalance",
    "PolicyResolutionFallback",
    "ResolvedCalendar",
    "ResolvedEntitlement",
    "SalaryCalculation",
]
