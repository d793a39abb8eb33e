"""Type definitions for the policy and calculation pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from hr_payroll_engine.models.enums import SalarySheetStatus
from hr_payroll_engine.models.salary import canonical_sheet_payload

ZERO = Decimal("0")

# Monday=0 ... Sunday=6, as returned by date.weekday()
DEFAULT_WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})


@dataclass(frozen=True)
class PolicyResolutionFallback:
    """Marker recorded when no configured policy matched and a default was used."""

    policy: str
    reason: str
    branch_id: int | None = None
    site_id: str | None = None


@dataclass(frozen=True)
class ResolvedCalendar:
    """Immutable snapshot of the calendar that governs a month."""

    calendar_id: int | None
    weekend_days: frozenset[int]
    holidays: frozenset[date] = frozenset()
    working_day_overrides: frozenset[date] = frozenset()
    fallback: PolicyResolutionFallback | None = None

    def is_working_day(self, day: date) -> bool:
        """Override OR (not weekend AND not holiday)."""
        if day in self.working_day_overrides:
            return True
        return day.weekday() not in self.weekend_days and day not in self.holidays


@dataclass(frozen=True)
class CalendarCandidate:
    """Plain-data view of a stored work calendar."""

    id: int
    branch_id: int
    site_id: str | None
    effective_from: date
    effective_to: date | None = None
    weekend_days: tuple[int, ...] = (5, 6)
    is_active: bool = True


@dataclass(frozen=True)
class HolidayEntry:
    holiday_date: date
    is_working_day_override: bool = False


@dataclass(frozen=True)
class EntitlementCandidate:
    """Plain-data view of a stored leave entitlement row."""

    id: int
    leave_type: str
    year: int
    total_days: Decimal
    branch_id: int | None = None
    category: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class ResolvedEntitlement:
    leave_type: str
    year: int
    total_days: Decimal
    entitlement_id: int | None = None
    fallback: PolicyResolutionFallback | None = None


@dataclass(frozen=True)
class LeaveBalance:
    """Leave balance for one employee, leave type and year."""

    employee_id: int
    leave_type: str
    year: int
    total: Decimal
    used: Decimal
    available: Decimal
    fallback: PolicyResolutionFallback | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AttendanceSummary:
    """Monthly attendance counts for one employee."""

    employee_id: int
    month: int
    year: int
    total_working_days: int
    present_days: int = 0
    absent_days: int = 0
    half_days: int = 0
    leave_days: int = 0
    total_working_hours: float = 0.0
    fallback: PolicyResolutionFallback | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SalaryCalculation:
    """Unsaved salary computation for one employee and month.

    Carries no timestamps so two calculations over unchanged ledgers are equal.
    """

    employee_id: int
    month: int
    year: int
    branch_id: int = 0

    total_working_days: int = 0
    present_days: int = 0
    absent_days: int = 0
    half_day_count: int = 0
    paid_leave_days: Decimal = ZERO
    unpaid_leave_days: Decimal = ZERO

    base_salary: Decimal = ZERO
    da: Decimal = ZERO
    hra: Decimal = ZERO
    conveyance: Decimal = ZERO
    other_allowance: Decimal = ZERO
    overtime_amount: Decimal = ZERO
    incentive_amount: Decimal = ZERO
    bonus_amount: Decimal = ZERO
    arrears_amount: Decimal = ZERO
    total_earnings: Decimal = ZERO

    advance: Decimal = ZERO
    loan: Decimal = ZERO
    fine: Decimal = ZERO
    other_deduction: Decimal = ZERO
    total_deductions: Decimal = ZERO

    net_salary: Decimal = ZERO
    status: str = SalarySheetStatus.CALCULATED.value
    payroll_run_id: int | None = None

    # Policy fallbacks hit while computing (not part of the canonical payload)
    fallbacks: list[PolicyResolutionFallback] = field(default_factory=list, compare=False)

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (same shape as a persisted sheet)."""
        return canonical_sheet_payload(self)

    def sheet_values(self) -> dict[str, Any]:
        """Column values to apply to a SalarySheet row."""
        values = asdict(self)
        values.pop("fallbacks")
        values.pop("payroll_run_id")
        return values
