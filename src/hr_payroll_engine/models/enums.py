"""Status and type vocabularies shared by models, services and the API.

Values are the persisted strings.
"""

from __future__ import annotations

from enum import Enum


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    HALF_DAY = "Half-day"
    LEAVE = "Leave"


class LeaveType(str, Enum):
    CASUAL = "Casual"
    SICK = "Sick"
    EARNED = "Earned"
    LOSS_OF_PAY = "Loss of Pay"


class LeaveEntitlement(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"


class LeaveStatus(str, Enum):
    APPLIED = "Applied"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class SalaryType(str, Enum):
    MONTHLY = "Monthly"
    DAILY = "Daily"


class DeductionType(str, Enum):
    ADVANCE = "Advance"
    LOAN = "Loan"
    FINE = "Fine"
    OTHER = "Other"


class DeductionStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class SalarySheetStatus(str, Enum):
    CALCULATED = "Calculated"
    APPROVED = "Approved"
    PAID = "Paid"


class PaymentMode(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CHEQUE = "Cheque"


class PayrollRunStatus(str, Enum):
    DRAFT = "Draft"
    REVIEWED = "Reviewed"
    LOCKED = "Locked"
    PAID = "Paid"
    ARCHIVED = "Archived"


class AuditAction(str, Enum):
    CREATE = "Create"
    UPDATE = "Update"
    APPROVE = "Approve"
    REJECT = "Reject"
    CANCEL = "Cancel"
    ERROR = "Error"


def sql_in(enum_cls: type[Enum]) -> str:
    """Render an enum as a SQL ``IN`` list for check constraints."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
