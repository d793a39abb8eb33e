"""Leave ledger and leave policy models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll_engine.models.base import Base, TimestampMixin
from hr_payroll_engine.models.enums import (
    LeaveEntitlement,
    LeaveStatus,
    LeaveType,
    sql_in,
)


class Leave(Base, TimestampMixin):
    """Leave application."""

    __tablename__ = "leave_application"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type: Mapped[str] = mapped_column(String, nullable=False)
    from_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    number_of_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    entitlement: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=LeaveStatus.APPLIED.value
    )

    applied_on: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    applied_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    approval_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint(f"leave_type IN ({sql_in(LeaveType)})", name="leave_type_check"),
        CheckConstraint(f"entitlement IN ({sql_in(LeaveEntitlement)})", name="leave_entitlement_check"),
        CheckConstraint(f"status IN ({sql_in(LeaveStatus)})", name="leave_status_check"),
        CheckConstraint("to_date >= from_date", name="leave_dates_check"),
        CheckConstraint("number_of_days >= 0", name="leave_days_check"),
    )

    def overlaps(self, start: date, end: date) -> bool:
        """Check if the leave range intersects [start, end]."""
        return self.from_date <= end and self.to_date >= start


class LeavePolicyEntitlement(Base, TimestampMixin):
    """Days allotted per leave type and year, optionally scoped to branch/category."""

    __tablename__ = "leave_policy_entitlement"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    leave_type: Mapped[str] = mapped_column(String, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    total_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            f"leave_type IN ({sql_in(LeaveType)})",
            name="leave_policy_type_check",
        ),
        CheckConstraint("total_days >= 0", name="leave_policy_days_check"),
    )
