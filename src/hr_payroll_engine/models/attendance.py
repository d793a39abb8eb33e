"""Attendance ledger model."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll_engine.models.base import Base, TimestampMixin
from hr_payroll_engine.models.enums import AttendanceStatus, sql_in


class AttendanceRecord(Base, TimestampMixin):
    """One attendance row per employee per calendar day."""

    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    working_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    site_id: Mapped[str | None] = mapped_column(String, nullable=True)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Approval markers: presence of either locks the row
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "attendance_date", name="attendance_employee_date_unique"),
        CheckConstraint(f"status IN ({sql_in(AttendanceStatus)})", name="attendance_status_check"),
        CheckConstraint(
            "working_hours IS NULL OR working_hours >= 0",
            name="attendance_working_hours_check",
        ),
    )

    @property
    def is_locked(self) -> bool:
        """Check if approval markers are set."""
        return self.approved_by is not None or self.approved_at is not None

    @property
    def is_open(self) -> bool:
        """Checked in but not yet checked out."""
        return self.check_in_time is not None and self.check_out_time is None
