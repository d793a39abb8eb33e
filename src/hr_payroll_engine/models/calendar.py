"""Work calendar policy models."""

from __future__ import annotations

from datetime import date

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll_engine.models.base import Base, TimestampMixin


class WorkCalendar(Base, TimestampMixin):
    """Branch (optionally site) working calendar.

    ``weekend_days`` uses the ``date.weekday()`` numbering: Monday=0 ... Sunday=6.
    """

    __tablename__ = "work_calendar"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    branch_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    site_id: Mapped[str | None] = mapped_column(String, nullable=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    weekend_days: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="work_calendar_dates_check",
        ),
    )

    def covers(self, as_of: date) -> bool:
        """Check if the calendar is effective on a given date."""
        if self.effective_from > as_of:
            return False
        if self.effective_to is not None and self.effective_to < as_of:
            return False
        return True


class WorkCalendarHoliday(Base, TimestampMixin):
    """Holiday entry, or a working-day override when the flag is set."""

    __tablename__ = "work_calendar_holiday"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    calendar_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("work_calendar.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    is_working_day_override: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    __table_args__ = (
        UniqueConstraint("calendar_id", "holiday_date", name="work_calendar_holiday_unique"),
    )
