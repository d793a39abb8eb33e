"""Employee directory model (read-only collaborator of the HR engine)."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll_engine.models.base import Base, TimestampMixin
from hr_payroll_engine.models.enums import EmployeeStatus, sql_in


class Employee(Base, TimestampMixin):
    """Employee record."""

    __tablename__ = "employee"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    branch_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_site: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=EmployeeStatus.ACTIVE.value
    )

    __table_args__ = (
        CheckConstraint(f"status IN ({sql_in(EmployeeStatus)})", name="employee_status_check"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == EmployeeStatus.ACTIVE.value
