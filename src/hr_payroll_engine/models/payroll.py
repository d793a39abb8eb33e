"""Payroll run and audit trail models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll_engine.models.base import Base, TimestampMixin, now_naive
from hr_payroll_engine.models.enums import PayrollRunStatus, sql_in


class PayrollRun(Base, TimestampMixin):
    """Batch of salary sheets for one branch/month/year."""

    __tablename__ = "payroll_run"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 0 stands for "no branch"
    branch_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    site_id: Mapped[str | None] = mapped_column(String, nullable=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=PayrollRunStatus.DRAFT.value
    )
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_net_pay: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    generated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_naive)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    locked_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    paid_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("branch_id", "year", "month", name="payroll_run_branch_period_unique"),
        CheckConstraint(
            f"status IN ({sql_in(PayrollRunStatus)})",
            name="payroll_run_status_check",
        ),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_run_month_check"),
    )

    @property
    def run_key(self) -> tuple[int, int, int]:
        return (self.branch_id, self.year, self.month)


class AuditLogEntry(Base):
    """Append-only audit trail entry."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module: Mapped[str] = mapped_column(String, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=now_naive)
