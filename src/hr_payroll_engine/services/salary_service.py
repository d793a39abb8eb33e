"""Salary setup registry and advance deductions."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.calculators.policy_resolver import month_bounds
from hr_payroll_engine.errors import InvalidTransitionError, RecordNotFoundError
from hr_payroll_engine.models import AdvanceDeduction, SalarySetup, now_naive
from hr_payroll_engine.models.enums import (
    AuditAction,
    DeductionStatus,
    DeductionType,
    SalaryType,
)
from hr_payroll_engine.services.audit_service import AuditTrail
from hr_payroll_engine.services.employee_directory import EmployeeDirectory


def _money(value: Decimal | float | int | str | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


class SalaryService:
    """Per-employee compensation setups and deductions against pay."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = EmployeeDirectory(session)
        self.audit = AuditTrail(session)

    async def setup_salary(
        self,
        employee_id: int,
        salary_type: str | SalaryType,
        effective_date: date,
        *,
        base_salary: Decimal | float | None = None,
        daily_rate: Decimal | float | None = None,
        da: Decimal | float = 0,
        hra: Decimal | float = 0,
        conveyance: Decimal | float = 0,
        other_allowance: Decimal | float = 0,
        actor: int | None = None,
    ) -> SalarySetup:
        """Register a new active setup. Earlier setups stay for history."""
        salary_type = SalaryType(salary_type).value
        if salary_type == SalaryType.MONTHLY.value and base_salary is None:
            raise ValueError("Monthly salary setup requires base_salary")
        if salary_type == SalaryType.DAILY.value and daily_rate is None:
            raise ValueError("Daily salary setup requires daily_rate")

        employee = await self.directory.get_employee(employee_id)

        setup = SalarySetup(
            employee_id=employee_id,
            salary_type=salary_type,
            base_salary=_money(base_salary),
            daily_rate=_money(daily_rate),
            da=_money(da),
            hra=_money(hra),
            conveyance=_money(conveyance),
            other_allowance=_money(other_allowance),
            effective_date=effective_date,
            is_active=True,
        )
        self.session.add(setup)
        await self.session.flush()

        await self.audit.log_event(
            "hr.salarySetup",
            AuditAction.CREATE,
            entity_type="SalarySetup",
            entity_id=setup.id,
            new_value=setup,
            actor=actor,
            branch_id=employee.branch_id,
        )
        return setup

    async def get_salary_setup(self, employee_id: int) -> SalarySetup | None:
        """Active setup with the latest effective date."""
        result = await self.session.execute(
            select(SalarySetup)
            .where(
                SalarySetup.employee_id == employee_id,
                SalarySetup.is_active.is_(True),
            )
            .order_by(SalarySetup.effective_date.desc(), SalarySetup.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def record_deduction(
        self,
        employee_id: int,
        deduction_type: str | DeductionType,
        amount: Decimal | float,
        deduction_date: date,
        *,
        description: str | None = None,
        branch_id: int | None = None,
        actor: int | None = None,
    ) -> AdvanceDeduction:
        """Record a Pending deduction."""
        amount = _money(amount)
        if amount < 0:
            raise ValueError("Deduction amount cannot be negative")

        deduction = AdvanceDeduction(
            employee_id=employee_id,
            deduction_type=DeductionType(deduction_type).value,
            amount=amount,
            deduction_date=deduction_date,
            description=description,
            status=DeductionStatus.PENDING.value,
            branch_id=branch_id,
        )
        self.session.add(deduction)
        await self.session.flush()

        await self.audit.log_event(
            "hr.deduction",
            AuditAction.CREATE,
            entity_type="AdvanceDeduction",
            entity_id=deduction.id,
            new_value=deduction,
            actor=actor,
            branch_id=branch_id,
        )
        return deduction

    async def _decide_deduction(
        self,
        deduction_id: int,
        status: DeductionStatus,
        action: AuditAction,
        actor: int | None,
    ) -> AdvanceDeduction:
        deduction = await self.session.get(AdvanceDeduction, deduction_id)
        if deduction is None:
            raise RecordNotFoundError("Advance deduction", deduction_id)
        if deduction.status != DeductionStatus.PENDING.value:
            raise InvalidTransitionError("deduction", deduction.status, status.value)

        old_value = deduction.to_snapshot()
        deduction.status = status.value
        if status == DeductionStatus.APPROVED:
            deduction.approved_by = actor
        deduction.updated_at = now_naive()
        await self.session.flush()

        await self.audit.log_event(
            "hr.deduction",
            action,
            entity_type="AdvanceDeduction",
            entity_id=deduction.id,
            old_value=old_value,
            new_value=deduction,
            actor=actor,
            branch_id=deduction.branch_id,
        )
        return deduction

    async def approve_deduction(self, deduction_id: int, approver: int) -> AdvanceDeduction:
        return await self._decide_deduction(
            deduction_id, DeductionStatus.APPROVED, AuditAction.APPROVE, approver
        )

    async def reject_deduction(self, deduction_id: int, actor: int | None = None) -> AdvanceDeduction:
        return await self._decide_deduction(
            deduction_id, DeductionStatus.REJECTED, AuditAction.REJECT, actor
        )

    async def get_approved_deductions(
        self,
        employee_id: int,
        month: int,
        year: int,
    ) -> list[AdvanceDeduction]:
        """Approved deductions dated within a month."""
        first, last = month_bounds(month, year)
        result = await self.session.execute(
            select(AdvanceDeduction)
            .where(
                AdvanceDeduction.employee_id == employee_id,
                AdvanceDeduction.status == DeductionStatus.APPROVED.value,
                AdvanceDeduction.deduction_date >= first,
                AdvanceDeduction.deduction_date <= last,
            )
            .order_by(AdvanceDeduction.id)
        )
        return list(result.scalars().all())
