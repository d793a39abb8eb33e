"""Read-only employee directory lookups."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.errors import EmployeeNotFoundError
from hr_payroll_engine.models import Employee
from hr_payroll_engine.models.enums import EmployeeStatus


class EmployeeDirectory:
    """Lookup of branch, site, category and status by employee id."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_employee(self, employee_id: int) -> Employee | None:
        return await self.session.get(Employee, employee_id)

    async def get_employee(self, employee_id: int) -> Employee:
        """Get an employee, raising EmployeeNotFoundError if absent."""
        employee = await self.find_employee(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        return employee

    async def list_active(
        self,
        branch_id: int | None = None,
        site_id: str | None = None,
    ) -> list[Employee]:
        """Active employees, optionally restricted to a branch and site."""
        query = select(Employee).where(Employee.status == EmployeeStatus.ACTIVE.value)
        if branch_id is not None:
            query = query.where(Employee.branch_id == branch_id)
        if site_id:
            query = query.where(Employee.assigned_site == site_id)
        result = await self.session.execute(query.order_by(Employee.id))
        return list(result.scalars().all())
