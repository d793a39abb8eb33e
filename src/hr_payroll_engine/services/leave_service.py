"""Leave ledger: applications, approvals, cancellation and balances."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.calculators.policy_resolver import PolicyResolver, month_bounds
from hr_payroll_engine.calculators.types import LeaveBalance
from hr_payroll_engine.errors import LeaveAlreadyStartedError, RecordNotFoundError
from hr_payroll_engine.models import Leave, now_naive
from hr_payroll_engine.models.enums import (
    AuditAction,
    LeaveEntitlement,
    LeaveStatus,
    LeaveType,
)
from hr_payroll_engine.services.audit_service import AuditTrail
from hr_payroll_engine.services.employee_directory import EmployeeDirectory
from hr_payroll_engine.services.guards import assert_leave_status_change_allowed

logger = logging.getLogger(__name__)

AUDIT_MODULE = "hr.leave"
ZERO = Decimal("0")


def default_entitlement(leave_type: str) -> str:
    """Loss of Pay is unpaid; every other type is paid unless stated."""
    if leave_type == LeaveType.LOSS_OF_PAY.value:
        return LeaveEntitlement.UNPAID.value
    return LeaveEntitlement.PAID.value


def available_days(leave_type: str, total: Decimal, used: Decimal) -> Decimal:
    """Remaining days: entitlement less usage, never negative; Loss of Pay has none."""
    if leave_type == LeaveType.LOSS_OF_PAY.value:
        return ZERO
    return max(ZERO, total - used)


class LeaveService:
    """Service for the leave ledger."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = EmployeeDirectory(session)
        self.policy = PolicyResolver(session)
        self.audit = AuditTrail(session)

    async def get_leave(self, leave_id: int) -> Leave:
        leave = await self.session.get(Leave, leave_id)
        if leave is None:
            raise RecordNotFoundError("Leave", leave_id)
        return leave

    async def apply_leave(
        self,
        employee_id: int,
        leave_type: str | LeaveType,
        from_date: date,
        to_date: date,
        *,
        number_of_days: Decimal | float | None = None,
        entitlement: str | LeaveEntitlement | None = None,
        reason: str | None = None,
        applied_by: int | None = None,
        branch_id: int | None = None,
        at: datetime | None = None,
    ) -> Leave:
        """Create a leave application in Applied status.

        Overlapping applications are accepted; no overlap validation is made.
        """
        leave_type = LeaveType(leave_type).value
        if to_date < from_date:
            raise ValueError(f"Leave end {to_date} is before start {from_date}")

        if number_of_days is None:
            number_of_days = Decimal((to_date - from_date).days + 1)
        entitlement = (
            LeaveEntitlement(entitlement).value
            if entitlement is not None
            else default_entitlement(leave_type)
        )

        if branch_id is None:
            employee = await self.directory.get_employee(employee_id)
            branch_id = employee.branch_id

        applied_on = at or now_naive()
        leave = Leave(
            employee_id=employee_id,
            leave_type=leave_type,
            from_date=from_date,
            to_date=to_date,
            number_of_days=Decimal(str(number_of_days)),
            entitlement=entitlement,
            reason=reason,
            status=LeaveStatus.APPLIED.value,
            applied_on=applied_on,
            applied_by=applied_by,
            branch_id=branch_id,
            created_at=applied_on,
            updated_at=applied_on,
        )
        self.session.add(leave)
        await self.session.flush()

        await self.audit.log_event(
            AUDIT_MODULE,
            AuditAction.CREATE,
            entity_type="Leave",
            entity_id=leave.id,
            new_value=leave,
            actor=applied_by,
            branch_id=branch_id,
        )
        return leave

    async def _change_status(
        self,
        leave: Leave,
        next_status: LeaveStatus,
        action: AuditAction,
        actor: int | None,
        reason: str | None = None,
        **fields,
    ) -> Leave:
        old_value = leave.to_snapshot()
        leave.status = next_status.value
        for key, value in fields.items():
            setattr(leave, key, value)
        leave.updated_at = now_naive()
        await self.session.flush()

        logger.info(
            "Leave %s transitioned: %s -> %s",
            leave.id,
            old_value["status"],
            next_status.value,
        )
        await self.audit.log_event(
            AUDIT_MODULE,
            action,
            entity_type="Leave",
            entity_id=leave.id,
            old_value=old_value,
            new_value=leave,
            actor=actor,
            branch_id=leave.branch_id,
            reason=reason,
        )
        return leave

    async def approve_leave(
        self,
        leave_id: int,
        approver: int,
        remarks: str | None = None,
    ) -> Leave:
        """Applied → Approved."""
        leave = await self.get_leave(leave_id)
        assert_leave_status_change_allowed(leave, LeaveStatus.APPROVED)
        return await self._change_status(
            leave,
            LeaveStatus.APPROVED,
            AuditAction.APPROVE,
            approver,
            remarks,
            approved_by=approver,
            approved_on=now_naive(),
            approval_remarks=remarks,
        )

    async def reject_leave(
        self,
        leave_id: int,
        reason: str | None = None,
        actor: int | None = None,
    ) -> Leave:
        """Applied → Rejected."""
        leave = await self.get_leave(leave_id)
        assert_leave_status_change_allowed(leave, LeaveStatus.REJECTED)
        return await self._change_status(
            leave,
            LeaveStatus.REJECTED,
            AuditAction.REJECT,
            actor,
            reason,
            rejection_reason=reason,
        )

    async def cancel_leave(
        self,
        leave_id: int,
        today: date | None = None,
        actor: int | None = None,
    ) -> Leave:
        """Applied → Cancelled, only while the leave has not started.

        Raises:
            InvalidLeaveTransitionError: If the leave is not Applied
            LeaveAlreadyStartedError: If the start date is today or earlier
        """
        leave = await self.get_leave(leave_id)
        assert_leave_status_change_allowed(leave, LeaveStatus.CANCELLED)

        today = today or now_naive().date()
        if leave.from_date <= today:
            raise LeaveAlreadyStartedError(leave.id, leave.from_date)

        return await self._change_status(leave, LeaveStatus.CANCELLED, AuditAction.CANCEL, actor)

    async def get_leave_balance(
        self,
        employee_id: int,
        leave_type: str | LeaveType,
        year: int,
    ) -> LeaveBalance:
        """Entitled, used and available days for a leave type and year."""
        leave_type = LeaveType(leave_type).value

        fallback = None
        if leave_type == LeaveType.LOSS_OF_PAY.value:
            total = ZERO
        else:
            employee = await self.directory.find_employee(employee_id)
            resolved = await self.policy.get_leave_entitlement(
                leave_type,
                year,
                branch_id=employee.branch_id if employee else None,
                category=employee.category if employee else None,
            )
            total = resolved.total_days
            fallback = resolved.fallback

        result = await self.session.execute(
            select(func.coalesce(func.sum(Leave.number_of_days), 0)).where(
                Leave.employee_id == employee_id,
                Leave.leave_type == leave_type,
                Leave.status == LeaveStatus.APPROVED.value,
                Leave.from_date >= date(year, 1, 1),
                Leave.from_date <= date(year, 12, 31),
            )
        )
        used = Decimal(str(result.scalar_one()))

        available = available_days(leave_type, total, used)
        return LeaveBalance(
            employee_id=employee_id,
            leave_type=leave_type,
            year=year,
            total=total,
            used=used,
            available=available,
            fallback=fallback,
        )

    async def get_pending_leaves(self) -> list[Leave]:
        """Applied leaves, most recently applied first."""
        result = await self.session.execute(
            select(Leave)
            .where(Leave.status == LeaveStatus.APPLIED.value)
            .order_by(Leave.applied_on.desc(), Leave.id.desc())
        )
        return list(result.scalars().all())

    async def get_employee_leaves(
        self,
        employee_id: int,
        month: int | None = None,
        year: int | None = None,
    ) -> list[Leave]:
        """An employee's leaves, latest start first.

        With a month and year, only leaves starting or ending in that month.
        """
        query = select(Leave).where(Leave.employee_id == employee_id)
        if month and year:
            first, last = month_bounds(month, year)
            query = query.where(
                ((Leave.from_date >= first) & (Leave.from_date <= last))
                | ((Leave.to_date >= first) & (Leave.to_date <= last))
            )
        result = await self.session.execute(query.order_by(Leave.from_date.desc(), Leave.id.desc()))
        return list(result.scalars().all())

    async def get_leave_history(self, employee_id: int, limit: int = 10) -> list[Leave]:
        """Decided leaves (anything but Applied), most recent decision first."""
        result = await self.session.execute(
            select(Leave)
            .where(
                Leave.employee_id == employee_id,
                Leave.status != LeaveStatus.APPLIED.value,
            )
            .order_by(func.coalesce(Leave.approved_on, Leave.applied_on).desc(), Leave.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_on_leave_employees(self, on_date: date) -> list[int]:
        """Ids of employees with an Approved leave covering a date."""
        result = await self.session.execute(
            select(Leave.employee_id)
            .where(
                Leave.status == LeaveStatus.APPROVED.value,
                Leave.from_date <= on_date,
                Leave.to_date >= on_date,
            )
            .distinct()
            .order_by(Leave.employee_id)
        )
        return list(result.scalars().all())

    async def get_approved_leaves_in_range(
        self,
        employee_id: int,
        start: date,
        end: date,
    ) -> list[Leave]:
        """Approved leaves intersecting [start, end]."""
        result = await self.session.execute(
            select(Leave)
            .where(
                Leave.employee_id == employee_id,
                Leave.status == LeaveStatus.APPROVED.value,
                Leave.from_date <= end,
                Leave.to_date >= start,
            )
            .order_by(Leave.from_date)
        )
        return list(result.scalars().all())
