"""Attendance ledger: check-in/out, direct recording, approval and summaries."""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.calculators.policy_resolver import PolicyResolver, count_working_days, month_bounds
from hr_payroll_engine.calculators.types import AttendanceSummary
from hr_payroll_engine.errors import (
    DuplicateAttendanceError,
    DuplicateCheckInError,
    NoOpenCheckInError,
    RecordNotFoundError,
)
from hr_payroll_engine.models import AttendanceRecord, now_naive
from hr_payroll_engine.models.enums import AttendanceStatus, AuditAction
from hr_payroll_engine.services.audit_service import AuditTrail
from hr_payroll_engine.services.employee_directory import EmployeeDirectory
from hr_payroll_engine.services.guards import assert_attendance_mutable
from hr_payroll_engine.services.state_machine import (
    AttendanceLockState,
    AttendanceLockStateMachine,
)

logger = logging.getLogger(__name__)

AUDIT_MODULE = "hr.attendance"

# Fields a caller may patch through update_attendance
UPDATABLE_FIELDS = frozenset(
    {
        "attendance_date",
        "status",
        "check_in_time",
        "check_out_time",
        "working_hours",
        "site_id",
        "branch_id",
        "remarks",
    }
)


def _status_value(status: str | Enum) -> str:
    return status.value if isinstance(status, Enum) else AttendanceStatus(status).value


def compute_working_hours(check_in: datetime, check_out: datetime) -> float:
    """Hours between check-in and check-out, rounded to 2 places, never negative."""
    hours = (check_out - check_in).total_seconds() / 3600
    return max(0.0, round(hours, 2))


class AttendanceService:
    """Service for the attendance ledger."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = EmployeeDirectory(session)
        self.policy = PolicyResolver(session)
        self.audit = AuditTrail(session)

    async def _get_record(self, record_id: int) -> AttendanceRecord:
        record = await self.session.get(AttendanceRecord, record_id)
        if record is None:
            raise RecordNotFoundError("Attendance record", record_id)
        return record

    async def find_record(self, employee_id: int, attendance_date: date) -> AttendanceRecord | None:
        result = await self.session.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.attendance_date == attendance_date,
            )
        )
        return result.scalar_one_or_none()

    async def _insert(self, record: AttendanceRecord) -> bool:
        """Insert inside a savepoint. Returns False on a uniqueness conflict."""
        employee_id, attendance_date = record.employee_id, record.attendance_date
        try:
            async with self.session.begin_nested():
                self.session.add(record)
                await self.session.flush()
        except IntegrityError:
            logger.info("Attendance conflict for employee %s on %s", employee_id, attendance_date)
            return False
        return True

    async def check_in(
        self,
        employee_id: int,
        site_id: str | None = None,
        at: datetime | None = None,
    ) -> AttendanceRecord:
        """Create today's Present record with a check-in timestamp.

        Raises:
            DuplicateCheckInError: If a record already exists for the day
        """
        at = at or now_naive()
        day = at.date()

        employee = await self.directory.get_employee(employee_id)

        if await self.find_record(employee_id, day) is not None:
            raise DuplicateCheckInError(employee_id, day)

        record = AttendanceRecord(
            employee_id=employee_id,
            attendance_date=day,
            status=AttendanceStatus.PRESENT.value,
            check_in_time=at,
            site_id=site_id,
            branch_id=employee.branch_id,
            created_at=at,
            updated_at=at,
        )
        if not await self._insert(record):
            raise DuplicateCheckInError(employee_id, day)

        await self.audit.log_event(
            AUDIT_MODULE,
            AuditAction.CREATE,
            entity_type="Attendance",
            entity_id=record.id,
            new_value=record,
            actor=employee_id,
            branch_id=employee.branch_id,
            reason="Check-in",
        )
        return record

    async def check_out(self, employee_id: int, at: datetime | None = None) -> AttendanceRecord:
        """Close today's open check-in and compute working hours.

        Raises:
            NoOpenCheckInError: If there is no check-in without a check-out today
            AttendanceLockedError: If the record is already approved
        """
        at = at or now_naive()
        day = at.date()

        record = await self.find_record(employee_id, day)
        if record is None or not record.is_open:
            raise NoOpenCheckInError(employee_id, day)

        assert_attendance_mutable(record, "check out")

        old_value = record.to_snapshot()
        record.check_out_time = at
        record.working_hours = compute_working_hours(record.check_in_time, at)
        record.updated_at = at
        await self.session.flush()

        await self.audit.log_event(
            AUDIT_MODULE,
            AuditAction.UPDATE,
            entity_type="Attendance",
            entity_id=record.id,
            old_value=old_value,
            new_value=record,
            actor=employee_id,
            branch_id=record.branch_id,
            reason="Check-out",
        )
        return record

    async def record_attendance(
        self,
        employee_id: int,
        attendance_date: date,
        status: str | AttendanceStatus,
        *,
        check_in_time: datetime | None = None,
        check_out_time: datetime | None = None,
        working_hours: float | None = None,
        site_id: str | None = None,
        branch_id: int | None = None,
        remarks: str | None = None,
        actor: int | None = None,
    ) -> AttendanceRecord:
        """Insert an attendance row for a date that has none yet.

        Raises:
            DuplicateAttendanceError: If a row exists for (employee, date)
        """
        if await self.find_record(employee_id, attendance_date) is not None:
            raise DuplicateAttendanceError(employee_id, attendance_date)

        if working_hours is None and check_in_time and check_out_time:
            working_hours = compute_working_hours(check_in_time, check_out_time)

        record = AttendanceRecord(
            employee_id=employee_id,
            attendance_date=attendance_date,
            status=_status_value(status),
            check_in_time=check_in_time,
            check_out_time=check_out_time,
            working_hours=working_hours,
            site_id=site_id,
            branch_id=branch_id,
            remarks=remarks,
        )
        if not await self._insert(record):
            raise DuplicateAttendanceError(employee_id, attendance_date)

        await self.audit.log_event(
            AUDIT_MODULE,
            AuditAction.CREATE,
            entity_type="Attendance",
            entity_id=record.id,
            new_value=record,
            actor=actor,
            branch_id=branch_id,
        )
        return record

    async def update_attendance(
        self,
        record_id: int,
        patch: dict[str, Any],
        actor: int | None = None,
    ) -> AttendanceRecord:
        """Patch an unapproved attendance row.

        Raises:
            AttendanceLockedError: If the row carries approval markers
            DuplicateAttendanceError: If the new date collides with another row
        """
        record = await self._get_record(record_id)
        assert_attendance_mutable(record, "update attendance")

        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update attendance fields: {sorted(unknown)}")

        new_date = patch.get("attendance_date")
        if new_date is not None and new_date != record.attendance_date:
            clash = await self.find_record(record.employee_id, new_date)
            if clash is not None:
                raise DuplicateAttendanceError(record.employee_id, new_date)

        old_value = record.to_snapshot()
        for key, value in patch.items():
            if key == "status" and value is not None:
                value = _status_value(value)
            setattr(record, key, value)

        if (
            "working_hours" not in patch
            and record.check_in_time is not None
            and record.check_out_time is not None
        ):
            record.working_hours = compute_working_hours(record.check_in_time, record.check_out_time)
        record.updated_at = now_naive()
        await self.session.flush()

        await self.audit.log_event(
            AUDIT_MODULE,
            AuditAction.UPDATE,
            entity_type="Attendance",
            entity_id=record.id,
            old_value=old_value,
            new_value=record,
            actor=actor,
            branch_id=record.branch_id,
        )
        return record

    async def approve_attendance(self, record_id: int, approver: int) -> AttendanceRecord:
        """Stamp approval markers, locking the row against further edits."""
        record = await self._get_record(record_id)
        current = AttendanceLockStateMachine.state_of(record.approved_by, record.approved_at)
        AttendanceLockStateMachine.validate_transition(
            current, AttendanceLockState.LOCKED, "attendance is already approved"
        )

        old_value = record.to_snapshot()
        now = now_naive()
        record.approved_by = approver
        record.approved_at = now
        record.updated_at = now
        await self.session.flush()

        await self.audit.log_event(
            AUDIT_MODULE,
            AuditAction.APPROVE,
            entity_type="Attendance",
            entity_id=record.id,
            old_value=old_value,
            new_value=record,
            actor=approver,
            branch_id=record.branch_id,
        )
        return record

    async def get_attendance(self, employee_id: int, month: int, year: int) -> list[AttendanceRecord]:
        """All of an employee's rows within a month, by date."""
        first, last = month_bounds(month, year)
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.attendance_date >= first,
                AttendanceRecord.attendance_date <= last,
            )
            .order_by(AttendanceRecord.attendance_date)
        )
        return list(result.scalars().all())

    async def get_today_attendance(self, at: date | datetime | None = None) -> list[AttendanceRecord]:
        """All rows for a day (today by default)."""
        day = at or now_naive()
        if isinstance(day, datetime):
            day = day.date()
        result = await self.session.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.attendance_date == day)
            .order_by(AttendanceRecord.employee_id)
        )
        return list(result.scalars().all())

    async def get_absent_employees(self, on_date: date) -> list[int]:
        """Ids of active employees with no attendance row on a date."""
        marked = set(
            (
                await self.session.execute(
                    select(AttendanceRecord.employee_id).where(
                        AttendanceRecord.attendance_date == on_date
                    )
                )
            )
            .scalars()
            .all()
        )
        active = await self.directory.list_active()
        return [employee.id for employee in active if employee.id not in marked]

    async def get_attendance_summary(
        self,
        employee_id: int,
        month: int,
        year: int,
    ) -> AttendanceSummary:
        """Monthly counts per status plus resolver-based working days."""
        employee = await self.directory.get_employee(employee_id)
        records = await self.get_attendance(employee_id, month, year)

        counts = {status.value: 0 for status in AttendanceStatus}
        total_hours = 0.0
        for record in records:
            counts[record.status] = counts.get(record.status, 0) + 1
            if record.working_hours:
                total_hours += record.working_hours

        resolved = await self.policy.resolve_calendar(
            employee.branch_id, employee.assigned_site, month, year
        )

        return AttendanceSummary(
            employee_id=employee_id,
            month=month,
            year=year,
            total_working_days=count_working_days(resolved, month, year),
            present_days=counts[AttendanceStatus.PRESENT.value],
            absent_days=counts[AttendanceStatus.ABSENT.value],
            half_days=counts[AttendanceStatus.HALF_DAY.value],
            leave_days=counts[AttendanceStatus.LEAVE.value],
            total_working_hours=round(total_hours, 2),
            fallback=resolved.fallback,
        )
