"""Payroll run service - run and salary sheet lifecycle."""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.calculators.engine import PayrollCalculator, quantize_money
from hr_payroll_engine.config import get_settings
from hr_payroll_engine.errors import (
    DuplicatePayrollRunError,
    InvalidTransitionError,
    PayrollRunNotLockableError,
    RecordNotFoundError,
    SalarySetupMissingError,
)
from hr_payroll_engine.models import PayrollRun, SalarySheet, canonical_sheet_payload, now_naive
from hr_payroll_engine.models.enums import (
    AuditAction,
    PaymentMode,
    PayrollRunStatus,
    SalarySheetStatus,
)
from hr_payroll_engine.services.audit_service import AuditTrail
from hr_payroll_engine.services.employee_directory import EmployeeDirectory
from hr_payroll_engine.services.guards import (
    assert_payroll_run_lockable,
    assert_payroll_run_mutable,
    assert_salary_sheet_mutable,
    assert_salary_sheet_payable,
)
from hr_payroll_engine.services.integrity import hash_payload, verify_payload
from hr_payroll_engine.services.state_machine import (
    PayrollRunStateMachine,
    SalarySheetStateMachine,
)

logger = logging.getLogger(__name__)

RUN_AUDIT_MODULE = "hr.payroll"
SHEET_AUDIT_MODULE = "hr.salary"
ZERO = Decimal("0")

EARNING_FIELDS = (
    "base_salary",
    "da",
    "hra",
    "conveyance",
    "other_allowance",
    "overtime_amount",
    "incentive_amount",
    "bonus_amount",
    "arrears_amount",
)
DEDUCTION_FIELDS = ("advance", "loan", "fine", "other_deduction")
SHEET_UPDATABLE_FIELDS = frozenset(EARNING_FIELDS + DEDUCTION_FIELDS + ("remarks",))


def _value(status: str | Enum) -> str:
    return status.value if isinstance(status, Enum) else status


class PayrollRunService:
    """Service for payroll runs and their salary sheets.

    Operations:
    - create_payroll_run / get_or_create_payroll_run: one run per (branch, year, month)
    - generate_salary_sheet / generate_run_items: calculate and persist sheets
    - update_salary_sheet: adjust a Calculated sheet and recompute totals
    - approve_salary_sheet: Calculated → Approved, Draft run → Reviewed
    - mark_sheet_paid: Approved → Paid, locking the run and closing it when all are Paid
    - review_run / lock_run / mark_run_paid / archive_run: forward-only run lifecycle
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = EmployeeDirectory(session)
        self.calculator = PayrollCalculator(session)
        self.audit = AuditTrail(session)
        self.settings = get_settings()

    # ===== Runs =====

    async def get_payroll_run(self, run_id: int) -> PayrollRun:
        run = await self.session.get(PayrollRun, run_id)
        if run is None:
            raise RecordNotFoundError("Payroll run", run_id)
        return run

    async def find_payroll_run(
        self,
        month: int,
        year: int,
        branch_id: int | None = None,
    ) -> PayrollRun | None:
        """Run for a (branch, year, month) key, if any."""
        result = await self.session.execute(
            select(PayrollRun).where(
                PayrollRun.branch_id == (branch_id or 0),
                PayrollRun.year == year,
                PayrollRun.month == month,
            )
        )
        return result.scalar_one_or_none()

    async def create_payroll_run(
        self,
        month: int,
        year: int,
        branch_id: int | None = None,
        site_id: str | None = None,
        actor: int | None = None,
    ) -> PayrollRun:
        """Create a Draft run.

        Raises:
            DuplicatePayrollRunError: If a run already exists for the key
        """
        branch = branch_id or 0
        if await self.find_payroll_run(month, year, branch) is not None:
            raise DuplicatePayrollRunError(branch, year, month)

        now = now_naive()
        run = PayrollRun(
            branch_id=branch,
            site_id=site_id,
            month=month,
            year=year,
            status=PayrollRunStatus.DRAFT.value,
            employee_count=0,
            total_net_pay=ZERO,
            generated_by=actor,
            generated_at=now,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(run)
                await self.session.flush()
        except IntegrityError as exc:
            raise DuplicatePayrollRunError(branch, year, month) from exc

        logger.info("Created payroll run %s for branch %s %04d-%02d", run.id, branch, year, month)
        await self.audit.log_event(
            RUN_AUDIT_MODULE,
            AuditAction.CREATE,
            entity_type="PayrollRun",
            entity_id=run.id,
            new_value=run,
            actor=actor,
            branch_id=branch,
        )
        return run

    async def get_or_create_payroll_run(
        self,
        month: int,
        year: int,
        branch_id: int | None = None,
        site_id: str | None = None,
        actor: int | None = None,
    ) -> PayrollRun:
        existing = await self.find_payroll_run(month, year, branch_id)
        if existing is not None:
            return existing
        return await self.create_payroll_run(month, year, branch_id, site_id, actor)

    async def get_run_sheets(self, run_id: int) -> list[SalarySheet]:
        result = await self.session.execute(
            select(SalarySheet)
            .where(SalarySheet.payroll_run_id == run_id)
            .order_by(SalarySheet.employee_id)
        )
        return list(result.scalars().all())

    async def transition_run(
        self,
        run: PayrollRun,
        to_status: str | PayrollRunStatus,
        actor: int | None = None,
        reason: str | None = None,
        action: AuditAction = AuditAction.UPDATE,
    ) -> PayrollRun:
        """Move a run forward, stamping the lifecycle timestamps.

        Raises InvalidTransitionError if the transition is not allowed.
        """
        to_status = _value(to_status)
        from_status = run.status
        PayrollRunStateMachine.validate_transition(from_status, to_status, reason)

        old_value = run.to_snapshot()
        now = now_naive()
        if to_status == PayrollRunStatus.REVIEWED.value:
            run.reviewed_at = now
        elif to_status == PayrollRunStatus.LOCKED.value:
            run.locked_by = actor
            run.locked_at = now
        elif to_status == PayrollRunStatus.PAID.value:
            run.paid_by = actor
            run.paid_at = now
        elif to_status == PayrollRunStatus.ARCHIVED.value:
            run.archived_at = now

        run.status = to_status
        run.updated_at = now
        await self.session.flush()

        logger.info("Payroll run %s transitioned: %s -> %s", run.id, from_status, to_status)
        await self.audit.log_event(
            RUN_AUDIT_MODULE,
            action,
            entity_type="PayrollRun",
            entity_id=run.id,
            old_value=old_value,
            new_value=run,
            actor=actor,
            branch_id=run.branch_id,
            reason=reason,
        )
        return run

    async def review_run(self, run_id: int, actor: int | None = None) -> PayrollRun:
        run = await self.get_payroll_run(run_id)
        return await self.transition_run(run, PayrollRunStatus.REVIEWED, actor, "Review payroll run")

    async def lock_run(
        self,
        run_id: int,
        actor: int | None = None,
        reason: str | None = None,
    ) -> PayrollRun:
        """Lock a run, blocking recalculation of its sheets.

        Locking an already Locked run is a no-op.

        Raises:
            PayrollRunNotLockableError: If the run is Paid/Archived or any
                member sheet is still Calculated
        """
        run = await self.get_payroll_run(run_id)
        if run.status == PayrollRunStatus.LOCKED.value:
            return run

        assert_payroll_run_lockable(run)

        calculated = [
            sheet
            for sheet in await self.get_run_sheets(run.id)
            if sheet.status == SalarySheetStatus.CALCULATED.value
        ]
        if calculated:
            raise PayrollRunNotLockableError(
                run.id,
                run.status,
                f"{len(calculated)} salary sheet(s) are still Calculated",
            )

        return await self.transition_run(
            run,
            PayrollRunStatus.LOCKED,
            actor,
            reason or "Lock payroll run",
            action=AuditAction.APPROVE,
        )

    async def mark_run_paid(self, run_id: int, actor: int | None = None) -> PayrollRun:
        """Locked → Paid, only once every member sheet is Paid."""
        run = await self.get_payroll_run(run_id)
        sheets = await self.get_run_sheets(run.id)
        if not sheets or any(s.status != SalarySheetStatus.PAID.value for s in sheets):
            raise InvalidTransitionError(
                PayrollRunStateMachine.ENTITY,
                run.status,
                PayrollRunStatus.PAID.value,
                "every salary sheet in the run must be Paid",
            )
        return await self.transition_run(run, PayrollRunStatus.PAID, actor, "All run sheets paid")

    async def archive_run(self, run_id: int, actor: int | None = None) -> PayrollRun:
        run = await self.get_payroll_run(run_id)
        return await self.transition_run(run, PayrollRunStatus.ARCHIVED, actor, "Archive payroll run")

    async def refresh_run_totals(self, run: PayrollRun) -> PayrollRun:
        """Recompute employee count and total net pay from member sheets."""
        result = await self.session.execute(
            select(
                func.count(SalarySheet.id),
                func.coalesce(func.sum(SalarySheet.net_salary), 0),
            ).where(SalarySheet.payroll_run_id == run.id)
        )
        count, total = result.one()
        run.employee_count = count
        run.total_net_pay = quantize_money(Decimal(str(total)))
        run.updated_at = now_naive()
        await self.session.flush()
        return run

    # ===== Sheets =====

    async def get_sheet(self, sheet_id: int) -> SalarySheet:
        sheet = await self.session.get(SalarySheet, sheet_id)
        if sheet is None:
            raise RecordNotFoundError("Salary sheet", sheet_id)
        return sheet

    async def get_salary_sheet(self, employee_id: int, month: int, year: int) -> SalarySheet | None:
        result = await self.session.execute(
            select(SalarySheet).where(
                SalarySheet.employee_id == employee_id,
                SalarySheet.month == month,
                SalarySheet.year == year,
            )
        )
        return result.scalar_one_or_none()

    def _stamp_hash(self, sheet: SalarySheet) -> None:
        result = hash_payload(
            canonical_sheet_payload(sheet),
            prefer_cryptographic=self.settings.prefer_cryptographic_hash,
        )
        sheet.integrity_hash = result.hex
        sheet.hash_algorithm = result.algorithm

    def verify_sheet_integrity(self, sheet: SalarySheet) -> bool:
        """Check the stored hash against the sheet's current canonical payload."""
        return verify_payload(
            canonical_sheet_payload(sheet), sheet.hash_algorithm, sheet.integrity_hash
        )

    async def generate_salary_sheet(
        self,
        employee_id: int,
        month: int,
        year: int,
        actor: int | None = None,
    ) -> SalarySheet:
        """Calculate and persist a sheet, attached to the branch's run.

        An existing sheet is regenerated in place while it is Calculated.

        Raises:
            PayrollRunLockedError: If the run is Locked, Paid or Archived
            SalarySheetLockedError: If the existing sheet is Approved or Paid
        """
        calc = await self.calculator.calculate_monthly_salary(employee_id, month, year)
        employee = await self.directory.get_employee(employee_id)

        run = await self.get_or_create_payroll_run(
            month, year, calc.branch_id, employee.assigned_site, actor
        )
        assert_payroll_run_mutable(run, "regenerate salary sheet")

        existing = await self.get_salary_sheet(employee_id, month, year)
        now = now_naive()

        if existing is not None:
            assert_salary_sheet_mutable(existing, "regenerate salary sheet")
            old_value = existing.to_snapshot()
            for key, value in calc.sheet_values().items():
                setattr(existing, key, value)
            existing.payroll_run_id = run.id
            existing.updated_at = now
            self._stamp_hash(existing)
            await self.session.flush()

            await self.audit.log_event(
                SHEET_AUDIT_MODULE,
                AuditAction.UPDATE,
                entity_type="SalarySheet",
                entity_id=existing.id,
                old_value=old_value,
                new_value=existing,
                actor=actor,
                branch_id=run.branch_id,
            )
            sheet = existing
        else:
            sheet = SalarySheet(**calc.sheet_values())
            sheet.payroll_run_id = run.id
            sheet.created_at = now
            sheet.updated_at = now
            self._stamp_hash(sheet)
            self.session.add(sheet)
            await self.session.flush()

            await self.audit.log_event(
                SHEET_AUDIT_MODULE,
                AuditAction.CREATE,
                entity_type="SalarySheet",
                entity_id=sheet.id,
                new_value=sheet,
                actor=actor,
                branch_id=run.branch_id,
            )

        await self.refresh_run_totals(run)
        return sheet

    async def generate_run_items(
        self,
        month: int,
        year: int,
        branch_id: int | None = None,
        site_id: str | None = None,
        actor: int | None = None,
    ) -> PayrollRun:
        """Generate sheets for every active employee of a branch (and site).

        Employees without a salary setup are skipped and logged.
        """
        run = await self.get_or_create_payroll_run(month, year, branch_id, site_id, actor)
        assert_payroll_run_mutable(run, "generate payroll")
        old_value = run.to_snapshot()

        employees = await self.directory.list_active(run.branch_id, site_id)
        for employee in employees:
            try:
                await self.generate_salary_sheet(employee.id, month, year, actor)
            except SalarySetupMissingError as exc:
                logger.warning("Skipping employee %s in run %s: %s", employee.id, run.id, exc)

        await self.refresh_run_totals(run)
        await self.audit.log_event(
            RUN_AUDIT_MODULE,
            AuditAction.UPDATE,
            entity_type="PayrollRun",
            entity_id=run.id,
            old_value=old_value,
            new_value=run,
            actor=actor,
            branch_id=run.branch_id,
            reason="Generate payroll run items",
        )
        return run

    async def update_salary_sheet(
        self,
        sheet_id: int,
        patch: dict[str, Any],
        actor: int | None = None,
        reason: str | None = None,
    ) -> SalarySheet:
        """Adjust amounts on a Calculated sheet and recompute totals.

        Raises:
            SalarySheetLockedError: If the sheet is Approved or Paid
            PayrollRunLockedError: If the sheet's run is no longer mutable
        """
        sheet = await self.get_sheet(sheet_id)
        assert_salary_sheet_mutable(sheet, "update salary sheet")
        if sheet.payroll_run_id is not None:
            run = await self.get_payroll_run(sheet.payroll_run_id)
            assert_payroll_run_mutable(run, "update salary sheet")

        unknown = set(patch) - SHEET_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update salary sheet fields: {sorted(unknown)}")

        old_value = sheet.to_snapshot()
        earnings_before = sum((Decimal(getattr(sheet, f) or ZERO) for f in EARNING_FIELDS), ZERO)

        for key, value in patch.items():
            if key in EARNING_FIELDS or key in DEDUCTION_FIELDS:
                value = quantize_money(Decimal(str(value or 0)))
            setattr(sheet, key, value)

        # Pro-rated base stays embedded in total_earnings; apply only the delta
        earnings_after = sum((Decimal(getattr(sheet, f) or ZERO) for f in EARNING_FIELDS), ZERO)
        sheet.total_earnings = quantize_money(
            Decimal(sheet.total_earnings or ZERO) + earnings_after - earnings_before
        )
        sheet.total_deductions = quantize_money(
            sum((Decimal(getattr(sheet, f) or ZERO) for f in DEDUCTION_FIELDS), ZERO)
        )
        sheet.net_salary = quantize_money(max(ZERO, sheet.total_earnings - sheet.total_deductions))
        sheet.updated_at = now_naive()
        self._stamp_hash(sheet)
        await self.session.flush()

        await self.audit.log_event(
            SHEET_AUDIT_MODULE,
            AuditAction.UPDATE,
            entity_type="SalarySheet",
            entity_id=sheet.id,
            old_value=old_value,
            new_value=sheet,
            actor=actor,
            branch_id=sheet.branch_id,
            reason=reason,
        )

        if sheet.payroll_run_id is not None:
            await self.refresh_run_totals(run)
        return sheet

    async def approve_salary_sheet(
        self,
        sheet_id: int,
        approver: int | None = None,
        reason: str | None = None,
    ) -> SalarySheet:
        """Calculated → Approved; promotes a Draft run to Reviewed."""
        sheet = await self.get_sheet(sheet_id)
        assert_salary_sheet_mutable(sheet, "approve salary sheet")
        SalarySheetStateMachine.validate_transition(sheet.status, SalarySheetStatus.APPROVED)

        attaching = sheet.payroll_run_id is None
        if attaching:
            run = await self.get_or_create_payroll_run(sheet.month, sheet.year, sheet.branch_id)
        else:
            run = await self.get_payroll_run(sheet.payroll_run_id)
        assert_payroll_run_mutable(run, "approve salary sheet")
        if attaching:
            sheet.payroll_run_id = run.id

        old_value = sheet.to_snapshot()
        now = now_naive()
        sheet.status = SalarySheetStatus.APPROVED.value
        sheet.approved_by = approver
        sheet.approved_on = now
        sheet.updated_at = now
        self._stamp_hash(sheet)
        await self.session.flush()

        await self.audit.log_event(
            SHEET_AUDIT_MODULE,
            AuditAction.APPROVE,
            entity_type="SalarySheet",
            entity_id=sheet.id,
            old_value=old_value,
            new_value=sheet,
            actor=approver,
            branch_id=sheet.branch_id,
            reason=reason or "Approve salary sheet",
        )

        if attaching:
            await self.refresh_run_totals(run)
        if run.status == PayrollRunStatus.DRAFT.value:
            await self.transition_run(
                run, PayrollRunStatus.REVIEWED, approver, "Auto-review on sheet approval"
            )
        return sheet

    async def mark_sheet_paid(
        self,
        sheet_id: int,
        payment_ref: str,
        actor: int | None = None,
        reason: str | None = None,
    ) -> SalarySheet:
        """Approved → Paid.

        The sheet's run is locked first; once every member sheet is Paid the
        run itself is marked Paid.

        Raises:
            SalarySheetNotPayableError: If the sheet is not Approved
            PayrollRunNotLockableError: If the run cannot be locked
        """
        sheet = await self.get_sheet(sheet_id)
        assert_salary_sheet_payable(sheet)

        run: PayrollRun | None = None
        if sheet.payroll_run_id is not None:
            run = await self.lock_run(
                sheet.payroll_run_id, actor, "Auto-lock on first payment"
            )

        old_value = sheet.to_snapshot()
        now = now_naive()
        valid_modes = {mode.value for mode in PaymentMode}
        sheet.status = SalarySheetStatus.PAID.value
        sheet.payment_mode = payment_ref if payment_ref in valid_modes else None
        sheet.payment_ref = payment_ref
        sheet.paid_on = now
        sheet.updated_at = now
        self._stamp_hash(sheet)
        await self.session.flush()

        await self.audit.log_event(
            SHEET_AUDIT_MODULE,
            AuditAction.UPDATE,
            entity_type="SalarySheet",
            entity_id=sheet.id,
            old_value=old_value,
            new_value=sheet,
            actor=actor,
            branch_id=sheet.branch_id,
            reason=reason or "Mark salary sheet paid",
        )

        if run is not None:
            sheets = await self.get_run_sheets(run.id)
            if all(s.status == SalarySheetStatus.PAID.value for s in sheets):
                await self.transition_run(run, PayrollRunStatus.PAID, actor, "All run sheets paid")
        return sheet

    # ===== Queries =====

    async def get_pending_approvals(self) -> list[SalarySheet]:
        """Calculated sheets, most recently updated first."""
        result = await self.session.execute(
            select(SalarySheet)
            .where(SalarySheet.status == SalarySheetStatus.CALCULATED.value)
            .order_by(SalarySheet.updated_at.desc(), SalarySheet.id.desc())
        )
        return list(result.scalars().all())

    async def get_monthly_salary_sheets(self, month: int, year: int) -> list[SalarySheet]:
        result = await self.session.execute(
            select(SalarySheet)
            .where(SalarySheet.month == month, SalarySheet.year == year)
            .order_by(SalarySheet.employee_id)
        )
        return list(result.scalars().all())

    async def get_total_monthly_payroll(self, month: int, year: int) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(SalarySheet.net_salary), 0)).where(
                SalarySheet.month == month,
                SalarySheet.year == year,
            )
        )
        return quantize_money(Decimal(str(result.scalar_one())))
