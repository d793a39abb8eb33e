"""Legacy salary sheet → payroll run linkage migration.

Links historical salary sheets that predate payroll runs to a run per
(branch, year, month). Only linkage (``payroll_run_id``) and integrity
metadata are written; monetary values and sheet timestamps are never touched.

Planning is a pure function over snapshots; ``LegacyPayrollMigration`` loads
rows, applies each group inside its own SAVEPOINT and reports failures per
group. Re-running is a no-op for groups that are already linked.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.config import get_settings
from hr_payroll_engine.models import PayrollRun, SalarySheet, canonical_sheet_payload, now_naive
from hr_payroll_engine.models.enums import AuditAction, PayrollRunStatus, SalarySheetStatus
from hr_payroll_engine.services.audit_service import AuditTrail
from hr_payroll_engine.services.integrity import hash_payload

logger = logging.getLogger(__name__)

AUDIT_MODULE = "hr.payroll"
AUDIT_REASON = "Legacy salary sheets → PayrollRun linkage migration"

RunKey = tuple[int, int, int]  # (branch_id, year, month)


@dataclass(frozen=True)
class LegacySheetSnapshot:
    id: int
    branch_id: int
    year: int
    month: int
    status: str
    net_salary: Decimal
    created_at: datetime
    payroll_run_id: int | None = None

    @property
    def run_key(self) -> RunKey:
        return (self.branch_id or 0, self.year, self.month)


@dataclass(frozen=True)
class RunSnapshot:
    id: int
    branch_id: int
    year: int
    month: int

    @property
    def run_key(self) -> RunKey:
        return (self.branch_id or 0, self.year, self.month)


@dataclass(frozen=True)
class MigrationGroupPlan:
    """What the migration will do for one (branch, year, month) group."""

    run_key: RunKey
    existing_run_id: int | None
    inferred_status: str
    earliest_created_at: datetime
    employee_count: int
    total_net_pay: Decimal
    sheet_ids_to_attach: tuple[int, ...]

    @property
    def creates_run(self) -> bool:
        return self.existing_run_id is None

    @property
    def has_work(self) -> bool:
        return self.creates_run or bool(self.sheet_ids_to_attach)


@dataclass
class MigrationReport:
    migrated_run_count: int = 0
    attached_sheet_count: int = 0
    skipped_group_count: int = 0
    failed_groups: list[tuple[RunKey, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_groups


def infer_run_status(statuses: Iterable[str]) -> str:
    """Paid if any sheet is Paid, else Locked if any is Approved, else Draft."""
    seen = set(statuses)
    if SalarySheetStatus.PAID.value in seen:
        return PayrollRunStatus.PAID.value
    if SalarySheetStatus.APPROVED.value in seen:
        return PayrollRunStatus.LOCKED.value
    return PayrollRunStatus.DRAFT.value


def plan_legacy_migration(
    sheets: Iterable[LegacySheetSnapshot],
    runs: Iterable[RunSnapshot],
) -> list[MigrationGroupPlan]:
    """Group sheets by run key and decide, per group, what to create and attach."""
    run_by_key: dict[RunKey, RunSnapshot] = {}
    for run in sorted(runs, key=lambda r: r.id):
        # Duplicate keys should not exist; keep the oldest run
        run_by_key.setdefault(run.run_key, run)

    groups: dict[RunKey, list[LegacySheetSnapshot]] = {}
    for sheet in sheets:
        groups.setdefault(sheet.run_key, []).append(sheet)

    plans = []
    for key in sorted(groups):
        members = sorted(groups[key], key=lambda s: s.id)
        existing = run_by_key.get(key)
        plans.append(
            MigrationGroupPlan(
                run_key=key,
                existing_run_id=existing.id if existing else None,
                inferred_status=infer_run_status(s.status for s in members),
                earliest_created_at=min(s.created_at for s in members),
                employee_count=len(members),
                total_net_pay=sum((Decimal(s.net_salary or 0) for s in members), Decimal("0")),
                sheet_ids_to_attach=tuple(s.id for s in members if s.payroll_run_id is None),
            )
        )
    return plans


class LegacyPayrollMigration:
    """Applies the legacy linkage plan against the database."""

    def __init__(
        self,
        session: AsyncSession,
        compute_hash: bool = True,
        now: datetime | None = None,
    ):
        self.session = session
        self.compute_hash = compute_hash
        self.now = now
        self.audit = AuditTrail(session)
        self.settings = get_settings()

    async def _load(self) -> tuple[dict[int, SalarySheet], list[RunSnapshot]]:
        sheet_rows = (
            await self.session.execute(select(SalarySheet).order_by(SalarySheet.id))
        ).scalars().all()
        run_rows = (
            await self.session.execute(select(PayrollRun).order_by(PayrollRun.id))
        ).scalars().all()
        runs = [RunSnapshot(r.id, r.branch_id, r.year, r.month) for r in run_rows]
        return {s.id: s for s in sheet_rows}, runs

    async def plan(self) -> list[MigrationGroupPlan]:
        sheets, runs = await self._load()
        return plan_legacy_migration((_snapshot(s) for s in sheets.values()), runs)

    async def run(self, dry_run: bool = False) -> MigrationReport:
        """Apply every group with pending work.

        A failing group is rolled back to its savepoint and reported; the
        remaining groups continue.
        """
        sheets, runs = await self._load()
        plans = plan_legacy_migration((_snapshot(s) for s in sheets.values()), runs)
        report = MigrationReport()

        for plan in plans:
            if not plan.has_work:
                report.skipped_group_count += 1
                continue

            if dry_run:
                logger.info(
                    "Dry run: group %s would %s and attach %d sheet(s)",
                    plan.run_key,
                    "create a run" if plan.creates_run else f"reuse run {plan.existing_run_id}",
                    len(plan.sheet_ids_to_attach),
                )
                report.migrated_run_count += int(plan.creates_run)
                report.attached_sheet_count += len(plan.sheet_ids_to_attach)
                continue

            try:
                async with self.session.begin_nested():
                    await self._apply_group(plan, sheets)
            except Exception as exc:
                logger.exception("Legacy migration failed for group %s", plan.run_key)
                report.failed_groups.append((plan.run_key, str(exc)))
                continue

            report.migrated_run_count += int(plan.creates_run)
            report.attached_sheet_count += len(plan.sheet_ids_to_attach)

        logger.info(
            "Legacy migration finished: %d run(s) created, %d sheet(s) attached, %d failed group(s)",
            report.migrated_run_count,
            report.attached_sheet_count,
            len(report.failed_groups),
        )
        return report

    async def _apply_group(self, plan: MigrationGroupPlan, sheets: dict[int, SalarySheet]) -> None:
        branch_id, year, month = plan.run_key

        run_id = plan.existing_run_id
        if run_id is None:
            run = PayrollRun(
                branch_id=branch_id,
                month=month,
                year=year,
                status=plan.inferred_status,
                employee_count=plan.employee_count,
                total_net_pay=plan.total_net_pay,
                generated_at=plan.earliest_created_at,
                created_at=plan.earliest_created_at,
                updated_at=plan.earliest_created_at,
            )
            self.session.add(run)
            await self.session.flush()
            run_id = run.id

        for sheet_id in plan.sheet_ids_to_attach:
            sheet = sheets[sheet_id]
            sheet.payroll_run_id = run_id
            if self.compute_hash:
                result = hash_payload(
                    canonical_sheet_payload(sheet),
                    prefer_cryptographic=self.settings.prefer_cryptographic_hash,
                )
                sheet.integrity_hash = result.hex
                sheet.hash_algorithm = result.algorithm
        await self.session.flush()

        run_key = {"branchId": branch_id, "year": year, "month": month}
        await self.audit.log_event(
            AUDIT_MODULE,
            AuditAction.UPDATE,
            entity_type="PayrollRun",
            entity_id=run_id,
            old_value={
                "runKey": run_key,
                "createdNewRun": plan.creates_run,
                "legacySheetsWithoutRun": list(plan.sheet_ids_to_attach),
            },
            new_value={
                "runKey": run_key,
                "payrollRunId": run_id,
                "attachedSheetCount": len(plan.sheet_ids_to_attach),
                "inferredRunStatus": plan.inferred_status,
            },
            branch_id=branch_id or None,
            reason=AUDIT_REASON,
            timestamp=self.now or now_naive(),
        )


def _snapshot(sheet: SalarySheet) -> LegacySheetSnapshot:
    return LegacySheetSnapshot(
        id=sheet.id,
        branch_id=sheet.branch_id or 0,
        year=sheet.year,
        month=sheet.month,
        status=sheet.status,
        net_salary=sheet.net_salary,
        created_at=sheet.created_at,
        payroll_run_id=sheet.payroll_run_id,
    )
