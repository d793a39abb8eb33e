"""HR payroll engine command line interface.

Provides operational tools for:
- Schema creation
- Legacy salary sheet → payroll run migration
- Working-day lookups

Usage:
    python -m hr_payroll_engine.cli init-db
    python -m hr_payroll_engine.cli migrate-legacy --dry-run
    python -m hr_payroll_engine.cli working-days --branch 1 --month 4 --year 2025
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable

from hr_payroll_engine.calculators.policy_resolver import PolicyResolver, count_working_days
from hr_payroll_engine.config import get_settings
from hr_payroll_engine.database import create_all, create_engine_for_url, make_session_factory
from hr_payroll_engine.services.migration import LegacyPayrollMigration, MigrationReport

logger = logging.getLogger(__name__)


class HRCli:
    """HR engine command line interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m hr_payroll_engine.cli",
            description="HR payroll engine operational tools",
        )
        parser.add_argument(
            "--database-url",
            default=None,
            help="Database URL (defaults to DATABASE_URL)",
        )
        parser.add_argument(
            "--log-level",
            default=None,
            help="Logging level (defaults to LOG_LEVEL)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("init-db", help="Create all tables")

        migrate = subparsers.add_parser(
            "migrate-legacy",
            help="Link legacy salary sheets to payroll runs",
        )
        migrate.add_argument(
            "--no-hash",
            action="store_true",
            help="Do not stamp integrity hashes on attached sheets",
        )
        migrate.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be migrated without writing",
        )

        working_days = subparsers.add_parser(
            "working-days",
            help="Count working days in a month for a branch/site",
        )
        working_days.add_argument("--branch", type=int, default=0, help="Branch ID")
        working_days.add_argument("--site", default=None, help="Site ID")
        working_days.add_argument("--month", type=int, required=True, help="Month (1-12)")
        working_days.add_argument("--year", type=int, required=True, help="Year")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        settings = get_settings()
        logging.basicConfig(
            level=(parsed.log_level or settings.log_level).upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        parsed.database_url = parsed.database_url or settings.database_url

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "init-db": self._cmd_init_db,
            "migrate-legacy": self._cmd_migrate_legacy,
            "working-days": self._cmd_working_days,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create all tables."""

        async def _run() -> None:
            engine = create_engine_for_url(args.database_url)
            try:
                await create_all(engine)
            finally:
                await engine.dispose()

        asyncio.run(_run())
        print(f"Schema ready: {_redact(args.database_url)}")
        return 0

    def _cmd_migrate_legacy(self, args: argparse.Namespace) -> int:
        """Run the legacy linkage migration."""
        print("Legacy payroll migration")
        print("=" * 50)
        print(f"Database: {_redact(args.database_url)}")
        if args.dry_run:
            print("[DRY RUN] No changes will be written")

        report = asyncio.run(self._migrate(args.database_url, not args.no_hash, args.dry_run))

        print(f"\nRuns created:    {report.migrated_run_count}")
        print(f"Sheets attached: {report.attached_sheet_count}")
        print(f"Groups skipped:  {report.skipped_group_count}")
        if report.failed_groups:
            print(f"\n{len(report.failed_groups)} group(s) failed:")
            for (branch_id, year, month), error in report.failed_groups:
                print(f"  - branch {branch_id} {year}-{month:02d}: {error}")
            return 1
        return 0

    async def _migrate(self, database_url: str, compute_hash: bool, dry_run: bool) -> MigrationReport:
        engine = create_engine_for_url(database_url)
        try:
            factory = make_session_factory(engine)
            async with factory() as session:
                migration = LegacyPayrollMigration(session, compute_hash=compute_hash)
                report = await migration.run(dry_run=dry_run)
                if dry_run:
                    await session.rollback()
                else:
                    await session.commit()
                return report
        finally:
            await engine.dispose()

    def _cmd_working_days(self, args: argparse.Namespace) -> int:
        """Print working days for a branch/site month."""
        if not 1 <= args.month <= 12:
            print(f"ERROR: invalid month {args.month}", file=sys.stderr)
            return 1

        async def _run() -> tuple[int, int | None, bool]:
            engine = create_engine_for_url(args.database_url)
            try:
                async with make_session_factory(engine)() as session:
                    resolved = await PolicyResolver(session).resolve_calendar(
                        args.branch, args.site, args.month, args.year
                    )
                    return (
                        count_working_days(resolved, args.month, args.year),
                        resolved.calendar_id,
                        resolved.fallback is not None,
                    )
            finally:
                await engine.dispose()

        days, calendar_id, fallback = asyncio.run(_run())
        source = "default Saturday/Sunday weekend" if fallback else f"calendar {calendar_id}"
        print(f"{args.year}-{args.month:02d} branch {args.branch}: {days} working days ({source})")
        return 0


def _redact(url: str) -> str:
    return url.split("@")[-1] if "@" in url else url


def main() -> int:
    """CLI entry point."""
    cli = HRCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
