"""Work-calendar and leave-entitlement resolution.

Selection happens in pure functions over plain snapshots so it can be tested
without storage; ``PolicyResolver`` only loads rows and delegates.

Calendar selection priority:
1. Active calendars of the branch that cover the first day of the month
2. When a site is given, a calendar bound to a different site is excluded
3. Site-specific calendars beat branch-wide ones
4. Latest ``effective_from`` wins, then highest id
"""

from __future__ import annotations

import calendar as _calendar
import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.calculators.types import (
    DEFAULT_WEEKEND_DAYS,
    CalendarCandidate,
    EntitlementCandidate,
    HolidayEntry,
    PolicyResolutionFallback,
    ResolvedCalendar,
    ResolvedEntitlement,
)
from hr_payroll_engine.models import LeavePolicyEntitlement, WorkCalendar, WorkCalendarHoliday
from hr_payroll_engine.models.enums import LeaveType

logger = logging.getLogger(__name__)

DEFAULT_LEAVE_ENTITLEMENTS: dict[str, Decimal] = {
    LeaveType.CASUAL.value: Decimal("12"),
    LeaveType.SICK.value: Decimal("6"),
    LeaveType.EARNED.value: Decimal("10"),
    LeaveType.LOSS_OF_PAY.value: Decimal("0"),
}


def month_bounds(month: int, year: int) -> tuple[date, date]:
    """First and last day of a month."""
    last = _calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def select_calendar(
    candidates: Iterable[CalendarCandidate],
    branch_id: int | None,
    site_id: str | None,
    as_of: date,
) -> CalendarCandidate | None:
    """Pick the governing calendar, or None when nothing applies."""
    branch = branch_id or 0
    eligible = []
    for candidate in candidates:
        if not candidate.is_active or (candidate.branch_id or 0) != branch:
            continue
        if site_id is not None and candidate.site_id is not None and candidate.site_id != site_id:
            continue
        if candidate.effective_from > as_of:
            continue
        if candidate.effective_to is not None and candidate.effective_to < as_of:
            continue
        eligible.append(candidate)

    if not eligible:
        return None

    return max(
        eligible,
        key=lambda c: (c.site_id is not None, c.effective_from, c.id),
    )


def build_resolved_calendar(
    candidate: CalendarCandidate | None,
    holidays: Iterable[HolidayEntry] = (),
    branch_id: int | None = None,
    site_id: str | None = None,
) -> ResolvedCalendar:
    """Turn a selected calendar and its holiday rows into a snapshot."""
    if candidate is None:
        return ResolvedCalendar(
            calendar_id=None,
            weekend_days=DEFAULT_WEEKEND_DAYS,
            fallback=PolicyResolutionFallback(
                policy="work_calendar",
                reason="no active calendar for branch/site; using Saturday/Sunday weekend",
                branch_id=branch_id,
                site_id=site_id,
            ),
        )

    plain: set[date] = set()
    overrides: set[date] = set()
    for entry in holidays:
        if entry.is_working_day_override:
            overrides.add(entry.holiday_date)
        else:
            plain.add(entry.holiday_date)

    return ResolvedCalendar(
        calendar_id=candidate.id,
        # An empty weekend list keeps the Saturday/Sunday default
        weekend_days=frozenset(candidate.weekend_days) or DEFAULT_WEEKEND_DAYS,
        holidays=frozenset(plain),
        working_day_overrides=frozenset(overrides),
    )


def count_working_days(resolved: ResolvedCalendar, month: int, year: int) -> int:
    """Count working days of a month under a resolved calendar."""
    first, last = month_bounds(month, year)
    return sum(
        1
        for day_number in range(first.day, last.day + 1)
        if resolved.is_working_day(date(year, month, day_number))
    )


def select_entitlement(
    candidates: Iterable[EntitlementCandidate],
    leave_type: str,
    year: int,
    branch_id: int | None = None,
    category: str | None = None,
) -> ResolvedEntitlement:
    """Best-matching entitlement for a leave type and year.

    A branch match scores 2, a category match 1; a row scoped to a different
    branch or category is skipped. Ties go to the highest id. Without a
    match the built-in default table applies.
    """
    best: EntitlementCandidate | None = None
    best_score = -1

    for candidate in candidates:
        if not candidate.is_active or candidate.leave_type != leave_type or candidate.year != year:
            continue

        score = 0
        if candidate.branch_id is not None:
            if candidate.branch_id != branch_id:
                continue
            score += 2
        if candidate.category is not None:
            if candidate.category != category:
                continue
            score += 1

        if score > best_score or (score == best_score and best is not None and candidate.id > best.id):
            best = candidate
            best_score = score

    if best is not None:
        return ResolvedEntitlement(
            leave_type=leave_type,
            year=year,
            total_days=Decimal(best.total_days),
            entitlement_id=best.id,
        )

    return ResolvedEntitlement(
        leave_type=leave_type,
        year=year,
        total_days=DEFAULT_LEAVE_ENTITLEMENTS.get(leave_type, Decimal("0")),
        fallback=PolicyResolutionFallback(
            policy="leave_entitlement",
            reason=f"no entitlement configured for {leave_type} {year}; using default",
            branch_id=branch_id,
        ),
    )


class PolicyResolver:
    """Storage-backed resolver for calendars and leave entitlements."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_calendar(
        self,
        branch_id: int | None,
        site_id: str | None,
        month: int,
        year: int,
    ) -> ResolvedCalendar:
        """Resolve the calendar governing a month for a branch and site."""
        first, last = month_bounds(month, year)

        result = await self.session.execute(
            select(WorkCalendar).where(
                WorkCalendar.branch_id == (branch_id or 0),
                WorkCalendar.is_active.is_(True),
            )
        )
        candidates = [
            CalendarCandidate(
                id=row.id,
                branch_id=row.branch_id,
                site_id=row.site_id,
                effective_from=row.effective_from,
                effective_to=row.effective_to,
                weekend_days=tuple(row.weekend_days or ()),
                is_active=row.is_active,
            )
            for row in result.scalars().all()
        ]

        selected = select_calendar(candidates, branch_id, site_id, first)

        holidays: list[HolidayEntry] = []
        if selected is not None:
            holiday_rows = await self.session.execute(
                select(WorkCalendarHoliday).where(
                    WorkCalendarHoliday.calendar_id == selected.id,
                    WorkCalendarHoliday.holiday_date >= first,
                    WorkCalendarHoliday.holiday_date <= last,
                )
            )
            holidays = [
                HolidayEntry(h.holiday_date, h.is_working_day_override)
                for h in holiday_rows.scalars().all()
            ]

        resolved = build_resolved_calendar(selected, holidays, branch_id, site_id)
        if resolved.fallback is not None:
            logger.warning(
                "Policy fallback (%s) for branch=%s site=%s %04d-%02d: %s",
                resolved.fallback.policy,
                branch_id,
                site_id,
                year,
                month,
                resolved.fallback.reason,
            )
        return resolved

    async def get_working_days_in_month(
        self,
        branch_id: int | None,
        site_id: str | None,
        month: int,
        year: int,
    ) -> int:
        """Number of working days in a month for a branch and site."""
        resolved = await self.resolve_calendar(branch_id, site_id, month, year)
        return count_working_days(resolved, month, year)

    async def get_leave_entitlement(
        self,
        leave_type: str,
        year: int,
        branch_id: int | None = None,
        category: str | None = None,
    ) -> ResolvedEntitlement:
        """Resolve the total days allotted for a leave type and year."""
        result = await self.session.execute(
            select(LeavePolicyEntitlement).where(
                LeavePolicyEntitlement.leave_type == leave_type,
                LeavePolicyEntitlement.year == year,
                LeavePolicyEntitlement.is_active.is_(True),
            )
        )
        candidates = [
            EntitlementCandidate(
                id=row.id,
                leave_type=row.leave_type,
                year=row.year,
                total_days=row.total_days,
                branch_id=row.branch_id,
                category=row.category,
                is_active=row.is_active,
            )
            for row in result.scalars().all()
        ]

        resolved = select_entitlement(candidates, leave_type, year, branch_id, category)
        if resolved.fallback is not None:
            logger.warning(
                "Policy fallback (%s) for branch=%s category=%s: %s",
                resolved.fallback.policy,
                branch_id,
                category,
                resolved.fallback.reason,
            )
        return resolved
