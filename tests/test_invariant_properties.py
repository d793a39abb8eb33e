"""Property-based tests for HR engine invariants.

These use hypothesis to generate calendars, leave ranges, statuses and
balances, and check that the pure rules behind the services always hold.
"""

from __future__ import annotations

import calendar as _calendar
from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from hr_payroll_engine.calculators.engine import leave_days_in_month
from hr_payroll_engine.calculators.policy_resolver import (
    build_resolved_calendar,
    count_working_days,
    select_calendar,
)
from hr_payroll_engine.calculators.types import CalendarCandidate, HolidayEntry, ResolvedCalendar
from hr_payroll_engine.models import Leave
from hr_payroll_engine.models.enums import LeaveStatus, PayrollRunStatus, SalarySheetStatus
from hr_payroll_engine.services.integrity import fnv1a_32
from hr_payroll_engine.services.leave_service import available_days
from hr_payroll_engine.services.migration import infer_run_status
from hr_payroll_engine.services.state_machine import (
    LeaveStateMachine,
    PayrollRunStateMachine,
)

months = st.integers(min_value=1, max_value=12)
years = st.integers(min_value=2000, max_value=2100)
weekday_sets = st.frozensets(st.integers(min_value=0, max_value=6))
day_counts = st.decimals(min_value=0, max_value=400, places=1, allow_nan=False, allow_infinity=False)
site_ids = st.sampled_from([None, "SITE-A", "SITE-B"])
calendar_dates = st.dates(min_value=date(2023, 1, 1), max_value=date(2026, 12, 31))

calendar_candidates = st.builds(
    CalendarCandidate,
    id=st.integers(min_value=1, max_value=1000),
    branch_id=st.integers(min_value=0, max_value=3),
    site_id=site_ids,
    effective_from=calendar_dates,
    effective_to=st.none() | calendar_dates,
    is_active=st.booleans(),
)


def _days_of(month: int, year: int) -> list[date]:
    last = _calendar.monthrange(year, month)[1]
    return [date(year, month, d) for d in range(1, last + 1)]


def _calendar_with(weekend: frozenset[int]) -> CalendarCandidate:
    return CalendarCandidate(
        id=1,
        branch_id=1,
        site_id=None,
        effective_from=date(2000, 1, 1),
        weekend_days=tuple(weekend),
    )


# =============================================================================
# State machines
# =============================================================================


class TestLifecycleProperties:
    @given(st.sampled_from(list(LeaveStatus)), st.sampled_from(list(LeaveStatus)))
    def test_leave_changes_only_from_applied(self, from_status, to_status):
        allowed = LeaveStateMachine.can_transition(from_status, to_status)
        assert allowed == (from_status == LeaveStatus.APPLIED and to_status != LeaveStatus.APPLIED)

    @given(st.lists(st.sampled_from(list(PayrollRunStatus)), min_size=1, max_size=10))
    def test_run_status_never_moves_backwards(self, path):
        order = [s.value for s in PayrollRunStatus]
        for current, target in zip(path, path[1:]):
            if PayrollRunStateMachine.can_transition(current, target):
                assert order.index(target.value) > order.index(current.value)

    @given(st.lists(st.sampled_from([s.value for s in SalarySheetStatus]), max_size=20))
    def test_inferred_run_status(self, statuses):
        inferred = infer_run_status(statuses)
        if "Paid" in statuses:
            assert inferred == "Paid"
        elif "Approved" in statuses:
            assert inferred == "Locked"
        else:
            assert inferred == "Draft"


# =============================================================================
# Working days
# =============================================================================


class TestWorkingDayProperties:
    @given(weekday_sets, months, years)
    def test_plain_calendar_counts_non_weekend_days(self, weekend, month, year):
        resolved = ResolvedCalendar(calendar_id=1, weekend_days=weekend)

        expected = sum(1 for day in _days_of(month, year) if day.weekday() not in weekend)

        assert count_working_days(resolved, month, year) == expected

    @given(weekday_sets, months, years, st.data())
    def test_count_within_month_length(self, weekend, month, year, data):
        days = _days_of(month, year)
        holidays = data.draw(st.lists(st.sampled_from(days), max_size=10))
        overrides = data.draw(st.lists(st.sampled_from(days), max_size=10))
        entries = [HolidayEntry(d) for d in holidays] + [HolidayEntry(d, True) for d in overrides]

        resolved = build_resolved_calendar(_calendar_with(weekend), entries)

        assert 0 <= count_working_days(resolved, month, year) <= len(days)

    @given(weekday_sets, months, years, st.data())
    def test_overrides_never_reduce_working_days(self, weekend, month, year, data):
        days = _days_of(month, year)
        overrides = data.draw(st.lists(st.sampled_from(days), max_size=10))
        candidate = _calendar_with(weekend)

        without = build_resolved_calendar(candidate)
        with_overrides = build_resolved_calendar(candidate, [HolidayEntry(d, True) for d in overrides])

        assert count_working_days(with_overrides, month, year) >= count_working_days(without, month, year)
        for day in overrides:
            assert with_overrides.is_working_day(day)

    @settings(max_examples=50)
    @given(
        st.lists(calendar_candidates, max_size=8, unique_by=lambda c: c.id),
        st.integers(min_value=0, max_value=3),
        site_ids,
        calendar_dates,
    )
    def test_selected_calendar_is_eligible(self, candidates, branch_id, site_id, as_of):
        selected = select_calendar(candidates, branch_id, site_id, as_of)
        if selected is None:
            return

        assert selected.is_active
        assert selected.branch_id == branch_id
        if site_id is not None:
            assert selected.site_id in (None, site_id)
        assert selected.effective_from <= as_of
        assert selected.effective_to is None or selected.effective_to >= as_of
        if selected.site_id is None:
            # A site calendar would have been preferred had one applied
            assert select_calendar(
                [c for c in candidates if c.site_id is not None], branch_id, site_id, as_of
            ) is None


# =============================================================================
# Leave arithmetic
# =============================================================================


class TestLeaveProperties:
    @given(
        st.dates(min_value=date(2020, 1, 1), max_value=date(2030, 12, 31)),
        st.integers(min_value=0, max_value=120),
    )
    def test_month_overlaps_cover_a_spanning_leave(self, start, length):
        end = start + timedelta(days=length)
        leave = Leave(from_date=start, to_date=end, number_of_days=Decimal(length + 1))

        total = Decimal(0)
        cursor = date(start.year, start.month, 1)
        while cursor <= end:
            total += leave_days_in_month(leave, cursor.month, cursor.year)
            cursor = (cursor.replace(day=28) + timedelta(days=4)).replace(day=1)

        assert total == Decimal(length + 1)

    @given(st.sampled_from(["Casual", "Sick", "Earned"]), day_counts, day_counts)
    def test_available_is_clamped_difference(self, leave_type, total, used):
        available = available_days(leave_type, total, used)

        assert available >= 0
        assert available <= total
        if used <= total:
            assert available == total - used

    @given(day_counts, day_counts)
    def test_loss_of_pay_never_has_balance(self, total, used):
        assert available_days("Loss of Pay", total, used) == 0


class TestHashProperties:
    @given(st.text())
    def test_fnv_digest_shape(self, text):
        digest = fnv1a_32(text)
        assert len(digest) == 8
        assert digest == digest.lower()
        int(digest, 16)
