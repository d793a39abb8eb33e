"""Tests for the leave ledger."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from hr_payroll_engine.errors import (
    EmployeeNotFoundError,
    InvalidLeaveTransitionError,
    LeaveAlreadyStartedError,
)
from hr_payroll_engine.models import LeavePolicyEntitlement
from hr_payroll_engine.services.leave_service import (
    LeaveService,
    available_days,
    default_entitlement,
)


async def _apply(service, employee_id, leave_type="Casual", start=date(2025, 4, 10), end=date(2025, 4, 11), **kwargs):
    return await service.apply_leave(employee_id, leave_type, start, end, **kwargs)


class TestApplyLeave:
    async def test_defaults(self, session, employee):
        leave = await _apply(LeaveService(session), employee.id, reason="Family function")

        assert leave.status == "Applied"
        assert leave.number_of_days == Decimal("2")
        assert leave.entitlement == "Paid"
        assert leave.branch_id == employee.branch_id
        assert leave.applied_on is not None

    async def test_loss_of_pay_defaults_to_unpaid(self, session, employee):
        leave = await _apply(LeaveService(session), employee.id, "Loss of Pay")
        assert leave.entitlement == "Unpaid"
        assert default_entitlement("Sick") == "Paid"

    async def test_explicit_half_day(self, session, employee):
        leave = await _apply(
            LeaveService(session),
            employee.id,
            start=date(2025, 4, 10),
            end=date(2025, 4, 10),
            number_of_days=0.5,
        )
        assert leave.number_of_days == Decimal("0.5")

    async def test_end_before_start(self, session, employee):
        with pytest.raises(ValueError):
            await _apply(LeaveService(session), employee.id, start=date(2025, 4, 11), end=date(2025, 4, 10))

    async def test_unknown_employee(self, session):
        with pytest.raises(EmployeeNotFoundError):
            await _apply(LeaveService(session), 404)

    async def test_overlapping_applications_are_accepted(self, session, employee):
        service = LeaveService(session)
        await _apply(service, employee.id)
        await _apply(service, employee.id, "Sick")

        assert len(await service.get_pending_leaves()) == 2


class TestLeaveDecisions:
    async def test_approve(self, session, employee):
        service = LeaveService(session)
        leave = await _apply(service, employee.id)

        approved = await service.approve_leave(leave.id, approver=50, remarks="ok")

        assert approved.status == "Approved"
        assert approved.approved_by == 50
        assert approved.approved_on is not None
        assert approved.approval_remarks == "ok"

    async def test_reject(self, session, employee):
        service = LeaveService(session)
        leave = await _apply(service, employee.id)

        rejected = await service.reject_leave(leave.id, reason="Peak season", actor=50)

        assert rejected.status == "Rejected"
        assert rejected.rejection_reason == "Peak season"

    @pytest.mark.parametrize("decide", ["approve", "reject"])
    async def test_decided_leave_is_terminal(self, session, employee, decide):
        service = LeaveService(session)
        leave = await _apply(service, employee.id)
        if decide == "approve":
            await service.approve_leave(leave.id, approver=50)
        else:
            await service.reject_leave(leave.id)

        with pytest.raises(InvalidLeaveTransitionError):
            await service.approve_leave(leave.id, approver=50)
        with pytest.raises(InvalidLeaveTransitionError):
            await service.reject_leave(leave.id)
        with pytest.raises(InvalidLeaveTransitionError):
            await service.cancel_leave(leave.id, today=date(2025, 4, 1))

    async def test_cancel_before_start(self, session, employee):
        service = LeaveService(session)
        leave = await _apply(service, employee.id)

        cancelled = await service.cancel_leave(leave.id, today=date(2025, 4, 9))

        assert cancelled.status == "Cancelled"

    @pytest.mark.parametrize("today", [date(2025, 4, 10), date(2025, 4, 12)])
    async def test_cancel_started_leave(self, session, employee, today):
        service = LeaveService(session)
        leave = await _apply(service, employee.id)

        with pytest.raises(LeaveAlreadyStartedError):
            await service.cancel_leave(leave.id, today=today)

        assert leave.status == "Applied"


class TestLeaveBalance:
    async def test_default_entitlement_minus_approved(self, session, employee):
        service = LeaveService(session)
        first = await _apply(service, employee.id, start=date(2025, 2, 3), end=date(2025, 2, 5))
        await service.approve_leave(first.id, approver=50)
        # Pending and rejected leaves don't count
        await _apply(service, employee.id, start=date(2025, 3, 3), end=date(2025, 3, 3))
        rejected = await _apply(service, employee.id, start=date(2025, 3, 10), end=date(2025, 3, 10))
        await service.reject_leave(rejected.id)

        balance = await service.get_leave_balance(employee.id, "Casual", 2025)

        assert balance.total == Decimal("12")
        assert balance.used == Decimal("3")
        assert balance.available == Decimal("9")
        assert balance.fallback.policy == "leave_entitlement"

    async def test_other_years_dont_count(self, session, employee):
        service = LeaveService(session)
        leave = await _apply(service, employee.id, start=date(2024, 12, 30), end=date(2024, 12, 31))
        await service.approve_leave(leave.id, approver=50)

        balance = await service.get_leave_balance(employee.id, "Casual", 2025)

        assert balance.used == Decimal("0")

    async def test_configured_entitlement(self, session, employee):
        session.add(
            LeavePolicyEntitlement(
                leave_type="Sick",
                year=2025,
                branch_id=employee.branch_id,
                category=employee.category,
                total_days=Decimal("2"),
            )
        )
        await session.flush()
        service = LeaveService(session)
        leave = await _apply(service, employee.id, "Sick", start=date(2025, 6, 2), end=date(2025, 6, 4))
        await service.approve_leave(leave.id, approver=50)

        balance = await service.get_leave_balance(employee.id, "Sick", 2025)

        assert balance.total == Decimal("2")
        assert balance.used == Decimal("3")
        assert balance.available == Decimal("0")
        assert balance.fallback is None

    async def test_loss_of_pay_has_no_balance(self, session, employee):
        service = LeaveService(session)
        leave = await _apply(service, employee.id, "Loss of Pay")
        await service.approve_leave(leave.id, approver=50)

        balance = await service.get_leave_balance(employee.id, "Loss of Pay", 2025)

        assert balance.total == Decimal("0")
        assert balance.used == Decimal("2")
        assert balance.available == Decimal("0")
        assert balance.fallback is None

    def test_available_days(self):
        assert available_days("Casual", Decimal("12"), Decimal("5")) == Decimal("7")
        assert available_days("Casual", Decimal("2"), Decimal("5")) == Decimal("0")
        assert available_days("Loss of Pay", Decimal("10"), Decimal("0")) == Decimal("0")


class TestLeaveQueries:
    async def test_pending_most_recent_first(self, session, employee):
        service = LeaveService(session)
        older = await _apply(service, employee.id, at=datetime(2025, 4, 1, 9, 0))
        newer = await _apply(service, employee.id, "Sick", at=datetime(2025, 4, 2, 9, 0))

        pending = await service.get_pending_leaves()

        assert [leave.id for leave in pending] == [newer.id, older.id]

    async def test_on_leave_employees(self, session, make_employee):
        away = await make_employee(name="Asha")
        pending = await make_employee(name="Vikram")
        service = LeaveService(session)
        leave = await _apply(service, away.id)
        await service.approve_leave(leave.id, approver=50)
        await _apply(service, pending.id)

        assert await service.get_on_leave_employees(date(2025, 4, 11)) == [away.id]
        assert await service.get_on_leave_employees(date(2025, 4, 12)) == []

    async def test_employee_leaves_for_month(self, session, employee):
        service = LeaveService(session)
        spanning = await _apply(service, employee.id, start=date(2025, 3, 30), end=date(2025, 4, 2))
        april = await _apply(service, employee.id, start=date(2025, 4, 20), end=date(2025, 4, 21))
        await _apply(service, employee.id, start=date(2025, 6, 2), end=date(2025, 6, 2))

        leaves = await service.get_employee_leaves(employee.id, month=4, year=2025)

        assert [leave.id for leave in leaves] == [april.id, spanning.id]
        assert len(await service.get_employee_leaves(employee.id)) == 3

    async def test_history_excludes_pending(self, session, employee):
        service = LeaveService(session)
        decided = await _apply(service, employee.id)
        await service.reject_leave(decided.id)
        await _apply(service, employee.id, "Sick")

        history = await service.get_leave_history(employee.id)

        assert [leave.id for leave in history] == [decided.id]

    async def test_approved_leaves_in_range(self, session, employee):
        service = LeaveService(session)
        spanning = await _apply(service, employee.id, start=date(2025, 3, 30), end=date(2025, 4, 2))
        await service.approve_leave(spanning.id, approver=50)
        await _apply(service, employee.id, start=date(2025, 4, 20), end=date(2025, 4, 21))

        leaves = await service.get_approved_leaves_in_range(employee.id, date(2025, 4, 1), date(2025, 4, 30))

        assert [leave.id for leave in leaves] == [spanning.id]
