"""Lifecycle state machines with transition validation.

Each HR entity with a lifecycle gets an explicit transition table and a single
``can_transition(from, to)`` predicate. Guards and services consult these
instead of comparing status strings at call sites.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from hr_payroll_engine.errors import InvalidTransitionError
from hr_payroll_engine.models.enums import (
    LeaveStatus,
    PayrollRunStatus,
    SalarySheetStatus,
)


class AttendanceLockState(str, Enum):
    """Attendance lock state, derived from the approval markers."""

    UNLOCKED = "Unlocked"
    LOCKED = "Locked"


def _value(status: str | Enum) -> str:
    return status.value if isinstance(status, Enum) else status


class _StateMachine:
    """Shared transition-table behaviour."""

    ENTITY: ClassVar[str] = "entity"
    VALID_TRANSITIONS: ClassVar[dict[str, list[str]]] = {}

    @classmethod
    def can_transition(cls, from_status: str | Enum, to_status: str | Enum) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(_value(from_status), [])
        return _value(to_status) in allowed

    @classmethod
    def validate_transition(
        cls,
        from_status: str | Enum,
        to_status: str | Enum,
        reason: str | None = None,
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                cls.ENTITY, _value(from_status), _value(to_status), reason
            )

    @classmethod
    def get_next_statuses(cls, current_status: str | Enum) -> list[str]:
        """Get list of valid next statuses from current status."""
        return list(cls.VALID_TRANSITIONS.get(_value(current_status), []))

    @classmethod
    def is_terminal(cls, status: str | Enum) -> bool:
        return not cls.VALID_TRANSITIONS.get(_value(status))


class AttendanceLockStateMachine(_StateMachine):
    """Unlocked → Locked (approval). Locked is terminal."""

    ENTITY = "attendance"
    VALID_TRANSITIONS = {
        AttendanceLockState.UNLOCKED.value: [AttendanceLockState.LOCKED.value],
        AttendanceLockState.LOCKED.value: [],
    }

    @staticmethod
    def state_of(approved_by: object, approved_at: object) -> AttendanceLockState:
        if approved_by is not None or approved_at is not None:
            return AttendanceLockState.LOCKED
        return AttendanceLockState.UNLOCKED

    @classmethod
    def is_mutable(cls, state: str | Enum) -> bool:
        return _value(state) == AttendanceLockState.UNLOCKED.value


class LeaveStateMachine(_StateMachine):
    """Applied → Approved | Rejected | Cancelled; all three are terminal."""

    ENTITY = "leave"
    VALID_TRANSITIONS = {
        LeaveStatus.APPLIED.value: [
            LeaveStatus.APPROVED.value,
            LeaveStatus.REJECTED.value,
            LeaveStatus.CANCELLED.value,
        ],
        LeaveStatus.APPROVED.value: [],
        LeaveStatus.REJECTED.value: [],
        LeaveStatus.CANCELLED.value: [],
    }


class SalarySheetStateMachine(_StateMachine):
    """Calculated → Approved → Paid."""

    ENTITY = "salary sheet"
    VALID_TRANSITIONS = {
        SalarySheetStatus.CALCULATED.value: [SalarySheetStatus.APPROVED.value],
        SalarySheetStatus.APPROVED.value: [SalarySheetStatus.PAID.value],
        SalarySheetStatus.PAID.value: [],
    }

    # Statuses where amounts may be recalculated or edited
    MUTABLE = {SalarySheetStatus.CALCULATED.value}

    @classmethod
    def is_mutable(cls, status: str | Enum) -> bool:
        return _value(status) in cls.MUTABLE

    @classmethod
    def is_payable(cls, status: str | Enum) -> bool:
        return cls.can_transition(status, SalarySheetStatus.PAID)


class PayrollRunStateMachine(_StateMachine):
    """State machine for payroll run status transitions.

    Allowed transitions (forward only):
    - Draft → Reviewed
    - Draft → Locked
    - Reviewed → Locked
    - Locked → Paid
    - Paid → Archived
    """

    ENTITY = "payroll run"
    VALID_TRANSITIONS = {
        PayrollRunStatus.DRAFT.value: [
            PayrollRunStatus.REVIEWED.value,
            PayrollRunStatus.LOCKED.value,
        ],
        PayrollRunStatus.REVIEWED.value: [PayrollRunStatus.LOCKED.value],
        PayrollRunStatus.LOCKED.value: [PayrollRunStatus.PAID.value],
        PayrollRunStatus.PAID.value: [PayrollRunStatus.ARCHIVED.value],
        PayrollRunStatus.ARCHIVED.value: [],  # Terminal state
    }

    # Statuses where sheets may be generated, edited or approved
    MUTABLE = {PayrollRunStatus.DRAFT.value, PayrollRunStatus.REVIEWED.value}

    # Statuses from which locking is refused
    UNLOCKABLE = {PayrollRunStatus.PAID.value, PayrollRunStatus.ARCHIVED.value}

    @classmethod
    def is_mutable(cls, status: str | Enum) -> bool:
        return _value(status) in cls.MUTABLE

    @classmethod
    def is_lockable(cls, status: str | Enum) -> bool:
        return _value(status) not in cls.UNLOCKABLE

    @classmethod
    def is_final(cls, status: str | Enum) -> bool:
        """Locked, Paid and Archived runs block recalculation."""
        return not cls.is_mutable(status)
