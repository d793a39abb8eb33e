"""Append-only audit trail."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll_engine.models import AuditLogEntry, Base, now_naive

logger = logging.getLogger(__name__)


def serialize_snapshot(value: Any) -> str | None:
    """Serialize an old/new snapshot into an opaque JSON blob."""
    if value is None:
        return None
    if isinstance(value, Base):
        value = value.to_snapshot()
    return json.dumps(value, sort_keys=True, default=str)


class AuditTrail:
    """Writes audit entries as a side effect of HR operations.

    ``log_event`` is fire-and-forget: the insert runs in its own SAVEPOINT and
    a storage failure is logged rather than propagated, so the primary
    operation is never aborted by the audit sink.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_event(
        self,
        module: str,
        action: str | Enum,
        *,
        entity_type: str | None = None,
        entity_id: int | None = None,
        old_value: Any = None,
        new_value: Any = None,
        actor: int | None = None,
        branch_id: int | None = None,
        reason: str | None = None,
        timestamp: datetime | None = None,
    ) -> AuditLogEntry | None:
        """Record an audit event. Returns the entry, or None if it could not be written."""
        entry = AuditLogEntry(
            module=module,
            action=action.value if isinstance(action, Enum) else action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=serialize_snapshot(old_value),
            new_value=serialize_snapshot(new_value),
            actor_id=actor,
            branch_id=branch_id,
            reason=reason,
            timestamp=timestamp or now_naive(),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(entry)
                await self.session.flush()
        except SQLAlchemyError:
            logger.exception(
                "Failed to write audit entry %s/%s for %s %s",
                module,
                entry.action,
                entity_type,
                entity_id,
            )
            return None
        return entry
