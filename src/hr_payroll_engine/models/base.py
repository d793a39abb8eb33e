"""Base model class for SQLAlchemy ORM."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def now_naive() -> datetime:
    """Wall-clock timestamp stored without tzinfo (SQLite keeps naive values)."""
    return datetime.now()


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        datetime: DateTime(timezone=False),
    }

    def to_dict(self) -> dict[str, Any]:
        """Convert model to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-safe dictionary used for audit before/after snapshots."""
        snapshot: dict[str, Any] = {}
        for key, value in self.to_dict().items():
            if isinstance(value, (date, datetime)):
                snapshot[key] = value.isoformat()
            elif isinstance(value, Decimal):
                snapshot[key] = str(value)
            else:
                snapshot[key] = value
        return snapshot


class TimestampMixin:
    """Mixin for models with created_at/updated_at timestamps.

    Neither column updates itself: services stamp ``updated_at`` explicitly so
    that metadata-only writes (e.g. migration linkage) leave timestamps intact.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        default=now_naive,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        default=now_naive,
        nullable=False,
    )
