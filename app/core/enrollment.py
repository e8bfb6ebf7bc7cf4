"""Enrollment validity windows on memberships."""

from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import ColumnElement, and_, or_

from app.core.exceptions import InvalidAccessInputError


class Enrollment(Protocol):
    """Anything carrying an enrollment window (schemas and ORM rows alike)."""

    enrollment_start: datetime
    enrollment_end: datetime | None


def ensure_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC. Naive values are rejected."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise InvalidAccessInputError(f"Timestamp must be timezone aware: {value.isoformat()}")
    return value.astimezone(timezone.utc)


def is_enrollment_active(membership: Enrollment, now: datetime) -> bool:
    """Check if a membership is active at *now* (both bounds inclusive)."""
    now = ensure_utc(now)
    if ensure_utc(membership.enrollment_start) > now:
        return False
    end = membership.enrollment_end
    return end is None or ensure_utc(end) >= now


def enrollment_active_clause(table: Any, now: datetime) -> ColumnElement[bool]:
    """SQL condition equivalent to is_enrollment_active() for a membership table."""
    now = ensure_utc(now)
    return and_(
        table.enrollment_start <= now,
        or_(table.enrollment_end.is_(None), table.enrollment_end >= now),
    )
