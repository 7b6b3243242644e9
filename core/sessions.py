"""
Read-only access to scheduled class sessions.

The course platform owns class_sessions; this service only ever selects
from it.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from .database import get_connection
from .enums import SessionStatus
from .tables import class_sessions
from .timezone import ensure_utc


@dataclass(frozen=True)
class ClassSession:
    """A scheduled class session as seen by the reminder service."""

    session_id: str
    class_name: str
    scheduled_at: datetime  # Aware, UTC
    status: SessionStatus = SessionStatus.scheduled
    session_title: str | None = None
    session_number: int | None = None


def _row_to_session(row) -> ClassSession:
    return ClassSession(
        session_id=str(row["session_id"]),
        class_name=row["class_name"],
        scheduled_at=ensure_utc(row["scheduled_at"]),
        status=SessionStatus(row["status"]),
        session_title=row["session_title"],
        session_number=row["session_number"],
    )


async def list_sessions_between(start: datetime, end: datetime) -> list[ClassSession]:
    """
    List sessions whose scheduled start falls in [start, end], soonest first.

    Every status is returned; callers decide what is eligible.
    """
    query = (
        select(class_sessions)
        .where(class_sessions.c.scheduled_at >= start)
        .where(class_sessions.c.scheduled_at <= end)
        .order_by(class_sessions.c.scheduled_at)
    )
    async with get_connection() as conn:
        result = await conn.execute(query)
        return [_row_to_session(row) for row in result.mappings()]
