"""
Reminder window evaluation.

Pure functions: given the current time and a session, decide which reminder
types are due. Nothing here knows about the ledger; duplicates that a wide
window lets through are suppressed by the ledger claim.
"""

from datetime import datetime, timedelta
from typing import Iterable

from core.enums import ReminderType, SessionStatus
from core.notifications.types import ALL_REMINDER_TYPES, lead_time
from core.sessions import ClassSession


def widest_lead_time(
    reminder_types: Iterable[ReminderType] = ALL_REMINDER_TYPES,
) -> timedelta:
    """Largest lead time among reminder_types (zero when empty)."""
    return max((lead_time(r) for r in reminder_types), default=timedelta(0))


def is_window_open(
    now: datetime, scheduled_at: datetime, reminder_type: ReminderType
) -> bool:
    """
    Primary rule: 0 <= (start - now) <= lead time, inclusive at both ends.
    """
    remaining = scheduled_at - now
    return timedelta(0) <= remaining <= lead_time(reminder_type)


def due_reminder_types(
    now: datetime,
    session: ClassSession,
    reminder_types: Iterable[ReminderType] = ALL_REMINDER_TYPES,
    catch_up: bool = True,
) -> frozenset[ReminderType]:
    """
    Return the reminder types currently due for a session.

    With catch_up on, any session starting within the widest lead time has
    every reminder type as a candidate, so a missed cron tick (or a session
    created at short notice) never loses a reminder. With catch_up off only
    types whose own window is open are returned.

    Sessions that are not scheduled, or that have already started, are
    never due.
    """
    if session.status != SessionStatus.scheduled:
        return frozenset()

    reminder_types = tuple(reminder_types)
    remaining = session.scheduled_at - now
    if remaining < timedelta(0):
        return frozenset()

    if catch_up and remaining <= widest_lead_time(reminder_types):
        return frozenset(reminder_types)

    return frozenset(
        r for r in reminder_types if is_window_open(now, session.scheduled_at, r)
    )
