"""SQLAlchemy enum definitions for the database schema."""

import enum

from sqlalchemy import Enum as SQLEnum


# =====================================================
# Python Enum Classes
# =====================================================


class SessionStatus(str, enum.Enum):
    scheduled = "scheduled"
    cancelled = "cancelled"
    completed = "completed"


class ReminderType(str, enum.Enum):
    reminder_24h = "reminder_24h"
    reminder_3h = "reminder_3h"
    reminder_30m = "reminder_30m"


class LedgerState(str, enum.Enum):
    claimed = "claimed"
    sent = "sent"
    failed = "failed"


class ChannelKind(str, enum.Enum):
    telegram_group = "telegram_group"
    telegram_channel = "telegram_channel"
    email = "email"


class DeliveryStatus(str, enum.Enum):
    success = "success"
    transient_failure = "transient_failure"
    permanent_failure = "permanent_failure"


# =====================================================
# SQLAlchemy Enum Types
# These reference PostgreSQL types created by migrations (create_type=False)
# =====================================================

session_status_enum = SQLEnum(
    SessionStatus, name="session_status", create_type=False, native_enum=True
)
reminder_type_enum = SQLEnum(
    ReminderType, name="reminder_type", create_type=False, native_enum=True
)
ledger_state_enum = SQLEnum(
    LedgerState, name="ledger_state", create_type=False, native_enum=True
)
channel_kind_enum = SQLEnum(
    ChannelKind, name="channel_kind", create_type=False, native_enum=True
)
delivery_status_enum = SQLEnum(
    DeliveryStatus, name="delivery_status", create_type=False, native_enum=True
)
