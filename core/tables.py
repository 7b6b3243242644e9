"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP

from .enums import (
    channel_kind_enum,
    delivery_status_enum,
    ledger_state_enum,
    reminder_type_enum,
    session_status_enum,
)

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. CLASS_SESSIONS
# Owned by the course platform. Read-only here.
# =====================================================
class_sessions = Table(
    "class_sessions",
    metadata,
    Column("session_id", Text, primary_key=True),
    Column("class_name", Text, nullable=False),
    Column("session_title", Text),
    Column("session_number", Integer),
    Column("scheduled_at", TIMESTAMP(timezone=True), nullable=False),
    Column("status", session_status_enum, nullable=False, server_default="scheduled"),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_class_sessions_scheduled_at", "scheduled_at"),
)


# =====================================================
# 2. REMINDER_DISPATCHES (delivery ledger)
# One row per (session, reminder type). The unique constraint is the claim.
# =====================================================
reminder_dispatches = Table(
    "reminder_dispatches",
    metadata,
    Column("dispatch_id", Integer, primary_key=True, autoincrement=True),
    Column("session_id", Text, nullable=False),
    Column("reminder_type", reminder_type_enum, nullable=False),
    Column("state", ledger_state_enum, nullable=False),
    Column("claim_token", Text, nullable=False),  # uuid of the owning claim
    Column("claimed_at", TIMESTAMP(timezone=True), nullable=False),
    Column("attempts", Integer, nullable=False, server_default="1"),
    Column("session_scheduled_at", TIMESTAMP(timezone=True)),
    Column("completed_at", TIMESTAMP(timezone=True)),
    Column("error_message", Text),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint(
        "session_id",
        "reminder_type",
        name="uq_reminder_dispatches_session_id_reminder_type",
    ),
    Index("idx_reminder_dispatches_state_claimed_at", "state", "claimed_at"),
    Index("idx_reminder_dispatches_created_at", "created_at"),
)


# =====================================================
# 3. REMINDER_DELIVERY_LOG
# Per-target results, written together with the ledger commit.
# =====================================================
reminder_delivery_log = Table(
    "reminder_delivery_log",
    metadata,
    Column("log_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "dispatch_id",
        Integer,
        ForeignKey("reminder_dispatches.dispatch_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("channel", channel_kind_enum, nullable=False),
    Column("destination", Text, nullable=False),
    Column("status", delivery_status_enum, nullable=False),
    Column("attempts", Integer, nullable=False),
    Column("error_message", Text),  # Why it failed (if applicable)
    Column("logged_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_reminder_delivery_log_dispatch_id", "dispatch_id"),
)
