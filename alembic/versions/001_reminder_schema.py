"""Reminder schema: class sessions, dispatch ledger, delivery log

Revision ID: 001
Revises:
Create Date: 2026-10-12

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUMS = {
    "session_status": ("scheduled", "cancelled", "completed"),
    "reminder_type": ("reminder_24h", "reminder_3h", "reminder_30m"),
    "ledger_state": ("claimed", "sent", "failed"),
    "channel_kind": ("telegram_group", "telegram_channel", "email"),
    "delivery_status": ("success", "transient_failure", "permanent_failure"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    for name, values in ENUMS.items():
        quoted = ", ".join(f"'{v}'" for v in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({quoted})")

    op.create_table(
        "class_sessions",
        sa.Column("session_id", sa.Text(), nullable=False),
        sa.Column("class_name", sa.Text(), nullable=False),
        sa.Column("session_title", sa.Text(), nullable=True),
        sa.Column("session_number", sa.Integer(), nullable=True),
        sa.Column("scheduled_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "status",
            _enum("session_status"),
            nullable=False,
            server_default="scheduled",
        ),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("session_id", name="pk_class_sessions"),
    )
    op.create_index(
        "idx_class_sessions_scheduled_at", "class_sessions", ["scheduled_at"]
    )

    op.create_table(
        "reminder_dispatches",
        sa.Column("dispatch_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Text(), nullable=False),
        sa.Column("reminder_type", _enum("reminder_type"), nullable=False),
        sa.Column("state", _enum("ledger_state"), nullable=False),
        sa.Column("claim_token", sa.Text(), nullable=False),
        sa.Column("claimed_at", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("session_scheduled_at", postgresql.TIMESTAMP(timezone=True)),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True)),
        sa.Column("error_message", sa.Text()),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("dispatch_id", name="pk_reminder_dispatches"),
        # The claim: at most one ledger row per (session, reminder type)
        sa.UniqueConstraint(
            "session_id",
            "reminder_type",
            name="uq_reminder_dispatches_session_id_reminder_type",
        ),
    )
    op.create_index(
        "idx_reminder_dispatches_state_claimed_at",
        "reminder_dispatches",
        ["state", "claimed_at"],
    )
    op.create_index(
        "idx_reminder_dispatches_created_at", "reminder_dispatches", ["created_at"]
    )

    op.create_table(
        "reminder_delivery_log",
        sa.Column("log_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("dispatch_id", sa.Integer(), nullable=False),
        sa.Column("channel", _enum("channel_kind"), nullable=False),
        sa.Column("destination", sa.Text(), nullable=False),
        sa.Column("status", _enum("delivery_status"), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text()),
        sa.Column(
            "logged_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("log_id", name="pk_reminder_delivery_log"),
        sa.ForeignKeyConstraint(
            ["dispatch_id"],
            ["reminder_dispatches.dispatch_id"],
            name="fk_reminder_delivery_log_dispatch_id_reminder_dispatches",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "idx_reminder_delivery_log_dispatch_id",
        "reminder_delivery_log",
        ["dispatch_id"],
    )


def downgrade() -> None:
    op.drop_index(
        "idx_reminder_delivery_log_dispatch_id", table_name="reminder_delivery_log"
    )
    op.drop_table("reminder_delivery_log")
    op.drop_index(
        "idx_reminder_dispatches_created_at", table_name="reminder_dispatches"
    )
    op.drop_index(
        "idx_reminder_dispatches_state_claimed_at", table_name="reminder_dispatches"
    )
    op.drop_table("reminder_dispatches")
    op.drop_index("idx_class_sessions_scheduled_at", table_name="class_sessions")
    op.drop_table("class_sessions")

    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE {name}")
