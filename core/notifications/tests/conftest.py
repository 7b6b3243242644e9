"""Shared fixtures for reminder tests.

ledger_db swaps the module-level engine for a throwaway SQLite database so
ledger and orchestrator tests run real SQL, including the unique-constraint
claim race, without Postgres.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import create_async_engine

from core.config import ReminderSettings
from core.enums import SessionStatus
from core.tables import class_sessions, metadata


NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def ledger_db(tmp_path, monkeypatch):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'reminders.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    monkeypatch.setattr("core.database._engine", engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def settings():
    """Settings tuned for tests: no backoff waits, generous ledger timeout."""
    return ReminderSettings(
        send_max_attempts=3,
        send_timeout=2.0,
        ledger_timeout=30.0,
        time_budget=60.0,
        telegram_group_ids=("-1001",),
        telegram_channel_ids=("@academy",),
        email_recipients=("team@example.com",),
    )


@pytest.fixture
def add_session(ledger_db):
    """Insert a class session starting `starts_in` after NOW."""

    async def _add(
        session_id: str,
        starts_in: timedelta,
        *,
        status: SessionStatus = SessionStatus.scheduled,
        class_name: str = "Foundations of Faith",
        session_number: int | None = 3,
        session_title: str | None = "Prayer and Fasting",
    ) -> None:
        async with ledger_db.begin() as conn:
            await conn.execute(
                insert(class_sessions).values(
                    session_id=session_id,
                    class_name=class_name,
                    session_title=session_title,
                    session_number=session_number,
                    scheduled_at=NOW + starts_in,
                    status=status,
                )
            )

    return _add
