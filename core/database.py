"""
Async database access for the reminder service (SQLAlchemy Core).

One engine per process, created lazily from DATABASE_URL. Production runs
on Postgres through asyncpg; the ledger tables sit next to the course
platform's class_sessions table in the same database.
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .tables import metadata  # noqa: F401 - exported for Alembic

_engine: AsyncEngine | None = None

# Supabase's transaction pooler listens here and cannot use prepared statements
TRANSACTION_POOLER_PORT = 6543


def _get_database_url() -> str:
    """
    Read DATABASE_URL and select the async driver.

    postgresql://... becomes postgresql+asyncpg://...; URLs that already
    name a driver are used as given.
    """
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set")

    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://"):]
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def _engine_options(database_url: str) -> dict:
    url = make_url(database_url)
    options: dict = {"echo": os.environ.get("SQL_ECHO", "").lower() == "true"}

    if url.get_backend_name() != "postgresql":
        return options

    options.update(
        pool_size=int(os.environ.get("DB_POOL_SIZE", "5")),
        max_overflow=5,
        pool_timeout=10,
        pool_recycle=1800,
        pool_pre_ping=True,
    )
    if url.port == TRANSACTION_POOLER_PORT:
        options["connect_args"] = {"statement_cache_size": 0}
    return options


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        database_url = _get_database_url()
        _engine = create_async_engine(database_url, **_engine_options(database_url))
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """
    Connection for reads.

    Usage:
        async with get_connection() as conn:
            rows = (await conn.execute(select(class_sessions))).mappings().all()
    """
    async with get_engine().connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """
    Connection inside a transaction: commits on exit, rolls back on error.

    Every ledger write goes through here so a claim, takeover or commit is
    a single atomic step.
    """
    async with get_engine().begin() as conn:
        yield conn


async def close_engine() -> None:
    """Dispose of the engine's pool. Call on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    return bool(os.environ.get("DATABASE_URL"))


def get_sync_database_url() -> str:
    """
    psycopg2 URL for Alembic, which runs migrations synchronously.

    Raises:
        ValueError: If DATABASE_URL is missing or not a Postgres URL
    """
    database_url = os.environ.get("DATABASE_URL", "")
    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://"):]

    if database_url.startswith("postgresql+asyncpg://"):
        return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)
    if database_url.startswith("postgresql://"):
        return database_url

    raise ValueError("DATABASE_URL must be a postgresql:// URL for migrations")
