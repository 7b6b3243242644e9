"""Root pytest configuration."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load environment variables before tests run
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)


@pytest.fixture(autouse=True)
def isolate_external_services(monkeypatch):
    """Keep tests off the real database, Sentry and the shared HTTP client.

    Tests that need a database use the ledger_db fixture, which installs
    its own engine on top of this.
    """
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    monkeypatch.setattr("core.database._engine", None)
    monkeypatch.setattr("core.notifications.channels.telegram._client", None)
