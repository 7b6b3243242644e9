# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Builds a bare FastAPI app with the cron router so tests exercise the
routes without the production lifespan (env checks, local trigger).
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from web_api.routes.cron import router as cron_router


@pytest.fixture(autouse=True)
def cron_env(monkeypatch):
    """Known cron credentials, nothing leaking in from the real environment."""
    for name in (
        "QSTASH_CURRENT_SIGNING_KEY",
        "QSTASH_NEXT_SIGNING_KEY",
        "RAILWAY_ENVIRONMENT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CRON_SECRET", "test-cron-secret")


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(cron_router)
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer test-cron-secret"}
