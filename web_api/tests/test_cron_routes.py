"""Tests for the cron trigger API routes."""

import base64
import hashlib
import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import jwt

from core.enums import LedgerState
from core.notifications.orchestrator import DispatchReport, UnitOutcome

SIGNING_KEY = "sig_7kYjw48FhH6kjzY9pWQbB3cjzYeFqB5YwH6B"


def make_report() -> DispatchReport:
    report = DispatchReport(started_at=datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc))
    report.sessions_examined = 2
    report.outcomes[UnitOutcome.sent] = 3
    report.outcomes[UnitOutcome.skipped] = 1
    return report


class TestSessionRemindersTrigger:
    def test_rejects_missing_credentials(self, client):
        response = client.post("/api/cron/session-reminders")
        assert response.status_code == 401

    def test_rejects_wrong_secret(self, client):
        response = client.post(
            "/api/cron/session-reminders",
            headers={"Authorization": "Bearer wrong"},
        )
        assert response.status_code == 401

    @patch(
        "web_api.routes.cron.run_reminder_dispatch",
        new_callable=AsyncMock,
    )
    def test_runs_dispatch_with_bearer_secret(self, mock_run, client, auth_headers):
        mock_run.return_value = make_report()

        response = client.post("/api/cron/session-reminders", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["report"]["sent"] == 3
        assert data["report"]["skipped"] == 1
        assert data["report"]["sessions_examined"] == 2
        mock_run.assert_awaited_once()

    @patch(
        "web_api.routes.cron.run_reminder_dispatch",
        new_callable=AsyncMock,
    )
    def test_accepts_qstash_signature(self, mock_run, client, monkeypatch):
        monkeypatch.setenv("QSTASH_CURRENT_SIGNING_KEY", SIGNING_KEY)
        mock_run.return_value = make_report()
        body = b"{}"
        now = int(time.time())
        signature = jwt.encode(
            {
                "iss": "Upstash",
                "sub": "https://api.example.com/api/cron/session-reminders",
                "exp": now + 300,
                "nbf": now,
                "body": base64.urlsafe_b64encode(hashlib.sha256(body).digest())
                .decode()
                .rstrip("="),
            },
            SIGNING_KEY,
            algorithm="HS256",
        )

        response = client.post(
            "/api/cron/session-reminders",
            content=body,
            headers={"Upstash-Signature": signature},
        )

        assert response.status_code == 200

    @patch(
        "web_api.routes.cron.run_reminder_dispatch",
        new_callable=AsyncMock,
    )
    def test_returns_500_when_run_fails(self, mock_run, client, auth_headers):
        mock_run.side_effect = ConnectionError("db down")

        response = client.post("/api/cron/session-reminders", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "Reminder run failed"


class TestSessionRemindersStatus:
    @patch(
        "web_api.routes.cron.count_entries_by_state",
        new_callable=AsyncMock,
    )
    def test_reports_channels_and_ledger(
        self, mock_counts, client, auth_headers, monkeypatch
    ):
        monkeypatch.setenv("TELEGRAM_GROUP_IDS", "-1001,-1002")
        monkeypatch.setenv("REMINDER_EMAIL_RECIPIENTS", "team@example.com")
        monkeypatch.delenv("TELEGRAM_CHANNEL_IDS", raising=False)
        monkeypatch.delenv("TELEGRAM_CHANNEL", raising=False)
        mock_counts.return_value = {LedgerState.sent: 10, LedgerState.failed: 1}

        response = client.get(
            "/api/cron/session-reminders/status", headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["channels"] == {"telegram_group": 2, "email": 1}
        assert data["ledger"] == {"sent": 10, "failed": 1}

    @patch(
        "web_api.routes.cron.count_entries_by_state",
        new_callable=AsyncMock,
    )
    def test_ledger_unavailable(self, mock_counts, client, auth_headers):
        mock_counts.side_effect = ConnectionError("db down")

        response = client.get(
            "/api/cron/session-reminders/status", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["ledger"] is None

    def test_requires_credentials(self, client):
        response = client.get("/api/cron/session-reminders/status")
        assert response.status_code == 401
