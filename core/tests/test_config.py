"""Tests for environment configuration."""

import os
from datetime import timedelta

import pytest

from core.config import (
    ReminderSettings,
    check_required_env_vars,
    get_reminder_settings,
    split_csv,
)
from core.enums import ChannelKind
from core.notifications.types import ChannelTarget, build_channel_targets


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith(("REMINDER_", "TELEGRAM_")):
            monkeypatch.delenv(name)


class TestSplitCsv:
    def test_strips_blanks_and_duplicates(self):
        assert split_csv(" a, b,,a ,c ") == ("a", "b", "c")

    def test_empty(self):
        assert split_csv(None) == ()
        assert split_csv("") == ()


class TestGetReminderSettings:
    def test_defaults(self):
        settings = get_reminder_settings()
        assert settings == ReminderSettings()
        assert settings.interval_minutes == 5
        assert settings.stale_claim_after == timedelta(minutes=10)
        assert settings.catch_up is True

    def test_reads_overrides(self, monkeypatch):
        monkeypatch.setenv("REMINDER_INTERVAL_MINUTES", "10")
        monkeypatch.setenv("REMINDER_STALE_CLAIM_MINUTES", "15")
        monkeypatch.setenv("REMINDER_CATCH_UP", "false")
        monkeypatch.setenv("REMINDER_SEND_TIMEOUT_SECONDS", "2.5")

        settings = get_reminder_settings()

        assert settings.interval_minutes == 10
        assert settings.stale_claim_after == timedelta(minutes=15)
        assert settings.catch_up is False
        assert settings.send_timeout == 2.5

    def test_invalid_number_names_variable(self, monkeypatch):
        monkeypatch.setenv("REMINDER_INTERVAL_MINUTES", "often")
        with pytest.raises(ValueError, match="REMINDER_INTERVAL_MINUTES"):
            get_reminder_settings()

    def test_non_positive_rejected(self, monkeypatch):
        monkeypatch.setenv("REMINDER_INTERVAL_MINUTES", "0")
        with pytest.raises(ValueError):
            get_reminder_settings()

    def test_channel_targets_from_plural_vars(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_GROUP_IDS", "-1001,-1002")
        monkeypatch.setenv("TELEGRAM_CHANNEL_IDS", "@academy")
        monkeypatch.setenv("REMINDER_EMAIL_RECIPIENTS", "a@example.com, b@example.com")

        targets = build_channel_targets(get_reminder_settings())

        assert targets == [
            ChannelTarget(ChannelKind.telegram_group, "-1001"),
            ChannelTarget(ChannelKind.telegram_group, "-1002"),
            ChannelTarget(ChannelKind.telegram_channel, "@academy"),
            ChannelTarget(ChannelKind.email, "a@example.com"),
            ChannelTarget(ChannelKind.email, "b@example.com"),
        ]

    def test_channel_targets_from_singular_vars(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_GROUP_ID", "-1001")
        monkeypatch.setenv("TELEGRAM_CHANNEL", "@academy")

        settings = get_reminder_settings()

        assert settings.telegram_group_ids == ("-1001",)
        assert settings.telegram_channel_ids == ("@academy",)

    def test_no_targets(self):
        assert build_channel_targets(get_reminder_settings()) == []


class TestCheckRequiredEnvVars:
    def test_missing_in_production_fails(self, monkeypatch):
        monkeypatch.setenv("RAILWAY_ENVIRONMENT", "production")
        monkeypatch.delenv("DATABASE_URL", raising=False)

        ok, _ = check_required_env_vars()

        assert ok is False

    def test_missing_outside_production_warns(self, monkeypatch):
        monkeypatch.delenv("RAILWAY_ENVIRONMENT", raising=False)
        monkeypatch.delenv("DATABASE_URL", raising=False)

        ok, warnings = check_required_env_vars()

        assert ok is True
        assert any("DATABASE_URL" in w for w in warnings)
