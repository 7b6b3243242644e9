"""Tests for the local interval trigger and retry backoff."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.notifications.scheduler import (
    JOB_ID,
    _run_scheduled_dispatch,
    get_retry_delay,
    init_scheduler,
    shutdown_scheduler,
)


@pytest.fixture(autouse=True)
def reset_scheduler():
    with patch("core.notifications.scheduler._scheduler", None):
        yield


class TestInitScheduler:
    def test_adds_interval_job_and_starts(self):
        with patch("core.notifications.scheduler.AsyncIOScheduler") as mock_cls:
            scheduler = init_scheduler(interval_minutes=5)

        assert scheduler is mock_cls.return_value
        scheduler.add_job.assert_called_once()
        call_kwargs = scheduler.add_job.call_args[1]
        assert call_kwargs["id"] == JOB_ID
        assert call_kwargs["trigger"] == "interval"
        assert call_kwargs["minutes"] == 5
        assert call_kwargs["replace_existing"] is True
        scheduler.start.assert_called_once()

    def test_runs_one_instance_at_a_time(self):
        with patch("core.notifications.scheduler.AsyncIOScheduler") as mock_cls:
            init_scheduler(interval_minutes=5)

        job_defaults = mock_cls.call_args[1]["job_defaults"]
        assert job_defaults["max_instances"] == 1
        assert job_defaults["coalesce"] is True

    def test_second_call_returns_existing_scheduler(self):
        with patch("core.notifications.scheduler.AsyncIOScheduler") as mock_cls:
            first = init_scheduler(interval_minutes=5)
            second = init_scheduler(interval_minutes=1)

        assert first is second
        assert mock_cls.call_count == 1


class TestShutdownScheduler:
    def test_shuts_down_running_scheduler(self):
        mock_scheduler = MagicMock()
        with patch("core.notifications.scheduler._scheduler", mock_scheduler):
            shutdown_scheduler()
            from core.notifications import scheduler as module

            assert module._scheduler is None

        mock_scheduler.shutdown.assert_called_once_with(wait=False)

    def test_noop_without_scheduler(self):
        shutdown_scheduler()


class TestRunScheduledDispatch:
    @pytest.mark.asyncio
    async def test_runs_orchestrator(self):
        report = MagicMock()
        report.to_dict.return_value = {"sent": 1}
        with patch(
            "core.notifications.orchestrator.run_reminder_dispatch",
            new=AsyncMock(return_value=report),
        ) as mock_run:
            await _run_scheduled_dispatch()

        mock_run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        with patch(
            "core.notifications.orchestrator.run_reminder_dispatch",
            new=AsyncMock(side_effect=ConnectionError("db down")),
        ):
            with caplog.at_level(logging.ERROR):
                await _run_scheduled_dispatch()

        assert "Scheduled reminder run failed" in caplog.text


class TestGetRetryDelay:
    """Test exponential backoff calculation."""

    def test_first_attempt_is_1_second(self):
        """First retry should be ~1 second."""
        delay = get_retry_delay(attempt=0)
        assert 1 <= delay <= 1.1

    def test_exponential_growth(self):
        """Delay should double each attempt."""
        assert get_retry_delay(attempt=0, include_jitter=False) == 1
        assert get_retry_delay(attempt=1, include_jitter=False) == 2
        assert get_retry_delay(attempt=2, include_jitter=False) == 4

    def test_caps_at_60_seconds(self):
        """Delay should never exceed 60 seconds."""
        assert get_retry_delay(attempt=10, include_jitter=False) == 60
        assert get_retry_delay(attempt=10) <= 60

    def test_custom_cap(self):
        assert get_retry_delay(attempt=5, cap=30) <= 30
        assert get_retry_delay(attempt=5, cap=0) == 0

    def test_includes_jitter_by_default(self):
        """Should add random jitter to prevent thundering herd."""
        delays = [get_retry_delay(attempt=3) for _ in range(10)]
        assert len(set(delays)) > 1
