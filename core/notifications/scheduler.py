"""
APScheduler-based local trigger and shared retry backoff.

In production the reminder run is triggered by an external cron service
(QStash) hitting the cron endpoint. For local development, or deployments
without QStash, init_scheduler() runs the same dispatch on an in-process
interval instead. Overlap with an external trigger is harmless: the ledger
claim makes duplicate runs idempotent.
"""

import logging
import random
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)


_scheduler: AsyncIOScheduler | None = None

JOB_ID = "session_reminder_dispatch"


# =============================================================================
# Scheduler initialization and shutdown
# =============================================================================


def init_scheduler(interval_minutes: int) -> AsyncIOScheduler:
    """
    Start an in-memory APScheduler that runs the reminder dispatch.

    Call this during app startup (in FastAPI lifespan).

    Args:
        interval_minutes: Minutes between dispatch runs
    """
    global _scheduler

    if _scheduler is not None:
        return _scheduler

    _scheduler = AsyncIOScheduler(
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )
    _scheduler.add_job(
        _run_scheduled_dispatch,
        trigger="interval",
        minutes=interval_minutes,
        id=JOB_ID,
        replace_existing=True,
        next_run_time=datetime.now(timezone.utc),
    )
    _scheduler.start()
    logger.info(f"Local reminder trigger started (every {interval_minutes} min)")

    return _scheduler


def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler gracefully.

    Call this during app shutdown.
    """
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Local reminder trigger stopped")


async def _run_scheduled_dispatch() -> None:
    """Job function called by APScheduler."""
    # Import here to avoid circular imports
    from core.notifications.orchestrator import run_reminder_dispatch

    try:
        report = await run_reminder_dispatch()
        logger.info(f"Scheduled reminder run finished: {report.to_dict()}")
    except Exception:
        logger.exception("Scheduled reminder run failed")


# =============================================================================
# Retry backoff
# =============================================================================


def get_retry_delay(
    attempt: int, include_jitter: bool = True, cap: float = 60.0
) -> float:
    """
    Calculate retry delay using exponential backoff with cap.

    Args:
        attempt: Zero-based attempt number (0 = first retry)
        include_jitter: Add random jitter to prevent thundering herd
        cap: Maximum delay in seconds, jitter included

    Returns:
        Delay in seconds (1, 2, 4, 8, ... up to cap)
    """
    base_delay = min(2**attempt, cap)
    if include_jitter:
        # Jitter scales with delay to spread out retries
        jitter = random.uniform(0, base_delay * 0.1)
        return min(base_delay + jitter, cap)
    return float(base_delay)
