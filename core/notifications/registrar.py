"""
Registration of the periodic reminder trigger with QStash.

Setup-time only. Registration is a find-and-replace: every existing
schedule aimed at the reminder endpoint (on any host, so old preview or
pre-migration URLs are caught too) is deleted, then exactly one fresh
schedule is created.
"""

import logging
import os
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)

QSTASH_URL = os.environ.get("QSTASH_URL", "https://qstash.upstash.io")

# Path of the cron endpoint (see web_api/routes/cron.py)
REMINDER_CRON_PATH = "/api/cron/session-reminders"


class ScheduleRegistrationError(Exception):
    """Raised when QStash rejects a schedule operation."""

    pass


def interval_to_cron(interval_minutes: int) -> str:
    """
    Convert an interval to a cron expression.

    Raises:
        ValueError: If the interval cannot be expressed as */N minutes
    """
    if not 1 <= interval_minutes <= 59:
        raise ValueError(
            f"Interval must be between 1 and 59 minutes, got {interval_minutes}"
        )
    if interval_minutes == 1:
        return "* * * * *"
    return f"*/{interval_minutes} * * * *"


def targets_reminder_endpoint(destination: str | None, path: str = REMINDER_CRON_PATH) -> bool:
    """True if a schedule destination points at the reminder endpoint."""
    if not destination:
        return False
    return urlsplit(destination).path.rstrip("/") == path.rstrip("/")


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    raise ScheduleRegistrationError(
        f"QStash {action} failed: HTTP {response.status_code} {response.text}"
    )


async def list_schedules(client: httpx.AsyncClient) -> list[dict]:
    response = await client.get("/v2/schedules")
    _raise_for_status(response, "list schedules")
    return response.json()


async def delete_schedule(client: httpx.AsyncClient, schedule_id: str) -> None:
    response = await client.delete(f"/v2/schedules/{schedule_id}")
    _raise_for_status(response, f"delete schedule {schedule_id}")


async def create_schedule(
    client: httpx.AsyncClient, destination_url: str, cron: str
) -> str:
    response = await client.post(
        f"/v2/schedules/{destination_url}",
        headers={"Upstash-Cron": cron, "Content-Type": "application/json"},
        content=b"{}",
    )
    _raise_for_status(response, "create schedule")
    return response.json()["scheduleId"]


async def register_reminder_schedule(
    destination_url: str,
    interval_minutes: int,
    client: httpx.AsyncClient | None = None,
) -> str:
    """
    Ensure exactly one QStash schedule triggers the reminder endpoint.

    Args:
        destination_url: Full URL of the cron endpoint
        interval_minutes: Minutes between invocations
        client: Optional pre-configured client (base_url + auth header)

    Returns:
        The new schedule ID

    Raises:
        ScheduleRegistrationError: If QStash rejects a request
        ValueError: If QSTASH_TOKEN is missing or the interval is invalid
    """
    cron = interval_to_cron(interval_minutes)
    path = urlsplit(destination_url).path or REMINDER_CRON_PATH

    owns_client = client is None
    if owns_client:
        token = os.environ.get("QSTASH_TOKEN")
        if not token:
            raise ValueError("QSTASH_TOKEN environment variable must be set")
        client = httpx.AsyncClient(
            base_url=QSTASH_URL,
            headers={"Authorization": f"Bearer {token}"},
            timeout=15.0,
        )

    try:
        existing = await list_schedules(client)
        stale = [
            s for s in existing if targets_reminder_endpoint(s.get("destination"), path)
        ]
        for schedule in stale:
            await delete_schedule(client, schedule["scheduleId"])
            logger.info(
                f"Deleted schedule {schedule['scheduleId']} -> {schedule.get('destination')}"
            )

        schedule_id = await create_schedule(client, destination_url, cron)
        logger.info(
            f"Created schedule {schedule_id} -> {destination_url} ({cron}), "
            f"replaced {len(stale)}"
        )
        return schedule_id
    finally:
        if owns_client:
            await client.aclose()
